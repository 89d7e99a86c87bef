"""LLM and vector-search broker for a hosting application.

Exports:
  resolve_settings(raw_config, secrets) -> Settings
  LLMApp.from_settings(raw_config, secrets) -> per-tenant instance with
    check_health(), route_chat_request(body), vector_query(text, collection, top_k, filter)

Tenant configuration (JSON):
  openAI.provider=openai|azure|grafana|pulze (anything else disables LLM support)
  openAI.url, openAI.organizationId, openAI.azureModelMapping, openAI.pulzeModel
  llmGateway.url, llmGateway.isOptIn
  vector.enabled, vector.model
  vector.embed.type=openai
  vector.store.type=grafana/vectorapi|qdrant

Secrets:
  openAIKey, llmGatewayKey, base64EncodedAccessToken, qdrantApiKey

Extension:
  Add new LLM providers by subclassing BaseChatProvider, embedders by
  subclassing BaseEmbedder and vector stores by subclassing BaseVectorStore,
  then registering them in CHAT_PROVIDERS / EMBEDDERS / VECTOR_STORES.
"""

from .app import LLMApp
from .embeddings import BaseEmbedder, EMBEDDERS, OpenAIEmbedder, get_embedder
from .errors import (
    ConfigError,
    EmbedError,
    InvalidAccessToken,
    InvalidAPIKey,
    InvalidSecret,
    InvalidTenant,
    LLMBrokerError,
    MalformedConfig,
    NotConfigured,
    RouteError,
    StoreError,
    UnmappedModel,
    UnsupportedBackend,
)
from .health import HealthCache, HealthReport, PROVIDER_MODELS
from .llm import BaseChatProvider, CHAT_PROVIDERS, OutboundRequest, ProviderRouter, RequestForwarder
from .settings import Provider, Settings, resolve_settings
from .stores import BaseVectorStore, SearchResult, VECTOR_STORES, get_vector_store
from .vector import VectorSearchPipeline, build_pipeline

__all__ = [
    "LLMApp",
    "resolve_settings",
    "Settings",
    "Provider",
    "ProviderRouter",
    "OutboundRequest",
    "RequestForwarder",
    "BaseChatProvider",
    "CHAT_PROVIDERS",
    "BaseEmbedder",
    "OpenAIEmbedder",
    "EMBEDDERS",
    "get_embedder",
    "BaseVectorStore",
    "SearchResult",
    "VECTOR_STORES",
    "get_vector_store",
    "VectorSearchPipeline",
    "build_pipeline",
    "HealthCache",
    "HealthReport",
    "PROVIDER_MODELS",
    "LLMBrokerError",
    "ConfigError",
    "MalformedConfig",
    "InvalidSecret",
    "InvalidAccessToken",
    "InvalidTenant",
    "InvalidAPIKey",
    "UnsupportedBackend",
    "RouteError",
    "NotConfigured",
    "UnmappedModel",
    "EmbedError",
    "StoreError",
]
