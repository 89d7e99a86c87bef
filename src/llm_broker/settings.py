"""Tenant settings resolution.

The host supplies an opaque JSON settings blob plus a map of decrypted
secrets. ``resolve_settings`` turns both into an immutable ``Settings``
aggregate, applying defaults and the cross-field fallback rules:

  openAI.url          empty/absent -> https://api.openai.com (https://api.pulze.ai/v1 for pulze)
  openAI.provider     openai|azure|grafana|pulze, anything else -> disabled
  grafana provider    requires llmGateway.url, otherwise disabled
  vector.embed        openai embedder always mirrors openAI.url

Secrets (read by fixed key):
  openAIKey                 OpenAI-compatible API key
  llmGatewayKey             LLM gateway API key
  base64EncodedAccessToken  base64("tenant:grafana.com token")
  qdrantApiKey              Qdrant API key (qdrant vector store only)

Secret values live in private attributes: they are never parsed from the
JSON blob and never serialized by ``model_dump``.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union
from loguru import logger  # type: ignore
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, SecretStr, ValidationError, field_validator

from .credentials import decode_access_token
from .errors import MalformedConfig

OPENAI_API_URL = "https://api.openai.com"
PULZE_API_URL = "https://api.pulze.ai/v1"
DEFAULT_EMBED_MODEL = "text-embedding-ada-002"

OPENAI_KEY = "openAIKey"
LLM_GATEWAY_KEY = "llmGatewayKey"
ENCODED_TENANT_AND_TOKEN_KEY = "base64EncodedAccessToken"
QDRANT_API_KEY = "qdrantApiKey"

EMBEDDER_OPENAI = "openai"
OPENAI_KEY_AUTH = "openai-key-auth"
STORE_VECTOR_API = "grafana/vectorapi"
STORE_QDRANT = "qdrant"


class Provider(str, Enum):
    """LLM provider strategies. ``DISABLED`` is the sentinel for 'no LLM support'."""

    OPENAI = "openai"
    AZURE = "azure"
    GRAFANA = "grafana"  # via llm-gateway
    PULZE = "pulze"
    DISABLED = ""


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class OpenAISettings(_Model):
    url: str = ""
    organization_id: str = Field(default="", alias="organizationId")
    provider: Provider = Provider.OPENAI
    azure_model_mapping: List[Tuple[str, str]] = Field(default_factory=list, alias="azureModelMapping")
    pulze_model: str = Field(default="", alias="pulzeModel")

    _api_key: SecretStr = PrivateAttr(default_factory=lambda: SecretStr(""))

    @field_validator("provider", mode="before")
    @classmethod
    def coerce_provider(cls, v: Any) -> Provider:
        try:
            return Provider(v)
        except (ValueError, TypeError):
            # Malformed input never produces a live provider.
            logger.warning(f"Unknown OpenAI provider '{v}'; LLM support is disabled.")
            return Provider.DISABLED

    @property
    def api_key(self) -> SecretStr:
        return self._api_key

    def azure_deployment(self, model: str) -> Optional[str]:
        """Return the deployment mapped to ``model``; the first matching pair wins."""
        for source, deployment in self.azure_model_mapping:
            if source == model:
                return deployment
        return None


class LLMGatewaySettings(_Model):
    # Empty URL disables the gateway.
    url: str = ""
    is_opt_in: bool = Field(default=False, alias="isOptIn")

    _api_key: SecretStr = PrivateAttr(default_factory=lambda: SecretStr(""))

    @property
    def api_key(self) -> SecretStr:
        return self._api_key


class OpenAIEmbedSettings(_Model):
    url: str = ""
    auth_type: str = Field(default=OPENAI_KEY_AUTH, alias="authType")


class EmbedSettings(_Model):
    type: str = EMBEDDER_OPENAI
    openai: OpenAIEmbedSettings = Field(default_factory=OpenAIEmbedSettings)


class VectorAPISettings(_Model):
    url: str = ""


class QdrantSettings(_Model):
    address: str = ""
    secure: bool = False


class StoreSettings(_Model):
    type: str = STORE_VECTOR_API
    grafana_vector_api: VectorAPISettings = Field(default_factory=VectorAPISettings, alias="grafanaVectorAPI")
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)


class VectorSettings(_Model):
    enabled: bool = False
    model: str = DEFAULT_EMBED_MODEL
    embed: EmbedSettings = Field(default_factory=EmbedSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)


class Settings(_Model):
    """Resolved settings of one tenant instance. Read-only after resolution."""

    openai: OpenAISettings = Field(default_factory=OpenAISettings, alias="openAI")
    vector: VectorSettings = Field(default_factory=VectorSettings)
    llm_gateway: LLMGatewaySettings = Field(default_factory=LLMGatewaySettings, alias="llmGateway")

    # Both derived from the combined access token secret.
    _tenant: str = PrivateAttr(default="")
    _grafana_api_key: SecretStr = PrivateAttr(default_factory=lambda: SecretStr(""))

    @property
    def tenant(self) -> str:
        return self._tenant

    @property
    def grafana_api_key(self) -> SecretStr:
        return self._grafana_api_key

    def llm_configured(self) -> bool:
        """Whether the active provider has the credentials it needs."""
        provider = self.openai.provider
        if provider is Provider.DISABLED:
            return False
        if provider is Provider.GRAFANA:
            return self.llm_gateway.is_opt_in and bool(self.llm_gateway.api_key.get_secret_value())
        return bool(self.openai.api_key.get_secret_value())


def _parse(raw_config: Union[bytes, str, None]) -> Settings:
    if not raw_config:
        return Settings()
    try:
        return Settings.model_validate_json(raw_config)
    except ValidationError as e:
        logger.error(f"Failed to parse settings: {e}")
        raise MalformedConfig(str(e)) from e


def resolve_settings(
    raw_config: Union[bytes, str, None],
    secrets: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Parse ``raw_config`` and ``secrets`` into validated ``Settings``.

    Raises a ``ConfigError`` subclass on malformed JSON or a malformed access
    token secret; no partial settings are returned in that case.
    """
    secrets = secrets or {}
    parsed = _parse(raw_config)

    gateway = parsed.llm_gateway
    if not gateway.url:
        logger.warning("Could not get LLM Gateway URL from config, the LLM Gateway support is disabled")

    provider = parsed.openai.provider
    if provider is Provider.GRAFANA and not gateway.url:
        logger.warning("Cannot use LLM Gateway as no URL specified, disabling it")
        provider = Provider.DISABLED

    # A customized URL that was later cleared arrives as "" and counts as unset.
    url = parsed.openai.url
    if not url:
        url = PULZE_API_URL if provider is Provider.PULZE else OPENAI_API_URL

    openai = parsed.openai.model_copy(update={"url": url, "provider": provider})
    openai._api_key = SecretStr(secrets.get(OPENAI_KEY, ""))
    gateway = gateway.model_copy()
    gateway._api_key = SecretStr(secrets.get(LLM_GATEWAY_KEY, ""))

    vector = parsed.vector
    if vector.embed.type == EMBEDDER_OPENAI:
        embed_openai = vector.embed.openai.model_copy(update={"url": url, "auth_type": OPENAI_KEY_AUTH})
        vector = vector.model_copy(update={"embed": vector.embed.model_copy(update={"openai": embed_openai})})

    settings = parsed.model_copy(update={"openai": openai, "vector": vector, "llm_gateway": gateway})

    # Tenant id and grafana.com token are provisioned together as base64("tenantId:token").
    encoded = secrets.get(ENCODED_TENANT_AND_TOKEN_KEY)
    if encoded is not None:
        tenant, api_key = decode_access_token(encoded)
        settings._tenant = tenant
        settings._grafana_api_key = SecretStr(api_key)

    logger.info(
        f"Resolved settings provider='{provider.value or 'disabled'}' vector_enabled={vector.enabled}"
    )
    return settings
