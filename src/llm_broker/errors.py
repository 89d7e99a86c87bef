"""Exception hierarchy for settings resolution, routing and vector search."""

from __future__ import annotations
from typing import Optional


class LLMBrokerError(Exception):
    """Base class for the package's custom exceptions."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration (fatal to instance construction) ---
class ConfigError(LLMBrokerError):
    """Raised when tenant configuration or secrets cannot be resolved."""


class MalformedConfig(ConfigError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(f"malformed settings: {message}", details=details)


class InvalidSecret(ConfigError):
    """The combined access token is not valid base64."""


class InvalidAccessToken(ConfigError):
    """The decoded access token is not of the form 'tenant:token'."""

    def __init__(self, message: str = "invalid access token", details: Optional[dict] = None):
        super().__init__(message, details=details)


class InvalidTenant(ConfigError):
    def __init__(self, message: str = "invalid tenant", details: Optional[dict] = None):
        super().__init__(message, details=details)


class InvalidAPIKey(ConfigError):
    def __init__(self, message: str = "invalid grafana.com API key", details: Optional[dict] = None):
        super().__init__(message, details=details)


class UnsupportedBackend(ConfigError):
    """Raised for an unknown embedder or vector store type."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"unsupported {kind}: {name!r}", details={"kind": kind, "type": name})


# --- Routing ---
class RouteError(LLMBrokerError):
    """Raised when a chat request cannot be shaped for the active provider."""


class NotConfigured(RouteError):
    """The LLM capability is disabled; callers should report it as unavailable."""

    def __init__(self, message: str = "LLM provider not configured", details: Optional[dict] = None):
        super().__init__(message, details=details)


class UnmappedModel(RouteError):
    def __init__(self, model: str):
        self.model = model
        super().__init__(f"no Azure deployment mapped for model {model!r}", details={"model": model})


# --- Vector backends ---
class EmbedError(LLMBrokerError):
    """Raised when the embedding backend fails or returns an unusable payload."""


class StoreError(LLMBrokerError):
    """Raised when the vector store fails or returns an unusable payload."""
