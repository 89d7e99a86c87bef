"""Chat-completion routing over the configured LLM provider.

Callers hand over an OpenAI-style chat completion body; the router shapes it
for the active provider and injects credentials at the edge:

- OpenAI (default): {url}/v1/chat/completions, Bearer key
- Azure OpenAI: {url}/openai/deployments/{deployment}/chat/completions, api-key header,
  model remapped through openAI.azureModelMapping
- Grafana LLM gateway: {llmGateway.url}/openai/v1/chat/completions, tenant-scoped key
- Pulze: {url}/chat/completions, model defaults to openAI.pulzeModel

Building a request does no I/O. ``RequestForwarder`` performs the actual call.

Extension:
  Add a provider by adding a ``Provider`` member, subclassing BaseChatProvider
  and registering it in CHAT_PROVIDERS.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type
from loguru import logger  # type: ignore
import httpx

from .config import AZURE_OPENAI_API_VERSION, HTTP_TIMEOUT
from .errors import NotConfigured, UnmappedModel
from .settings import Provider, Settings


@dataclass(frozen=True)
class OutboundRequest:
    """A provider-shaped chat completion call, ready to be sent."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)


class BaseChatProvider:
    """Abstract provider; subclasses implement build(settings, body, tenant)."""

    @classmethod
    def build(cls, settings: Settings, body: Dict[str, Any], tenant: str) -> OutboundRequest:  # pragma: no cover
        raise NotImplementedError


class OpenAIChatProvider(BaseChatProvider):
    @classmethod
    def build(cls, settings: Settings, body: Dict[str, Any], tenant: str) -> OutboundRequest:
        openai = settings.openai
        headers = {"Authorization": f"Bearer {openai.api_key.get_secret_value()}"}
        if openai.organization_id:
            headers["OpenAI-Organization"] = openai.organization_id
        return OutboundRequest(
            method="POST",
            url=f"{openai.url.rstrip('/')}/v1/chat/completions",
            headers=headers,
            body=dict(body),
        )


class AzureChatProvider(BaseChatProvider):
    @classmethod
    def build(cls, settings: Settings, body: Dict[str, Any], tenant: str) -> OutboundRequest:
        openai = settings.openai
        model = body.get("model") or ""
        deployment = openai.azure_deployment(model)
        if not deployment:
            raise UnmappedModel(model)
        return OutboundRequest(
            method="POST",
            url=(
                f"{openai.url.rstrip('/')}/openai/deployments/{deployment}/chat/completions"
                f"?api-version={AZURE_OPENAI_API_VERSION}"
            ),
            headers={"api-key": openai.api_key.get_secret_value()},
            body={**body, "model": deployment},
        )


class GrafanaGatewayChatProvider(BaseChatProvider):
    @classmethod
    def build(cls, settings: Settings, body: Dict[str, Any], tenant: str) -> OutboundRequest:
        gateway = settings.llm_gateway
        return OutboundRequest(
            method="POST",
            url=f"{gateway.url.rstrip('/')}/openai/v1/chat/completions",
            headers={
                "Authorization": f"Bearer {tenant}:{gateway.api_key.get_secret_value()}",
                "X-Scope-OrgID": tenant,
            },
            body=dict(body),
        )


class PulzeChatProvider(BaseChatProvider):
    @classmethod
    def build(cls, settings: Settings, body: Dict[str, Any], tenant: str) -> OutboundRequest:
        openai = settings.openai
        body = dict(body)
        if not body.get("model"):
            body["model"] = openai.pulze_model
        return OutboundRequest(
            method="POST",
            url=f"{openai.url.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {openai.api_key.get_secret_value()}"},
            body=body,
        )


# Registry mapping every live provider to its request shaper.
CHAT_PROVIDERS: Dict[Provider, Type[BaseChatProvider]] = {
    Provider.OPENAI: OpenAIChatProvider,
    Provider.AZURE: AzureChatProvider,
    Provider.GRAFANA: GrafanaGatewayChatProvider,
    Provider.PULZE: PulzeChatProvider,
}


class ProviderRouter:
    """Shapes chat requests for the provider captured in ``settings``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def provider(self) -> Provider:
        return self.settings.openai.provider

    def build_request(self, body: Dict[str, Any], tenant: str) -> OutboundRequest:
        if self.provider is Provider.DISABLED:
            raise NotConfigured()
        provider_cls = CHAT_PROVIDERS.get(self.provider)
        if not provider_cls:
            raise NotConfigured(f"Unsupported LLM provider: {self.provider.value}")
        return provider_cls.build(self.settings, body, tenant)


class RequestForwarder:
    """Sends built requests upstream. Cancelling the awaiting task aborts the call."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)

    async def send(self, request: OutboundRequest) -> httpx.Response:
        logger.debug(f"Forwarding {request.method} {request.url}")
        return await self.client.request(
            request.method, request.url, headers=request.headers, json=request.body
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
