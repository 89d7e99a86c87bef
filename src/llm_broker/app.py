"""Per-tenant app instance: the capability surface exposed to the host.

The host constructs one ``LLMApp`` per tenant settings version and disposes of
it (``aclose``) when the settings change. Construction fails outright on bad
settings; no partially configured instance is ever returned.
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Union
from loguru import logger  # type: ignore
import httpx

from .errors import NotConfigured
from .health import HealthCache, HealthReport
from .llm import ProviderRouter, RequestForwarder
from .settings import Settings, resolve_settings
from .stores import SearchResult
from .vector import VectorSearchPipeline, build_pipeline


class LLMApp:
    def __init__(
        self,
        settings: Settings,
        forwarder: Optional[RequestForwarder] = None,
        pipeline: Optional[VectorSearchPipeline] = None,
    ):
        self.settings = settings
        self.router = ProviderRouter(settings)
        self.forwarder = forwarder or RequestForwarder()
        self.pipeline = pipeline
        self.health = HealthCache(settings, self.router, self.forwarder, pipeline)

    @classmethod
    def from_settings(
        cls,
        raw_config: Union[bytes, str, None],
        secrets: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "LLMApp":
        logger.info("Creating new app instance")
        secrets = secrets or {}
        settings = resolve_settings(raw_config, secrets)
        pipeline = build_pipeline(settings.vector, secrets)
        return cls(settings, RequestForwarder(http_client), pipeline)

    async def check_health(self) -> HealthReport:
        return await self.health.check()

    async def route_chat_request(self, body: Dict[str, Any]) -> httpx.Response:
        """Shape ``body`` for the active provider and send it.

        Raises NotConfigured when LLM support is disabled.
        """
        request = self.router.build_request(body, self.settings.tenant)
        return await self.forwarder.send(request)

    def _require_pipeline(self) -> VectorSearchPipeline:
        if self.pipeline is None:
            raise NotConfigured("vector search not enabled")
        return self.pipeline

    async def vector_query(
        self,
        text: str,
        collection: str,
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        return await self._require_pipeline().query(text, collection, top_k, filter)

    async def collection_exists(self, collection: str) -> bool:
        return await self._require_pipeline().collection_exists(collection)

    async def aclose(self) -> None:
        await self.forwarder.aclose()
        if self.pipeline is not None:
            await self.pipeline.aclose()
