"""Health checks for the LLM provider and the vector pipeline.

Each subsystem is probed on demand. A successful result is cached for the
lifetime of the instance; a failed one is recomputed on the next check. All
checks of one instance run under a single lock, so concurrent callers never
probe the same subsystem twice.
"""

from __future__ import annotations
import asyncio
import copy
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict, List, Optional
from loguru import logger  # type: ignore
import httpx

from .config import VERSION_OVERRIDE
from .errors import RouteError
from .llm import ProviderRouter, RequestForwarder
from .settings import Settings
from .vector import VectorSearchPipeline

# Models probed for each provider; providers without an entry use the openai list.
PROVIDER_MODELS: Dict[str, List[str]] = {
    "openai": ["gpt-3.5-turbo", "gpt-4"],
    "pulze": ["pulze", "openai/gpt-4"],
}

NOT_CONFIGURED = "not configured"
NO_MODELS_WORKING = "No models are working"


@dataclass
class ModelHealth:
    ok: bool
    error: str = ""


@dataclass
class LLMHealth:
    configured: bool
    ok: bool
    error: str = ""
    models: Dict[str, ModelHealth] = field(default_factory=dict)


@dataclass
class VectorHealth:
    enabled: bool
    ok: bool
    error: str = ""


def _with_error(d: Dict[str, Any], error: str) -> Dict[str, Any]:
    if error:
        d["error"] = error
    return d


@dataclass
class HealthReport:
    openai: LLMHealth
    vector: VectorHealth
    version: str

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready report; empty errors are omitted."""
        return {
            "openAI": _with_error(
                {
                    "configured": self.openai.configured,
                    "ok": self.openai.ok,
                    "models": {
                        name: _with_error({"ok": m.ok}, m.error) for name, m in self.openai.models.items()
                    },
                },
                self.openai.error,
            ),
            "vector": _with_error({"enabled": self.vector.enabled, "ok": self.vector.ok}, self.vector.error),
            "version": self.version,
        }


def get_version() -> str:
    if VERSION_OVERRIDE:
        return VERSION_OVERRIDE
    try:
        return version("llm-broker")
    except PackageNotFoundError:
        return "unknown"


class HealthCache:
    """Owns the cached health snapshots of one instance and the lock guarding them."""

    def __init__(
        self,
        settings: Settings,
        router: ProviderRouter,
        forwarder: RequestForwarder,
        pipeline: Optional[VectorSearchPipeline] = None,
    ):
        self.settings = settings
        self.router = router
        self.forwarder = forwarder
        self.pipeline = pipeline
        self._lock = asyncio.Lock()
        self._llm: Optional[LLMHealth] = None
        self._vector: Optional[VectorHealth] = None

    async def check(self) -> HealthReport:
        async with self._lock:
            llm = await self._check_llm()
            vector = await self._check_vector()
        return HealthReport(openai=llm, vector=vector, version=get_version())

    async def check_llm(self) -> LLMHealth:
        async with self._lock:
            return await self._check_llm()

    async def check_vector(self) -> VectorHealth:
        async with self._lock:
            return await self._check_vector()

    def _models(self) -> List[str]:
        return PROVIDER_MODELS.get(self.settings.openai.provider.value, PROVIDER_MODELS["openai"])

    async def _probe_model(self, model: str) -> str:
        """Send a minimal chat completion for ``model``; return an error string, empty on success."""
        body = {"model": model, "messages": [{"role": "user", "content": "Hello"}]}
        try:
            req = self.router.build_request(body, self.settings.tenant)
        except RouteError as e:
            return f"create request: {e}"
        try:
            resp = await self.forwarder.send(req)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return f"make request: {e}"
        if resp.status_code != httpx.codes.OK:
            return f"unexpected status code: {resp.status_code}: {resp.text}"
        return ""

    async def _check_llm(self) -> LLMHealth:
        if self._llm is not None:
            return copy.deepcopy(self._llm)

        d = LLMHealth(configured=self.settings.llm_configured(), ok=True)
        for model in self._models():
            if not d.configured:
                d.models[model] = ModelHealth(ok=False, error=NOT_CONFIGURED)
                continue
            error = await self._probe_model(model)
            if error:
                logger.warning(f"Health probe for model '{model}' failed: {error}")
            d.models[model] = ModelHealth(ok=not error, error=error)

        if not any(m.ok for m in d.models.values()):
            d.ok = False
            d.error = NO_MODELS_WORKING

        # Only cache the result if the provider is usable.
        if d.ok:
            self._llm = copy.deepcopy(d)
        return d

    async def _check_vector(self) -> VectorHealth:
        if self._vector is not None:
            return copy.deepcopy(self._vector)

        d = VectorHealth(enabled=self.settings.vector.enabled, ok=True)
        if not d.enabled:
            d.ok = False
            return d
        if self.pipeline is None:
            d.ok = False
            d.error = "vector service not configured"
            return d
        try:
            await self.pipeline.health()
        except Exception as e:
            d.ok = False
            d.error = f"vector service health check failed: {e}"

        if d.ok:
            self._vector = copy.deepcopy(d)
        return d
