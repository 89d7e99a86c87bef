"""Embedding backend registry.

Backends implement ``embed(text: str) -> list[float]`` and are selected by
``vector.embed.type``:

  openai   OpenAI-compatible /v1/embeddings, same URL and key as the chat provider

Add new backends by subclassing BaseEmbedder and adding an entry to EMBEDDERS.
"""

from __future__ import annotations
from typing import Dict, List, Mapping, Type
from loguru import logger  # type: ignore
from openai import AsyncOpenAI, OpenAIError  # type: ignore
from pydantic_ai.providers.openai import OpenAIProvider

from .errors import EmbedError, UnsupportedBackend
from .settings import EMBEDDER_OPENAI, OPENAI_KEY, VectorSettings


class BaseEmbedder:
    """Base class for embedding backends."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    @classmethod
    def create(cls, cfg: VectorSettings, secrets: Mapping[str, str]) -> "BaseEmbedder":  # pragma: no cover
        raise NotImplementedError

    async def embed(self, text: str) -> List[float]:  # pragma: no cover
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class OpenAIEmbedder(BaseEmbedder):
    def __init__(self, model_name: str, client: AsyncOpenAI):
        super().__init__(model_name)
        self.client = client

    @classmethod
    def create(cls, cfg: VectorSettings, secrets: Mapping[str, str]) -> "OpenAIEmbedder":
        base_url = f"{cfg.embed.openai.url.rstrip('/')}/v1"
        provider = OpenAIProvider(base_url=base_url, api_key=secrets.get(OPENAI_KEY, ""))
        return cls(cfg.model, provider.client)

    async def embed(self, text: str) -> List[float]:
        try:
            resp = await self.client.embeddings.create(model=self.model_name, input=[text])
        except OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbedError(f"create embedding: {e}") from e
        if not resp.data:
            raise EmbedError("create embedding: response contained no embeddings")
        return list(resp.data[0].embedding)


# Registry mapping embedder types to their classes
EMBEDDERS: Dict[str, Type[BaseEmbedder]] = {
    EMBEDDER_OPENAI: OpenAIEmbedder,
}


def get_embedder(cfg: VectorSettings, secrets: Mapping[str, str]) -> BaseEmbedder:
    embedder_cls = EMBEDDERS.get(cfg.embed.type)
    if not embedder_cls:
        raise UnsupportedBackend("embedder", cfg.embed.type)
    embedder = embedder_cls.create(cfg, secrets)
    logger.info(f"Resolved embedder='{cfg.embed.type}' model='{cfg.model}'")
    return embedder
