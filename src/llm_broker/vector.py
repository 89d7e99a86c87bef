"""Vector search: embed a text query, then run a similarity search on it."""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional
from loguru import logger  # type: ignore

from .embeddings import BaseEmbedder, get_embedder
from .errors import UnsupportedBackend
from .settings import VectorSettings
from .stores import VECTOR_STORES, BaseVectorStore, SearchResult, get_vector_store


class VectorSearchPipeline:
    """Composes an embedder and a vector store. Neither step is retried."""

    def __init__(self, embedder: BaseEmbedder, store: BaseVectorStore):
        self.embedder = embedder
        self.store = store

    async def query(
        self,
        text: str,
        collection: str,
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        vector = await self.embedder.embed(text)
        return await self.store.search(collection, vector, top_k, filter)

    async def collection_exists(self, collection: str) -> bool:
        return await self.store.collection_exists(collection)

    async def health(self) -> None:
        await self.store.health()

    async def aclose(self) -> None:
        await self.embedder.aclose()
        await self.store.aclose()


def build_pipeline(cfg: VectorSettings, secrets: Mapping[str, str]) -> Optional[VectorSearchPipeline]:
    """Return the configured pipeline, or None when vector search is disabled.

    Raises UnsupportedBackend for an unknown embedder or store type.
    """
    if not cfg.enabled:
        logger.info("Vector search is disabled")
        return None
    # Both types are checked before either backend opens a client.
    if cfg.store.type not in VECTOR_STORES:
        raise UnsupportedBackend("vector store", cfg.store.type)
    return VectorSearchPipeline(get_embedder(cfg, secrets), get_vector_store(cfg.store, secrets))
