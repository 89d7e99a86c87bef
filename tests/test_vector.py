"""Tests for the vector search pipeline."""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from llm_broker.embeddings import BaseEmbedder, OpenAIEmbedder
from llm_broker.errors import EmbedError, UnsupportedBackend
from llm_broker.settings import VectorSettings
from llm_broker.stores import BaseVectorStore, SearchResult, VectorAPIStore
from llm_broker.vector import VectorSearchPipeline, build_pipeline

FIXED_VECTOR = [0.25, -0.5, 1.0]

KNOWN_RESULTS = [
    SearchResult(payload={"title": "low"}, score=0.2),
    SearchResult(payload={"title": "high"}, score=0.9),
    SearchResult(payload={"title": "mid"}, score=0.5),
]


class StubEmbedder(BaseEmbedder):
    def __init__(self, error: Optional[Exception] = None):
        super().__init__("stub")
        self.error = error
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return list(FIXED_VECTOR)


class StubStore(BaseVectorStore):
    def __init__(self):
        self.searches: List[tuple] = []

    async def search(
        self,
        collection: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        self.searches.append((collection, vector, top_k, filter))
        return list(KNOWN_RESULTS) if vector == FIXED_VECTOR else []


class TestVectorSearchPipeline:

    @pytest.mark.asyncio
    async def test_query_returns_store_results_in_order(self):
        store = StubStore()
        pipeline = VectorSearchPipeline(StubEmbedder(), store)
        results = await pipeline.query("hello", "docs", 5, None)
        assert results == KNOWN_RESULTS
        assert store.searches == [("docs", FIXED_VECTOR, 5, None)]

    @pytest.mark.asyncio
    async def test_filter_is_passed_through(self):
        store = StubStore()
        pipeline = VectorSearchPipeline(StubEmbedder(), store)
        await pipeline.query("hello", "docs", 3, {"source": "wiki"})
        assert store.searches[0][3] == {"source": "wiki"}

    @pytest.mark.asyncio
    async def test_embed_failure_skips_search(self):
        store = StubStore()
        embedder = StubEmbedder(error=EmbedError("create embedding: boom"))
        pipeline = VectorSearchPipeline(embedder, store)
        with pytest.raises(EmbedError):
            await pipeline.query("hello", "docs", 5)
        assert embedder.calls == ["hello"]
        assert store.searches == []


class TestBuildPipeline:

    def test_disabled(self):
        assert build_pipeline(VectorSettings(), {}) is None

    def test_enabled(self):
        cfg = VectorSettings.model_validate({
            "enabled": True,
            "embed": {"type": "openai", "openai": {"url": "https://api.openai.com"}},
            "store": {"type": "grafana/vectorapi", "grafanaVectorAPI": {"url": "http://vectorapi:8889"}},
        })
        pipeline = build_pipeline(cfg, {"openAIKey": "sk-test"})
        assert isinstance(pipeline.store, VectorAPIStore)
        assert pipeline.embedder.model_name == "text-embedding-ada-002"

    def test_unknown_store_fails(self):
        cfg = VectorSettings.model_validate({
            "enabled": True,
            "embed": {"openai": {"url": "https://api.openai.com"}},
            "store": {"type": "pinecone"},
        })
        with pytest.raises(UnsupportedBackend):
            build_pipeline(cfg, {"openAIKey": "sk-test"})

    def test_unknown_store_opens_no_embedder(self, monkeypatch):
        create = MagicMock()
        monkeypatch.setattr(OpenAIEmbedder, "create", create)
        cfg = VectorSettings.model_validate({"enabled": True, "store": {"type": "pinecone"}})
        with pytest.raises(UnsupportedBackend, match="pinecone"):
            build_pipeline(cfg, {"openAIKey": "sk-test"})
        create.assert_not_called()
