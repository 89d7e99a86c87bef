"""Tests for embedding backends."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from llm_broker.embeddings import EMBEDDERS, OpenAIEmbedder, get_embedder
from llm_broker.errors import EmbedError, UnsupportedBackend
from llm_broker.settings import OPENAI_KEY, VectorSettings


def _client(create):
    client = MagicMock()
    client.embeddings.create = create
    return client


class TestOpenAIEmbedder:

    @pytest.mark.asyncio
    async def test_embed(self):
        create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]))
        embedder = OpenAIEmbedder("text-embedding-ada-002", _client(create))
        assert await embedder.embed("hello") == [0.1, 0.2, 0.3]
        create.assert_awaited_once_with(model="text-embedding-ada-002", input=["hello"])

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))
        embedder = OpenAIEmbedder("text-embedding-ada-002", _client(AsyncMock(side_effect=error)))
        with pytest.raises(EmbedError) as exc_info:
            await embedder.embed("hello")
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_empty_response(self):
        embedder = OpenAIEmbedder("m", _client(AsyncMock(return_value=SimpleNamespace(data=[]))))
        with pytest.raises(EmbedError):
            await embedder.embed("hello")

    def test_create_uses_openai_url_and_key(self):
        cfg = VectorSettings.model_validate(
            {"enabled": True, "model": "text-embedding-3-small", "embed": {"openai": {"url": "https://proxy.example.com/"}}}
        )
        embedder = OpenAIEmbedder.create(cfg, {OPENAI_KEY: "sk-test"})
        assert embedder.model_name == "text-embedding-3-small"
        assert str(embedder.client.base_url).rstrip("/") == "https://proxy.example.com/v1"
        assert embedder.client.api_key == "sk-test"


class TestRegistry:

    def test_known_types(self):
        assert set(EMBEDDERS) == {"openai"}

    def test_unknown_type(self):
        cfg = VectorSettings.model_validate({"enabled": True, "embed": {"type": "word2vec"}})
        with pytest.raises(UnsupportedBackend):
            get_embedder(cfg, {})
