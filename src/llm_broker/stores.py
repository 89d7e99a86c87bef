"""Vector store backend registry.

Backends are selected by ``vector.store.type``:

  grafana/vectorapi   HTTP vector search service (vector.store.grafanaVectorAPI.url)
  qdrant              Qdrant server (vector.store.qdrant.address, optional qdrantApiKey secret)

Every backend answers collection_exists / search / health. Search results are
returned in the order the backend ranked them; nothing is re-sorted here.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type
from loguru import logger  # type: ignore
import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import FieldCondition, Filter, MatchValue

from .config import HTTP_TIMEOUT
from .errors import StoreError, UnsupportedBackend
from .settings import QDRANT_API_KEY, STORE_QDRANT, STORE_VECTOR_API, StoreSettings

# Responses past this size are cut off and then fail to decode.
MAX_RESPONSE_BYTES = 1024 * 1024


@dataclass
class SearchResult:
    payload: Dict[str, Any] = field(default_factory=dict)
    score: float = 0.0


class BaseVectorStore:
    """Base class for vector store backends."""

    @classmethod
    def create(cls, cfg: StoreSettings, secrets: Mapping[str, str]) -> "BaseVectorStore":  # pragma: no cover
        raise NotImplementedError

    async def collection_exists(self, collection: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    async def search(
        self,
        collection: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:  # pragma: no cover
        raise NotImplementedError

    async def health(self) -> None:  # pragma: no cover
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class _QueryPointPayload(BaseModel):
    metadata: Optional[Dict[str, Any]] = None


class _QueryPointResult(BaseModel):
    payload: _QueryPointPayload = Field(default_factory=_QueryPointPayload)
    score: float = 0.0


_query_results = TypeAdapter(List[_QueryPointResult])

# InvalidURL is raised before any request is sent and is not an HTTPError.
_HTTP_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


async def _read_limited(resp: httpx.Response, limit: int) -> bytes:
    buf = bytearray()
    async for chunk in resp.aiter_bytes():
        buf.extend(chunk[: limit - len(buf)])
        if len(buf) >= limit:
            break
    return bytes(buf)


class VectorAPIStore(BaseVectorStore):
    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)

    @classmethod
    def create(cls, cfg: StoreSettings, secrets: Mapping[str, str]) -> "VectorAPIStore":
        return cls(cfg.grafana_vector_api.url)

    async def collection_exists(self, collection: str) -> bool:
        try:
            resp = await self.client.get(f"{self.url}/v1/collections/{collection}")
        except _HTTP_ERRORS as e:
            raise StoreError(f"get collection: {e}") from e
        # Not found and server errors both read as "no usable collection".
        return resp.status_code == httpx.codes.OK

    async def search(
        self,
        collection: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        payload = {"query": vector, "top_k": top_k, "filter": filter}
        try:
            async with self.client.stream(
                "POST", f"{self.url}/v1/collections/{collection}/query", json=payload
            ) as resp:
                body = await _read_limited(resp, MAX_RESPONSE_BYTES)
        except _HTTP_ERRORS as e:
            raise StoreError(f"post collections: {e}") from e
        if resp.status_code != httpx.codes.OK:
            raise StoreError(f"post collections: {resp.status_code} {resp.reason_phrase}")
        try:
            points = _query_results.validate_json(body)
        except ValidationError as e:
            raise StoreError(f"decode collections: {e}") from e
        return [SearchResult(payload=p.payload.metadata or {}, score=p.score) for p in points]

    async def health(self) -> None:
        try:
            resp = await self.client.get(f"{self.url}/healthz")
        except _HTTP_ERRORS as e:
            raise StoreError(f"get health: {e}") from e
        if resp.status_code != httpx.codes.OK:
            raise StoreError(f"get health: {resp.status_code} {resp.reason_phrase}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


_QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException) + _HTTP_ERRORS


def _build_qdrant_filter(filter_dict: Optional[Dict[str, Any]]) -> Optional[Filter]:
    """Convert a flat key/value map into equality conditions."""
    if not filter_dict:
        return None
    return Filter(
        must=[FieldCondition(key=key, match=MatchValue(value=value)) for key, value in filter_dict.items()]
    )


class QdrantStore(BaseVectorStore):
    def __init__(self, client: AsyncQdrantClient):
        self.client = client

    @classmethod
    def create(cls, cfg: StoreSettings, secrets: Mapping[str, str]) -> "QdrantStore":
        address = cfg.qdrant.address
        api_key = secrets.get(QDRANT_API_KEY) or None
        timeout = math.ceil(HTTP_TIMEOUT) if HTTP_TIMEOUT else None
        if "://" in address:
            client = AsyncQdrantClient(url=address, api_key=api_key, timeout=timeout)
        else:
            host, _, port = address.partition(":")
            client = AsyncQdrantClient(
                host=host or "localhost",
                port=int(port) if port else 6333,
                https=cfg.qdrant.secure,
                api_key=api_key,
                timeout=timeout,
            )
        return cls(client)

    async def collection_exists(self, collection: str) -> bool:
        try:
            return await self.client.collection_exists(collection)
        except _QDRANT_ERRORS as e:
            raise StoreError(f"get collection: {e}") from e

    async def search(
        self,
        collection: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchResult]:
        try:
            response = await self.client.query_points(
                collection_name=collection,
                query=vector,
                limit=top_k,
                query_filter=_build_qdrant_filter(filter),
                with_payload=True,
                with_vectors=False,
            )
        except _QDRANT_ERRORS as e:
            raise StoreError(f"query points: {e}") from e
        return [SearchResult(payload=dict(point.payload or {}), score=point.score) for point in response.points]

    async def health(self) -> None:
        try:
            await self.client.get_collections()
        except _QDRANT_ERRORS as e:
            raise StoreError(f"get health: {e}") from e

    async def aclose(self) -> None:
        await self.client.close()


# Registry mapping store types to their classes
VECTOR_STORES: Dict[str, Type[BaseVectorStore]] = {
    STORE_VECTOR_API: VectorAPIStore,
    STORE_QDRANT: QdrantStore,
}


def get_vector_store(cfg: StoreSettings, secrets: Mapping[str, str]) -> BaseVectorStore:
    store_cls = VECTOR_STORES.get(cfg.type)
    if not store_cls:
        raise UnsupportedBackend("vector store", cfg.type)
    store = store_cls.create(cfg, secrets)
    logger.info(f"Resolved vector store='{cfg.type}'")
    return store
