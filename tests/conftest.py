import base64
import json
from typing import Callable, List

import httpx
import pytest

from llm_broker.settings import OPENAI_KEY, Settings, resolve_settings


def encode_token(raw: str) -> str:
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Resolve settings from a dict, with an OpenAI key unless secrets are given."""

    def _make(config=None, secrets=None) -> Settings:
        raw = json.dumps(config).encode() if config is not None else b""
        if secrets is None:
            secrets = {OPENAI_KEY: "sk-test"}
        return resolve_settings(raw, secrets)

    return _make


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def recording_client():
    """Build an AsyncClient over a RecordingTransport: returns (client, transport)."""

    def _make(handler):
        transport = RecordingTransport(handler)
        return httpx.AsyncClient(transport=transport), transport

    return _make
