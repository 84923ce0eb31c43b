"""Shared test fixtures and stubs for bfclient tests.

Requests never leave the process: every client is wired to an
``httpx.MockTransport`` whose handler records what it was sent.
"""

from __future__ import annotations

import json
from typing import Any, Callable, List, Optional

import httpx
import pytest

from bfclient.exchange.auth import Credentials
from bfclient.exchange.bitflyer_rest import BITFLYER_URL, BitflyerClient


class RecordingHandler:
    """MockTransport handler returning a canned response.

    Configurable via attributes:
        status_code: HTTP status of every response
        payload: JSON-serialisable body (ignored when ``content`` is set)
        content: raw body bytes
        requests: every request received, for assertions
    """

    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        content: Optional[bytes] = None,
    ) -> None:
        self.payload = payload
        self.status_code = status_code
        self.content = content
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "handler was never called"
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


def make_client(
    handler: Callable[[httpx.Request], Any],
    credentials: Optional[Credentials] = None,
    *,
    base_url: str = BITFLYER_URL,
    timeout_seconds: float = 10.0,
) -> BitflyerClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BitflyerClient(base_url, credentials, timeout_seconds=timeout_seconds, client=http)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("test-key", "s3cret")


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "BITFLYER_BASE_URL",
        "BITFLYER_TIMEOUT_SECONDS",
        "BITFLYER_API_KEY",
        "BITFLYER_API_SECRET",
        "BFKEY",
        "BFSECRET",
        "LOG_LEVEL",
        "LOG_JSON",
        "LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def recorder() -> RecordingHandler:
    """A handler answering ``200 {}``; tests set ``payload``/``status_code`` as needed."""
    return RecordingHandler(payload={})


@pytest.fixture
def client_factory():
    return make_client
