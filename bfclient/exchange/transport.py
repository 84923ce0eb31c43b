"""
HTTP transport shared by every bitFlyer endpoint.

One pipeline for all calls: fix a deadline, build the request against the
base URL, sign it when the endpoint is private, send it, then decode the
JSON body into the caller's shape. The response stream is always closed
before a call returns.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional, Tuple, Type, TypeVar, Union

import httpx
from pydantic import TypeAdapter, ValidationError

from bfclient.core.logger import get_logger, log_performance
from bfclient.exchange.auth import Credentials, sign_request
from bfclient.exchange.exceptions import (
    ConfigurationError,
    DecodeError,
    RequestTimeoutError,
    TransportError,
)

logger = get_logger("transport")

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def parse_base_url(base_url: str) -> httpx.URL:
    """Return ``base_url`` as an absolute http(s) URL or raise ConfigurationError."""
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"failed to parse url: {base_url!r}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"failed to parse url: {base_url!r} is not an absolute http(s) URL")
    return url


def join_path(base: str, path: str) -> str:
    """Append ``path`` to ``base``, collapsing redundant separators."""
    segments = [s for s in f"{base}/{path}".split("/") if s]
    return "/" + "/".join(segments)


def clean_params(params: Params) -> list[tuple[str, str]]:
    """Drop empty filters and render the rest as strings, keeping their order."""
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    return [(key, str(value)) for key, value in items if value is not None and value != ""]


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


class HTTPTransport:
    """Builds, signs, sends and decodes requests for one base endpoint.

    Configuration is fixed at construction. A client without credentials can
    only reach public endpoints; private calls fail before any network I/O.
    An injected ``client`` is used for connections only: every request carries
    this transport's own timeout.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[Credentials] = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = parse_base_url(base_url)
        if timeout_seconds is None or float(timeout_seconds) < 0:
            raise ConfigurationError(f"timeout must be non-negative, got {timeout_seconds!r}")
        self._credentials = credentials
        self._timeout_seconds = float(timeout_seconds)
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> httpx.URL:
        return self._base_url

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_seconds)
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def new_deadline(self) -> float:
        """Event-loop time at which a call started now must give up."""
        return asyncio.get_running_loop().time() + self._timeout_seconds

    def build_request(
        self,
        method: str,
        path: str,
        *,
        params: Params = None,
        body: Optional[bytes] = None,
    ) -> httpx.Request:
        url = self._base_url.copy_with(path=join_path(self._base_url.path, path))
        query = clean_params(params)
        # Socket timeouts follow this transport, not the client defaults.
        timeout = httpx.Timeout(self._timeout_seconds or None)
        return httpx.Request(
            method.upper(),
            url,
            params=query or None,
            content=body or None,
            extensions={"timeout": timeout.as_dict()},
        )

    def sign(self, request: httpx.Request, body: Optional[bytes] = None) -> None:
        sign_request(request, self._credentials, body or b"")

    async def execute(self, request: httpx.Request, deadline: float) -> httpx.Response:
        """Send ``request`` and return once response headers arrive or the deadline passes."""
        if self._client is None:
            await self.initialize()
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise RequestTimeoutError(f"{request.method} {request.url.path}: deadline exceeded before send")
        try:
            return await asyncio.wait_for(self._client.send(request, stream=True), timeout=remaining)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(
                f"{request.method} {request.url.path}: no response within {self._timeout_seconds:g}s"
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"{request.method} {request.url.path}: {e!r}") from e

    async def read_body(self, response: httpx.Response, deadline: Optional[float] = None) -> bytes:
        """Read the whole body and release the stream."""
        try:
            if deadline is None:
                return await response.aread()
            remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
            return await asyncio.wait_for(response.aread(), timeout=remaining)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(f"{response.request.url.path}: body not received in time") from e
        except httpx.TransportError as e:
            raise TransportError(f"{response.request.url.path}: {e!r}") from e
        finally:
            await response.aclose()

    async def decode(
        self,
        response: httpx.Response,
        shape: Type[T],
        deadline: Optional[float] = None,
    ) -> T:
        """Decode the JSON body of ``response`` into ``shape``."""
        raw = await self.read_body(response, deadline)
        try:
            return _adapter(shape).validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Response decode failed",
                path=response.request.url.path,
                status_code=response.status_code,
                body=raw[:200].decode("utf-8", "replace"),
            )
            raise DecodeError(f"{response.request.url.path}: {e}") from e

    # ------------------------------------------------------------------
    # Composed pipeline
    # ------------------------------------------------------------------

    async def send(
        self,
        method: str,
        path: str,
        deadline: float,
        *,
        params: Params = None,
        body: Optional[bytes] = None,
        private: bool = False,
    ) -> httpx.Response:
        """Build, sign when ``private``, and execute one request."""
        if private and self._credentials is None:
            raise ConfigurationError(f"{method.upper()} {path} requires API credentials")
        request = self.build_request(method, path, params=params, body=body)
        if private:
            self.sign(request, body)
        with log_performance(logger, "bitFlyer request", method=request.method, path=path) as timer:
            response = await self.execute(request, deadline)
        logger.debug(
            "bitFlyer response",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=timer.elapsed_ms,
        )
        return response

    async def request_json(
        self,
        method: str,
        path: str,
        shape: Type[T],
        *,
        params: Params = None,
        body: Optional[bytes] = None,
        private: bool = False,
    ) -> T:
        deadline = self.new_deadline()
        response = await self.send(method, path, deadline, params=params, body=body, private=private)
        return await self.decode(response, shape, deadline)
