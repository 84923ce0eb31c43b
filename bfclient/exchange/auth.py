"""Signing helpers for bitFlyer private REST requests."""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from bfclient.exchange.exceptions import ConfigurationError

ACCESS_KEY_HEADER = "ACCESS-KEY"
ACCESS_TIMESTAMP_HEADER = "ACCESS-TIMESTAMP"
ACCESS_SIGN_HEADER = "ACCESS-SIGN"


@dataclass(frozen=True)
class Credentials:
    """API key/secret pair. Both parts must be non-empty."""

    api_key: str
    api_secret: str

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ConfigurationError("missing API key")
        if not isinstance(self.api_secret, str) or not self.api_secret.strip():
            raise ConfigurationError("missing API secret")

    def __repr__(self) -> str:
        return f"Credentials(api_key={self.api_key[:4]}****)"


def build_signature(
    secret: str,
    timestamp: str,
    method: str,
    path: str,
    body: Union[str, bytes] = "",
) -> str:
    """Return the hex HMAC-SHA256 of ``timestamp + method + path + body`` keyed by ``secret``.

    ``path`` is the request path including its query string, exactly as sent.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    message = f"{timestamp}{method.upper()}{path}{body}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_request(
    request: httpx.Request,
    credentials: Optional[Credentials],
    body: bytes = b"",
    *,
    timestamp: Optional[int] = None,
) -> None:
    """Attach bitFlyer authentication headers to ``request`` in place.

    The timestamp is taken here, at signing time, for every request.
    """
    if credentials is None:
        raise ConfigurationError("API credentials are required for private endpoints")

    ts = str(int(time.time()) if timestamp is None else int(timestamp))
    path = request.url.raw_path.decode("ascii")
    signature = build_signature(credentials.api_secret, ts, request.method, path, body)

    request.headers[ACCESS_KEY_HEADER] = credentials.api_key
    request.headers[ACCESS_TIMESTAMP_HEADER] = ts
    request.headers[ACCESS_SIGN_HEADER] = signature
    if body:
        request.headers["Content-Type"] = "application/json"
