"""Typed exception hierarchy for exchange operations.

Enables callers to distinguish transient vs permanent failures
and decide for themselves whether a call is worth repeating.
"""

from __future__ import annotations

from typing import Optional


class ExchangeError(Exception):
    """Base class for all exchange-related errors."""


class TransientExchangeError(ExchangeError):
    """Temporary failure that may succeed if the caller tries again (network, timeout)."""


class PermanentExchangeError(ExchangeError):
    """Non-recoverable failure (bad config, unexpected payload, rejected request)."""


class ConfigurationError(PermanentExchangeError):
    """Invalid base URL, or credentials missing for a private endpoint."""


class TransportError(TransientExchangeError):
    """Network failure before a response was received."""


class RequestTimeoutError(TransientExchangeError, TimeoutError):
    """The request deadline elapsed before response headers arrived."""


class DecodeError(PermanentExchangeError):
    """Response body is not valid JSON or does not match the expected shape."""


class APIError(PermanentExchangeError):
    """Exchange answered a write request with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str = "", body: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        status_text = f"{status_code} {reason}".strip()
        super().__init__(f"HTTP response code: {status_text}")
