"""bitFlyer transport, signing, payload models and endpoint operations."""

from bfclient.exchange.auth import Credentials, build_signature, sign_request
from bfclient.exchange.bitflyer_rest import BITFLYER_URL, BitflyerClient
from bfclient.exchange.exceptions import (
    APIError,
    ConfigurationError,
    DecodeError,
    ExchangeError,
    PermanentExchangeError,
    RequestTimeoutError,
    TransientExchangeError,
    TransportError,
)
from bfclient.exchange.transport import HTTPTransport

__all__ = [
    "APIError",
    "BITFLYER_URL",
    "BitflyerClient",
    "ConfigurationError",
    "Credentials",
    "DecodeError",
    "ExchangeError",
    "HTTPTransport",
    "PermanentExchangeError",
    "RequestTimeoutError",
    "TransientExchangeError",
    "TransportError",
    "build_signature",
    "sign_request",
]
