"""Async bitFlyer REST API client."""

from bfclient.exchange.auth import Credentials
from bfclient.exchange.bitflyer_rest import BITFLYER_URL, BitflyerClient

__version__ = "0.1.0"

__all__ = ["BITFLYER_URL", "BitflyerClient", "Credentials", "__version__"]
