"""
bitFlyer REST client - public market data and private trading endpoints.

Every method is one independent request/response transaction. Failures are
raised as :mod:`bfclient.exchange.exceptions` types; nothing is retried.
"""

from __future__ import annotations

from typing import List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel

from bfclient.core.logger import get_logger
from bfclient.exchange.auth import Credentials
from bfclient.exchange.exceptions import APIError
from bfclient.exchange.models import (
    Balance,
    Board,
    CancelAllChildOrders,
    CancelChildOrder,
    ChildOrder,
    ChildOrderAcceptance,
    Collateral,
    Execution,
    NewChildOrder,
    Ticker,
)
from bfclient.exchange.transport import DEFAULT_TIMEOUT_SECONDS, HTTPTransport

logger = get_logger("bitflyer_rest")

T = TypeVar("T")

BITFLYER_URL = "https://api.bitflyer.jp"

# Paging cursors and counts may be given as ints or pre-formatted strings.
Cursor = Optional[Union[int, str]]


class BitflyerClient:
    """
    Async bitFlyer REST client.

    Construct without credentials for market data only; private methods then
    raise ``ConfigurationError`` before touching the network.

    Usage::

        client = BitflyerClient(credentials=Credentials(key, secret))
        board = await client.get_board("BTC_JPY")
        await client.close()
    """

    def __init__(
        self,
        base_url: str = BITFLYER_URL,
        credentials: Optional[Credentials] = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._transport = HTTPTransport(
            base_url,
            credentials,
            timeout_seconds=timeout_seconds,
            client=client,
        )

    @property
    def authenticated(self) -> bool:
        return self._transport.credentials is not None

    @property
    def transport(self) -> HTTPTransport:
        return self._transport

    async def initialize(self) -> None:
        await self._transport.initialize()

    async def close(self) -> None:
        await self._transport.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_board(self, product_code: Optional[str] = None) -> Board:
        """Order book for ``product_code`` (e.g. "BTC_JPY", "FX_BTC_JPY", "ETH_BTC")."""
        return await self._transport.request_json(
            "GET", "/v1/getboard", Board, params=[("product_code", product_code)]
        )

    async def get_ticker(self, product_code: Optional[str] = None) -> Ticker:
        return await self._transport.request_json(
            "GET", "/v1/getticker", Ticker, params=[("product_code", product_code)]
        )

    async def get_executions(
        self,
        product_code: Optional[str] = None,
        count: Cursor = None,
        before: Cursor = None,
        after: Cursor = None,
    ) -> List[Execution]:
        """
        Recent market executions.

        ``before``/``after`` select executions with an id smaller/larger than
        the given one; ``count`` limits the number of results.
        """
        params = [
            ("product_code", product_code),
            ("count", count),
            ("before", before),
            ("after", after),
        ]
        return await self._transport.request_json(
            "GET", "/v1/getexecutions", List[Execution], params=params
        )

    # ------------------------------------------------------------------
    # Private API
    # ------------------------------------------------------------------

    async def get_balances(self) -> List[Balance]:
        return await self._transport.request_json(
            "GET", "/v1/me/getbalance", List[Balance], private=True
        )

    async def get_collateral(self) -> Collateral:
        return await self._transport.request_json(
            "GET", "/v1/me/getcollateral", Collateral, private=True
        )

    async def get_child_orders(
        self,
        product_code: Optional[str] = None,
        count: Cursor = None,
        before: Cursor = None,
        after: Cursor = None,
        child_order_state: Optional[str] = None,
    ) -> List[ChildOrder]:
        """
        Your orders. ``child_order_state`` is one of ACTIVE, COMPLETED,
        CANCELED, EXPIRED, REJECTED; omitted means all states.
        """
        params = [
            ("product_code", product_code),
            ("count", count),
            ("before", before),
            ("after", after),
            ("child_order_state", child_order_state),
        ]
        return await self._transport.request_json(
            "GET", "/v1/me/getchildorders", List[ChildOrder], params=params, private=True
        )

    async def send_child_order(self, order: NewChildOrder) -> ChildOrderAcceptance:
        return await self._write("/v1/me/sendchildorder", order, ChildOrderAcceptance)

    async def cancel_child_order(self, cancel: CancelChildOrder) -> None:
        await self._write("/v1/me/cancelchildorder", cancel)

    async def cancel_all_child_orders(self, cancel: CancelAllChildOrders) -> None:
        await self._write("/v1/me/cancelallchildorders", cancel)

    async def _write(
        self,
        path: str,
        command: BaseModel,
        shape: Optional[Type[T]] = None,
    ) -> Optional[T]:
        """POST ``command`` as JSON; only HTTP 200 counts as success."""
        body = command.model_dump_json(exclude_none=True).encode("utf-8")
        deadline = self._transport.new_deadline()
        response = await self._transport.send("POST", path, deadline, body=body, private=True)

        if response.status_code != httpx.codes.OK:
            raw = await self._transport.read_body(response, deadline)
            text = raw.decode("utf-8", "replace")
            logger.warning(
                "bitFlyer rejected request",
                path=path,
                status_code=response.status_code,
                body=text[:200],
            )
            raise APIError(response.status_code, response.reason_phrase, text)

        if shape is None:
            await response.aclose()
            return None
        return await self._transport.decode(response, shape, deadline)
