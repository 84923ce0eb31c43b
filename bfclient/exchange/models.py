"""
bitFlyer payload models.

Response shapes are plain data holders validated by pydantic. Prices, sizes
and amounts are floats; exchange identifiers sent as JSON integers stay ints.
Timestamps are kept as the text the exchange sends; use
:func:`parse_exchange_time` when a ``datetime`` is needed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Date-time layout of bitFlyer responses, e.g. "2015-07-08T02:43:34.823".
TIME_LAYOUT = "%Y-%m-%dT%H:%M:%S"


def parse_exchange_time(text: str) -> datetime:
    """Parse an exchange timestamp into an aware UTC datetime.

    Fractional seconds and a trailing ``Z`` are accepted.
    """
    raw = (text or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1]
    main, _, fraction = raw.partition(".")
    dt = datetime.strptime(main, TIME_LAYOUT)
    if fraction:
        digits = (fraction + "000000")[:6]
        dt = dt.replace(microsecond=int(digits))
    return dt.replace(tzinfo=timezone.utc)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class BoardEntry(_Payload):
    price: float
    size: float


class Board(_Payload):
    """Order book depth snapshot."""
    mid_price: float
    bids: List[BoardEntry]
    asks: List[BoardEntry]


class Ticker(_Payload):
    product_code: str
    timestamp: str = ""
    tick_id: int
    best_bid: float = 0.0
    best_ask: float = 0.0
    best_bid_size: float = 0.0
    best_ask_size: float = 0.0
    total_bid_depth: float = 0.0
    total_ask_depth: float = 0.0
    ltp: float
    volume: float = 0.0
    volume_by_product: float = 0.0


class Execution(_Payload):
    id: int
    side: str = ""
    price: float
    size: float
    exec_date: str = ""
    buy_child_order_acceptance_id: str = ""
    sell_child_order_acceptance_id: str = ""


# ---------------------------------------------------------------------------
# Private API
# ---------------------------------------------------------------------------

class Balance(_Payload):
    currency_code: str
    amount: float = 0.0
    available: float = 0.0


class Collateral(_Payload):
    collateral: float
    open_position_pnl: float
    require_collateral: float
    keep_rate: float


class ChildOrder(_Payload):
    """An order as listed by ``/v1/me/getchildorders``."""
    id: int
    child_order_id: str = ""
    product_code: str = ""
    side: str = ""
    child_order_type: str = ""
    price: float = 0.0
    average_price: float = 0.0
    size: float = 0.0
    child_order_state: str = ""
    expire_date: str = ""
    child_order_date: str = ""
    child_order_acceptance_id: str = ""
    outstanding_size: float = 0.0
    cancel_size: float = 0.0
    executed_size: float = 0.0
    total_commission: float = 0.0


class ChildOrderAcceptance(_Payload):
    child_order_acceptance_id: str


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

class NewChildOrder(BaseModel):
    """Body of ``/v1/me/sendchildorder``.

    ``price`` is ignored by the exchange for MARKET orders.
    ``minute_to_expire`` defaults to 43200 (30 days) on the exchange side.
    """
    product_code: str
    child_order_type: Literal["LIMIT", "MARKET"]
    side: Literal["BUY", "SELL"]
    size: float = Field(gt=0)
    price: Optional[float] = Field(default=None, gt=0)
    minute_to_expire: Optional[int] = Field(default=None, gt=0)
    time_in_force: Optional[Literal["GTC", "IOC", "FOK"]] = None


class CancelChildOrder(BaseModel):
    """Body of ``/v1/me/cancelchildorder``; identify the order by one of the two ids."""
    product_code: str
    child_order_id: Optional[str] = None
    child_order_acceptance_id: Optional[str] = None

    @model_validator(mode="after")
    def _one_order_id(self) -> "CancelChildOrder":
        if not (self.child_order_id or self.child_order_acceptance_id):
            raise ValueError("child_order_id or child_order_acceptance_id is required")
        return self


class CancelAllChildOrders(BaseModel):
    product_code: str
