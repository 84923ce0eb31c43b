"""Endpoint operation tests against an in-process mock of the bitFlyer API."""

from __future__ import annotations

import json

import httpx
import pytest

from bfclient.exchange.auth import build_signature
from bfclient.exchange.exceptions import APIError, ConfigurationError, DecodeError
from bfclient.exchange.models import (
    CancelAllChildOrders,
    CancelChildOrder,
    NewChildOrder,
)

EXECUTIONS = [
    {
        "id": 31777914,
        "side": "BUY",
        "price": 30795,
        "size": 0.01,
        "exec_date": "2015-07-08T02:43:34.823",
        "buy_child_order_acceptance_id": "JRF20150707-200203-452209",
        "sell_child_order_acceptance_id": "JRF20150708-024334-060234",
    },
    {
        "id": 31777913,
        "side": "SELL",
        "price": 30794.5,
        "size": 27.04,
        "exec_date": "2015-07-08T02:43:34.653",
        "buy_child_order_acceptance_id": "JRF20150708-024334-060235",
        "sell_child_order_acceptance_id": "JRF20150708-024333-060211",
    },
]

CHILD_ORDERS = [
    {
        "id": 138398,
        "child_order_id": "JOR20150707-084555-022523",
        "product_code": "BTC_JPY",
        "side": "BUY",
        "child_order_type": "LIMIT",
        "price": 30000,
        "average_price": 30000,
        "size": 0.1,
        "child_order_state": "COMPLETED",
        "expire_date": "2015-07-14T07:25:52",
        "child_order_date": "2015-07-07T08:45:53",
        "child_order_acceptance_id": "JRF20150707-084552-031927",
        "outstanding_size": 0,
        "cancel_size": 0,
        "executed_size": 0.1,
        "total_commission": 0,
    }
]


def _assert_signed(request: httpx.Request, secret: str, body: str = "") -> None:
    ts = request.headers["ACCESS-TIMESTAMP"]
    path = request.url.raw_path.decode("ascii")
    assert request.headers["ACCESS-KEY"] == "test-key"
    assert request.headers["ACCESS-SIGN"] == build_signature(secret, ts, request.method, path, body)


# ---- Public endpoints ----

@pytest.mark.asyncio
async def test_get_board_decodes_depth(recorder, client_factory):
    recorder.payload = {
        "mid_price": 100.5,
        "bids": [{"price": 100, "size": 1}],
        "asks": [{"price": 101, "size": 2}],
    }
    client = client_factory(recorder)

    board = await client.get_board("BTC_JPY")

    assert recorder.last.method == "GET"
    assert recorder.last.url.raw_path == b"/v1/getboard?product_code=BTC_JPY"
    assert "ACCESS-SIGN" not in recorder.last.headers
    assert board.mid_price == 100.5
    assert [(b.price, b.size) for b in board.bids] == [(100, 1)]
    assert [(a.price, a.size) for a in board.asks] == [(101, 2)]
    await client.close()


@pytest.mark.asyncio
async def test_get_ticker_without_product_sends_no_query(recorder, client_factory):
    recorder.payload = {
        "product_code": "BTC_JPY",
        "timestamp": "2015-07-08T02:50:59.97",
        "tick_id": 3579,
        "best_bid": 30000,
        "best_ask": 36640,
        "best_bid_size": 0.1,
        "best_ask_size": 5,
        "total_bid_depth": 15.13,
        "total_ask_depth": 20,
        "ltp": 31690,
        "volume": 16819.26,
        "volume_by_product": 6819.26,
    }
    client = client_factory(recorder)

    ticker = await client.get_ticker()

    assert recorder.last.url.query == b""
    assert ticker.tick_id == 3579
    assert ticker.ltp == 31690
    assert ticker.timestamp == "2015-07-08T02:50:59.97"
    assert ticker.volume_by_product == 6819.26


@pytest.mark.asyncio
async def test_get_executions_round_trips_fields(recorder, client_factory):
    recorder.payload = EXECUTIONS
    client = client_factory(recorder)

    executions = await client.get_executions("FX_BTC_JPY", before=31777915, after=31775063)

    assert recorder.last.url.params.multi_items() == [
        ("product_code", "FX_BTC_JPY"),
        ("before", "31777915"),
        ("after", "31775063"),
    ]
    assert len(executions) == len(EXECUTIONS)
    for execution, source in zip(executions, EXECUTIONS):
        assert execution.model_dump() == source


@pytest.mark.asyncio
async def test_get_executions_with_all_filters_empty(recorder, client_factory):
    recorder.payload = []
    client = client_factory(recorder)

    assert await client.get_executions(product_code="", count=None) == []
    assert recorder.last.url.query == b""


@pytest.mark.asyncio
async def test_public_endpoint_with_unexpected_body_raises_decode_error(recorder, client_factory):
    recorder.status_code = 400
    recorder.payload = {"status": -1, "error_message": "invalid product"}
    client = client_factory(recorder)

    with pytest.raises(DecodeError):
        await client.get_executions("NOPE")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.get_board("BTC_JPY"),
        lambda c: c.get_ticker("BTC_JPY"),
        lambda c: c.get_collateral(),
    ],
)
async def test_error_body_on_object_endpoint_raises_decode_error(recorder, client_factory, credentials, call):
    recorder.status_code = 401
    recorder.payload = {"status": -500, "error_message": "Invalid signature"}
    client = client_factory(recorder, credentials)

    with pytest.raises(DecodeError):
        await call(client)
    assert len(recorder.requests) == 1


# ---- Private reads ----

@pytest.mark.asyncio
async def test_get_balances_is_signed(recorder, client_factory, credentials):
    recorder.payload = [
        {"currency_code": "JPY", "amount": 1024078, "available": 508000},
        {"currency_code": "BTC", "amount": 10.24, "available": 4.12},
    ]
    client = client_factory(recorder, credentials)

    balances = await client.get_balances()

    _assert_signed(recorder.last, "s3cret")
    assert "Content-Type" not in recorder.last.headers
    assert [b.currency_code for b in balances] == ["JPY", "BTC"]
    assert balances[1].available == 4.12


@pytest.mark.asyncio
async def test_get_collateral(recorder, client_factory, credentials):
    recorder.payload = {
        "collateral": 100000,
        "open_position_pnl": -715,
        "require_collateral": 19857,
        "keep_rate": 5.000,
    }
    client = client_factory(recorder, credentials)

    collateral = await client.get_collateral()

    assert recorder.last.url.path == "/v1/me/getcollateral"
    _assert_signed(recorder.last, "s3cret")
    assert collateral.open_position_pnl == -715
    assert collateral.keep_rate == 5.0


@pytest.mark.asyncio
async def test_get_child_orders_signs_path_with_query(recorder, client_factory, credentials):
    recorder.payload = CHILD_ORDERS
    client = client_factory(recorder, credentials)

    orders = await client.get_child_orders("BTC_JPY", count=10, child_order_state="COMPLETED")

    assert recorder.last.url.raw_path == (
        b"/v1/me/getchildorders?product_code=BTC_JPY&count=10&child_order_state=COMPLETED"
    )
    _assert_signed(recorder.last, "s3cret")
    assert len(orders) == 1
    assert orders[0].model_dump() == CHILD_ORDERS[0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.get_balances(),
        lambda c: c.get_collateral(),
        lambda c: c.get_child_orders(),
        lambda c: c.send_child_order(
            NewChildOrder(product_code="BTC_JPY", child_order_type="MARKET", side="BUY", size=0.01)
        ),
        lambda c: c.cancel_child_order(CancelChildOrder(product_code="BTC_JPY", child_order_id="X")),
        lambda c: c.cancel_all_child_orders(CancelAllChildOrders(product_code="BTC_JPY")),
    ],
)
async def test_private_operations_require_credentials(recorder, client_factory, call):
    client = client_factory(recorder)
    assert client.authenticated is False

    with pytest.raises(ConfigurationError):
        await call(client)
    assert recorder.requests == []


# ---- Writes ----

@pytest.mark.asyncio
async def test_send_child_order_posts_signed_json(recorder, client_factory, credentials):
    recorder.payload = {"child_order_acceptance_id": "JRF20150707-050237-639234"}
    client = client_factory(recorder, credentials)
    order = NewChildOrder(
        product_code="BTC_JPY",
        child_order_type="LIMIT",
        side="BUY",
        price=30000,
        size=0.1,
        minute_to_expire=10000,
        time_in_force="GTC",
    )

    accepted = await client.send_child_order(order)

    request = recorder.last
    body = request.content.decode("utf-8")
    assert request.method == "POST"
    assert request.url.path == "/v1/me/sendchildorder"
    assert request.headers["Content-Type"] == "application/json"
    _assert_signed(request, "s3cret", body)
    assert json.loads(body) == {
        "product_code": "BTC_JPY",
        "child_order_type": "LIMIT",
        "side": "BUY",
        "size": 0.1,
        "price": 30000.0,
        "minute_to_expire": 10000,
        "time_in_force": "GTC",
    }
    assert accepted.child_order_acceptance_id == "JRF20150707-050237-639234"


@pytest.mark.asyncio
async def test_market_order_body_omits_unset_fields(recorder, client_factory, credentials):
    recorder.payload = {"child_order_acceptance_id": "JRF1"}
    client = client_factory(recorder, credentials)

    await client.send_child_order(
        NewChildOrder(product_code="FX_BTC_JPY", child_order_type="MARKET", side="SELL", size=0.5)
    )

    assert recorder.last_json() == {
        "product_code": "FX_BTC_JPY",
        "child_order_type": "MARKET",
        "side": "SELL",
        "size": 0.5,
    }


@pytest.mark.asyncio
async def test_write_with_http_400_raises_api_error(recorder, client_factory, credentials):
    recorder.status_code = 400
    recorder.payload = {"status": -106, "error_message": "The price is too low."}
    client = client_factory(recorder, credentials)

    with pytest.raises(APIError) as exc:
        await client.send_child_order(
            NewChildOrder(product_code="BTC_JPY", child_order_type="LIMIT", side="BUY", price=1, size=0.1)
        )

    assert exc.value.status_code == 400
    assert "400 Bad Request" in str(exc.value)
    assert "The price is too low." in exc.value.body


@pytest.mark.asyncio
async def test_cancel_child_order_succeeds_on_200(recorder, client_factory, credentials):
    recorder.content = b""
    client = client_factory(recorder, credentials)

    result = await client.cancel_child_order(
        CancelChildOrder(product_code="BTC_JPY", child_order_acceptance_id="JRF20150707-033333-099999")
    )

    assert result is None
    assert recorder.last.url.path == "/v1/me/cancelchildorder"
    assert recorder.last_json() == {
        "product_code": "BTC_JPY",
        "child_order_acceptance_id": "JRF20150707-033333-099999",
    }
    _assert_signed(recorder.last, "s3cret", recorder.last.content.decode())


@pytest.mark.asyncio
async def test_cancel_child_order_non_200_raises(recorder, client_factory, credentials):
    recorder.status_code = 404
    recorder.content = b""
    client = client_factory(recorder, credentials)

    with pytest.raises(APIError) as exc:
        await client.cancel_child_order(CancelChildOrder(product_code="BTC_JPY", child_order_id="JOR1"))
    assert "404 Not Found" in str(exc.value)


@pytest.mark.asyncio
async def test_cancel_all_child_orders(recorder, client_factory, credentials):
    recorder.content = b""
    client = client_factory(recorder, credentials)

    await client.cancel_all_child_orders(CancelAllChildOrders(product_code="BTC_JPY"))

    assert recorder.last.url.path == "/v1/me/cancelallchildorders"
    assert recorder.last_json() == {"product_code": "BTC_JPY"}


@pytest.mark.asyncio
async def test_cancel_all_non_200_is_not_silent_success(recorder, client_factory, credentials):
    recorder.status_code = 500
    recorder.payload = {"status": -500}
    client = client_factory(recorder, credentials)

    with pytest.raises(APIError):
        await client.cancel_all_child_orders(CancelAllChildOrders(product_code="BTC_JPY"))
