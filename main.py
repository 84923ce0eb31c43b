#!/usr/bin/env python3
"""
bfclient - command line entry point.

Loads configuration (config/config.yaml, .env, environment), builds a
BitflyerClient with the configured credentials and runs one endpoint
operation, printing the result as JSON on stdout.

Examples:
    python main.py executions --product FX_BTC_JPY --before 31777915 --after 31775063
    python main.py board --product BTC_JPY
    python main.py send-order --product BTC_JPY --type LIMIT --side BUY --size 0.01 --price 3000000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ValidationError

from bfclient.core.config import DEFAULT_CONFIG_PATH, load_config_with_overrides
from bfclient.core.logger import get_logger, setup_logging
from bfclient.exchange.bitflyer_rest import BitflyerClient
from bfclient.exchange.exceptions import ExchangeError
from bfclient.exchange.models import CancelAllChildOrders, CancelChildOrder, NewChildOrder

logger = get_logger("cli")


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump()
    if isinstance(result, list):
        return [_to_jsonable(r) for r in result]
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bfclient", description="bitFlyer REST API client")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML config path")
    parser.add_argument("--log-level", default=None, help="Override configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    def _product(p: argparse.ArgumentParser, required: bool = False) -> None:
        p.add_argument("--product", dest="product_code", required=required, help='e.g. "BTC_JPY", "FX_BTC_JPY"')

    def _paging(p: argparse.ArgumentParser) -> None:
        p.add_argument("--count", type=int)
        p.add_argument("--before", type=int)
        p.add_argument("--after", type=int)

    _product(sub.add_parser("board", help="Order book"))
    _product(sub.add_parser("ticker", help="Ticker snapshot"))

    p = sub.add_parser("executions", help="Recent executions")
    _product(p)
    _paging(p)

    sub.add_parser("balance", help="Account balances (private)")
    sub.add_parser("collateral", help="Margin collateral (private)")

    p = sub.add_parser("orders", help="List your child orders (private)")
    _product(p)
    _paging(p)
    p.add_argument("--state", dest="child_order_state",
                   choices=["ACTIVE", "COMPLETED", "CANCELED", "EXPIRED", "REJECTED"])

    p = sub.add_parser("send-order", help="Send a new child order (private)")
    _product(p, required=True)
    p.add_argument("--type", dest="child_order_type", choices=["LIMIT", "MARKET"], required=True)
    p.add_argument("--side", choices=["BUY", "SELL"], required=True)
    p.add_argument("--size", type=float, required=True)
    p.add_argument("--price", type=float)
    p.add_argument("--minute-to-expire", type=int)
    p.add_argument("--time-in-force", choices=["GTC", "IOC", "FOK"])

    p = sub.add_parser("cancel-order", help="Cancel one child order (private)")
    _product(p, required=True)
    p.add_argument("--order-id", dest="child_order_id")
    p.add_argument("--acceptance-id", dest="child_order_acceptance_id")

    p = sub.add_parser("cancel-all", help="Cancel all active child orders (private)")
    _product(p, required=True)

    return parser


async def run_command(client: BitflyerClient, args: argparse.Namespace) -> Any:
    """Dispatch a parsed command to the matching client operation."""
    cmd = args.command
    if cmd == "board":
        return await client.get_board(args.product_code)
    if cmd == "ticker":
        return await client.get_ticker(args.product_code)
    if cmd == "executions":
        return await client.get_executions(args.product_code, args.count, args.before, args.after)
    if cmd == "balance":
        return await client.get_balances()
    if cmd == "collateral":
        return await client.get_collateral()
    if cmd == "orders":
        return await client.get_child_orders(
            args.product_code, args.count, args.before, args.after, args.child_order_state
        )
    if cmd == "send-order":
        order = NewChildOrder(
            product_code=args.product_code,
            child_order_type=args.child_order_type,
            side=args.side,
            size=args.size,
            price=args.price,
            minute_to_expire=args.minute_to_expire,
            time_in_force=args.time_in_force,
        )
        return await client.send_child_order(order)
    if cmd == "cancel-order":
        await client.cancel_child_order(CancelChildOrder(
            product_code=args.product_code,
            child_order_id=args.child_order_id,
            child_order_acceptance_id=args.child_order_acceptance_id,
        ))
        return {"status": "canceled"}
    if cmd == "cancel-all":
        await client.cancel_all_child_orders(CancelAllChildOrders(product_code=args.product_code))
        return {"status": "canceled"}
    raise ValueError(f"unknown command: {cmd}")


async def _run(args: argparse.Namespace, client: BitflyerClient) -> int:
    try:
        result = await run_command(client, args)
    except ExchangeError as e:
        logger.error("Command failed", command=args.command, error_type=type(e).__name__, error=str(e))
        return 1
    except ValidationError as e:
        logger.error("Invalid order parameters", command=args.command, error=str(e))
        return 2
    finally:
        await client.close()
    print(json.dumps(_to_jsonable(result), indent=2, ensure_ascii=False))
    return 0


def main(argv: Optional[Sequence[str]] = None, client: Optional[BitflyerClient] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_config_with_overrides(args.config)
    except ValidationError as e:
        print(f"[FATAL] Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(
        log_level=args.log_level or settings.logging.level,
        log_dir=settings.logging.log_dir,
        json_output=settings.logging.json_output,
    )

    if client is None:
        try:
            client = BitflyerClient(
                settings.exchange.base_url,
                settings.credentials(),
                timeout_seconds=settings.exchange.timeout_seconds,
            )
        except ExchangeError as e:
            logger.error("Client setup failed", error=str(e))
            return 1

    return asyncio.run(_run(args, client))


if __name__ == "__main__":
    sys.exit(main())
