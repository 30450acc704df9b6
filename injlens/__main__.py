from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import math
import sys
from enum import Enum
from pathlib import Path
from typing import Any

from injlens.config import AppConfig, ConfigError, load_config
from injlens.obs.logging import LogSettings, build_logger, log_event
from injlens.services.api import MarketIntelApi, build_api
from injlens.services.result import Failure, Result

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Injective market intelligence CLI")
    parser.add_argument("--config", help="Path to config YAML (defaults apply when omitted)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    markets_parser = subparsers.add_parser("markets", help="List active markets")
    markets_parser.add_argument("--type", choices=["spot", "derivative"])
    markets_parser.add_argument("--quote", help="Quote token symbol filter")
    markets_parser.add_argument("--search", help="Ticker substring filter")
    markets_parser.add_argument("--sort", choices=["ticker", "type"])
    markets_parser.add_argument("--order", choices=["asc", "desc"])
    markets_parser.add_argument("--limit", help="Page size (1-100)")
    markets_parser.add_argument("--offset", help="Page offset")

    for name, help_text in (
        ("market", "Show one market"),
        ("health", "Composite health score of a market"),
        ("summary", "Market, order book, trade and health digest"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("market_id")

    orderbook_parser = subparsers.add_parser("orderbook", help="Processed order book with metrics")
    orderbook_parser.add_argument("market_id")
    orderbook_parser.add_argument("--depth", help="Levels per side (1-50)")
    orderbook_parser.add_argument("--metrics-only", action="store_true", help="Print metrics only")

    trades_parser = subparsers.add_parser("trades", help="Recent trade statistics")
    trades_parser.add_argument("market_id")
    trades_parser.add_argument("--limit", help="Trade window (1-100)")

    subparsers.add_parser("overview", help="Cross-market overview")

    rankings_parser = subparsers.add_parser("rankings", help="Rank markets by a metric")
    rankings_parser.add_argument("--metric", default="volume")
    rankings_parser.add_argument("--type", choices=["spot", "derivative"])
    rankings_parser.add_argument("--limit", help="Entries to return (1-50)")

    compare_parser = subparsers.add_parser("compare", help="Compare 2-5 markets side by side")
    compare_parser.add_argument("market_ids", help="Comma-separated market IDs")

    subparsers.add_parser("status", help="Cache and upstream status snapshot")

    return parser.parse_args(argv)


def _to_json_ready(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_json_ready(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {key: _to_json_ready(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_ready(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float) and math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def render_result(result: Result[Any]) -> tuple[str, int]:
    if isinstance(result, Failure):
        body = {"error": result.code, "message": result.message, "status_code": result.status_code}
        return json.dumps(body, ensure_ascii=False, indent=2), EXIT_FAILURE
    body = {"data": _to_json_ready(result.value), "stale": result.stale}
    return json.dumps(body, ensure_ascii=False, indent=2), EXIT_OK


async def dispatch(api: MarketIntelApi, args: argparse.Namespace) -> Result[Any]:
    command = args.command
    if command == "markets":
        return await api.get_filtered_markets(
            type=args.type,
            quote=args.quote,
            search=args.search,
            sort=args.sort,
            order=args.order,
            limit=args.limit,
            offset=args.offset,
        )
    if command == "market":
        return await api.get_market_by_id(args.market_id)
    if command == "orderbook":
        if args.metrics_only:
            return await api.get_orderbook_metrics(args.market_id)
        return await api.get_orderbook(args.market_id, args.depth)
    if command == "trades":
        return await api.get_trade_stats(args.market_id, args.limit)
    if command == "health":
        return await api.get_market_health(args.market_id)
    if command == "summary":
        return await api.get_market_summary(args.market_id)
    if command == "overview":
        return await api.get_overview()
    if command == "rankings":
        return await api.get_rankings(args.metric, args.type, args.limit)
    if command == "compare":
        return await api.compare_markets(args.market_ids)
    if command == "status":
        return await api.get_status()
    raise ValueError(f"Unsupported command: {command}")


async def _run(config: AppConfig, args: argparse.Namespace, logger) -> tuple[str, int]:
    log_event(logger, 20, "command_started", f"Running {args.command}", command=args.command)
    async with build_api(config, logger=logger) as api:
        result = await dispatch(api, args)
    if isinstance(result, Failure):
        log_event(logger, 30, "command_failed", result.message, command=args.command, code=result.code)
    return render_result(result)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])

    logger = build_logger(
        LogSettings(level=args.log_level.upper(), service="injlens", log_file=None, jsonl=True)
    )

    config = AppConfig()
    if args.config:
        try:
            config = load_config(Path(args.config)).config
        except ConfigError as exc:
            log_event(logger, 40, "config_invalid", str(exc))
            return EXIT_CONFIG_ERROR
        logger = build_logger(
            LogSettings(
                level=args.log_level.upper(),
                service=config.obs.service_name,
                log_file=None,
                jsonl=config.obs.log_jsonl,
            )
        )

    output, exit_code = asyncio.run(_run(config, args, logger))
    print(output)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
