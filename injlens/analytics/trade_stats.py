"""
Trade normalization and window statistics.

Trades arrive newest first. Each one is converted with the venue-specific
price/quantity rules and tagged with a side: only an explicit "buy"
direction is a buy, anything else (including a missing field) is a sell.

Statistics:
    - Sums: total volume, total notional
    - Means: average price, average trade size
    - Range: high/low price
    - Change: newest price (index 0) − oldest price (last index)
    - Flow: buy/sell counts and ratio
    - Realized volatility of the normalized prices
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from injlens.analytics.decimals import parse_number, to_fixed_safe
from injlens.analytics.market_math import realized_volatility
from injlens.analytics.orderbook_metrics import to_human
from injlens.models.market import NormalizedMarket
from injlens.models.trades import NormalizedTrade, TradeSide, TradeStats

MAX_TRADES_LIMIT = 100
DEFAULT_TRADES_LIMIT = 100


def _utc_iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _executed_at(raw: Any) -> str:
    millis = parse_number(raw)
    if millis <= 0:
        return _utc_iso(datetime.now(timezone.utc))
    try:
        return _utc_iso(datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc))
    except (OverflowError, OSError, ValueError):
        return _utc_iso(datetime.now(timezone.utc))


def normalize_trade(raw: Mapping[str, Any], market: NormalizedMarket) -> NormalizedTrade:
    if market.type == "spot":
        raw_price = raw.get("price") or "0"
        raw_quantity = raw.get("quantity") or "0"
    else:
        raw_price = raw.get("executionPrice") or raw.get("price") or "0"
        raw_quantity = raw.get("executionQuantity") or raw.get("quantity") or "0"
    price, quantity = to_human(market, str(raw_price), str(raw_quantity))

    return NormalizedTrade(
        trade_id=str(raw.get("tradeId") or ""),
        market_id=market.market_id,
        price=to_fixed_safe(price, 8),
        quantity=to_fixed_safe(quantity, 6),
        notional=to_fixed_safe(price * quantity, 2),
        side=TradeSide.BUY if raw.get("tradeDirection") == "buy" else TradeSide.SELL,
        executed_at=_executed_at(raw.get("executedAt")),
        fee=str(raw.get("fee") or "0"),
    )


def empty_trade_stats(market: NormalizedMarket) -> TradeStats:
    return TradeStats(
        market_id=market.market_id,
        ticker=market.ticker,
        period="no_data",
        total_trades=0,
        total_volume=0.0,
        total_notional=0.0,
        avg_price=0.0,
        avg_trade_size=0.0,
        high_price=0.0,
        low_price=0.0,
        price_change=0.0,
        price_change_percent=0.0,
        buy_count=0,
        sell_count=0,
        buy_sell_ratio=0.0,
        volatility=0.0,
        trades=(),
    )


def compute_trade_stats(market: NormalizedMarket, trades: Sequence[NormalizedTrade]) -> TradeStats:
    """
    Compute statistics over a window of normalized trades (newest first).

    An empty window yields the "no_data" record with every numeric field at
    zero; no division is attempted.
    """
    if not trades:
        return empty_trade_stats(market)

    prices = [trade.price for trade in trades]
    count = len(trades)

    total_volume = to_fixed_safe(sum(trade.quantity for trade in trades), 6)
    total_notional = to_fixed_safe(sum(trade.notional for trade in trades), 2)

    newest_price = prices[0]
    oldest_price = prices[-1]
    price_change = to_fixed_safe(newest_price - oldest_price, 8)
    price_change_percent = (
        to_fixed_safe(price_change / oldest_price * 100, 4) if oldest_price > 0 else 0.0
    )

    buy_count = sum(1 for trade in trades if trade.side is TradeSide.BUY)
    sell_count = count - buy_count
    if sell_count > 0:
        buy_sell_ratio = to_fixed_safe(buy_count / sell_count, 4)
    elif buy_count > 0:
        buy_sell_ratio = float("inf")
    else:
        buy_sell_ratio = 0.0

    return TradeStats(
        market_id=market.market_id,
        ticker=market.ticker,
        period=f"last_{count}_trades",
        total_trades=count,
        total_volume=total_volume,
        total_notional=total_notional,
        avg_price=to_fixed_safe(sum(prices) / count, 8),
        avg_trade_size=to_fixed_safe(total_volume / count, 6),
        high_price=to_fixed_safe(max(prices), 8),
        low_price=to_fixed_safe(min(prices), 8),
        price_change=price_change,
        price_change_percent=price_change_percent,
        buy_count=buy_count,
        sell_count=sell_count,
        buy_sell_ratio=buy_sell_ratio,
        volatility=to_fixed_safe(realized_volatility(prices), 6),
        trades=tuple(trades),
    )
