"""
Order book depth and spread metrics.

Raw indexer levels (chain-format price/quantity strings) are converted to
human-readable values using the market's venue kind, accumulated into a
running cumulative quantity per side and valued at price × quantity.

Key Metrics:
    - **Mid price**: (best_bid + best_ask) / 2, only when both sides are positive
    - **Relative spread**: (best_ask − best_bid) / mid × 10,000 bps
    - **Depth**: cumulative quantity and summed notional per side
    - **Depth imbalance**: |bid_notional − ask_notional| / (bid_notional + ask_notional)

Example:
    >>> bids = process_levels([{"price": "100000000", "quantity": "2"}], market, depth=25)
    >>> asks = process_levels([{"price": "101000000", "quantity": "1"}], market, depth=25)
    >>> compute_orderbook_metrics(bids, asks).relative_spread_bps
    99.5
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from injlens.analytics.decimals import (
    derivative_price_to_human,
    derivative_quantity_to_human,
    spot_price_to_human,
    spot_quantity_to_human,
    to_fixed_safe,
)
from injlens.analytics.market_math import depth_imbalance, relative_spread_bps
from injlens.models.market import NormalizedMarket
from injlens.models.orderbook import OrderbookLevel, OrderbookMetrics

MAX_ORDERBOOK_DEPTH = 50
DEFAULT_ORDERBOOK_DEPTH = 25


def to_human(market: NormalizedMarket, price: str, quantity: str) -> tuple[float, float]:
    """Convert a chain-format price/quantity pair using the market's venue rules."""
    if market.type == "spot":
        return (
            spot_price_to_human(price, market.base_decimals, market.quote_decimals),
            spot_quantity_to_human(quantity, market.base_decimals),
        )
    return (
        derivative_price_to_human(price, market.quote_decimals),
        derivative_quantity_to_human(quantity),
    )


def _level_fields(entry: Any) -> tuple[str, str]:
    if isinstance(entry, Mapping):
        return str(entry.get("price") or ""), str(entry.get("quantity") or "")
    if isinstance(entry, Sequence) and not isinstance(entry, str) and len(entry) >= 2:
        return str(entry[0]), str(entry[1])
    raise ValueError("Order book level must have price and quantity")


def process_levels(
    raw_levels: Iterable[Any],
    market: NormalizedMarket,
    depth: int,
) -> tuple[OrderbookLevel, ...]:
    """
    Build the first ``depth`` levels of one book side.

    Args:
        raw_levels: Raw levels best first, as {"price", "quantity"} mappings
            or [price, quantity] pairs in chain format.
        market: Market metadata used for the decimal conversion.
        depth: Number of levels to keep.

    Returns:
        Levels with cumulative ``total`` and ``notional`` filled in.

    Raises:
        ValueError: If a level is neither a mapping nor a pair.
    """
    levels: list[OrderbookLevel] = []
    cumulative = 0.0
    for index, entry in enumerate(raw_levels):
        if index >= depth:
            break
        raw_price, raw_quantity = _level_fields(entry)
        price, quantity = to_human(market, raw_price, raw_quantity)
        cumulative += quantity
        levels.append(
            OrderbookLevel(
                price=to_fixed_safe(price, 8),
                quantity=to_fixed_safe(quantity, 6),
                total=to_fixed_safe(cumulative, 6),
                notional=to_fixed_safe(price * quantity, 2),
            )
        )
    return tuple(levels)


def compute_orderbook_metrics(
    bids: Sequence[OrderbookLevel],
    asks: Sequence[OrderbookLevel],
) -> OrderbookMetrics:
    best_bid = bids[0].price if bids else 0.0
    best_ask = asks[0].price if asks else 0.0
    both_sides = best_bid > 0 and best_ask > 0
    mid_price = to_fixed_safe((best_bid + best_ask) / 2, 8) if both_sides else 0.0
    absolute_spread = to_fixed_safe(best_ask - best_bid, 8) if both_sides else 0.0

    bid_depth_total = bids[-1].total if bids else 0.0
    ask_depth_total = asks[-1].total if asks else 0.0

    bid_depth_notional = to_fixed_safe(sum(level.notional for level in bids), 2)
    ask_depth_notional = to_fixed_safe(sum(level.notional for level in asks), 2)

    return OrderbookMetrics(
        mid_price=mid_price,
        best_bid=to_fixed_safe(best_bid, 8),
        best_ask=to_fixed_safe(best_ask, 8),
        absolute_spread=absolute_spread,
        relative_spread_bps=to_fixed_safe(relative_spread_bps(best_bid, best_ask), 2),
        bid_depth_total=to_fixed_safe(bid_depth_total, 6),
        ask_depth_total=to_fixed_safe(ask_depth_total, 6),
        bid_depth_notional=bid_depth_notional,
        ask_depth_notional=ask_depth_notional,
        depth_imbalance=to_fixed_safe(depth_imbalance(bid_depth_notional, ask_depth_notional), 4),
    )
