"""
Data models for processed order books.

Levels carry human-readable prices and quantities together with the running
cumulative quantity of their side, best level first.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OrderbookLevel:
    """
    One price level of a processed order book side.

    Attributes:
        price: Human-readable price.
        quantity: Human-readable quantity at this price.
        total: Cumulative quantity up to and including this level.
        notional: price × quantity in quote units.
    """
    price: float
    quantity: float
    total: float
    notional: float


@dataclass(frozen=True)
class OrderbookMetrics:
    """
    Depth and spread summary of an order book.

    Attributes:
        mid_price: (best_bid + best_ask) / 2, or 0 when a side is empty.
        best_bid: Price of the first bid level (0 when empty).
        best_ask: Price of the first ask level (0 when empty).
        absolute_spread: best_ask − best_bid, or 0 when a side is empty.
        relative_spread_bps: Spread relative to mid in basis points.
        bid_depth_total: Cumulative bid quantity over the requested depth.
        ask_depth_total: Cumulative ask quantity over the requested depth.
        bid_depth_notional: Sum of bid level notionals.
        ask_depth_notional: Sum of ask level notionals.
        depth_imbalance: |bid − ask| / (bid + ask) notional, in [0, 1].
    """
    mid_price: float
    best_bid: float
    best_ask: float
    absolute_spread: float
    relative_spread_bps: float
    bid_depth_total: float
    ask_depth_total: float
    bid_depth_notional: float
    ask_depth_notional: float
    depth_imbalance: float

    @property
    def total_depth_notional(self) -> float:
        return self.bid_depth_notional + self.ask_depth_notional


@dataclass(frozen=True)
class ProcessedOrderbook:
    market_id: str
    ticker: str
    bids: tuple[OrderbookLevel, ...]
    asks: tuple[OrderbookLevel, ...]
    metrics: OrderbookMetrics
    timestamp: str
