"""
Data models for normalized trades and trade window statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class NormalizedTrade:
    trade_id: str
    market_id: str
    price: float
    quantity: float
    notional: float
    side: TradeSide
    executed_at: str
    fee: str


@dataclass(frozen=True)
class TradeStats:
    """
    Statistics over the most recent window of trades.

    The window is a backward-looking slice ordered newest first, so
    ``price_change`` compares the newest trade with the oldest trade of the
    window rather than a calendar open/close.

    Attributes:
        market_id: Market identifier.
        ticker: Market ticker.
        period: "last_<n>_trades", or "no_data" for an empty window.
        total_trades: Number of trades in the window.
        total_volume: Sum of quantities.
        total_notional: Sum of notionals (quote units).
        avg_price: Mean trade price.
        avg_trade_size: Mean trade quantity.
        high_price: Highest trade price.
        low_price: Lowest trade price.
        price_change: Newest price − oldest price.
        price_change_percent: price_change / oldest price × 100 (0 if oldest ≤ 0).
        buy_count: Trades tagged buy.
        sell_count: Trades tagged sell.
        buy_sell_ratio: buy_count / sell_count; inf with buys but no sells; 0 if empty.
        volatility: Realized volatility of the window's prices.
        trades: The normalized trades, newest first.
    """
    market_id: str
    ticker: str
    period: str
    total_trades: int
    total_volume: float
    total_notional: float
    avg_price: float
    avg_trade_size: float
    high_price: float
    low_price: float
    price_change: float
    price_change_percent: float
    buy_count: int
    sell_count: int
    buy_sell_ratio: float
    volatility: float
    trades: tuple[NormalizedTrade, ...]
