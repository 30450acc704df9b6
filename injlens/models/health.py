"""
Data models for the composite market health score.
"""

from __future__ import annotations

from dataclasses import dataclass

from injlens.models.market import MarketType


@dataclass(frozen=True)
class LiquidityScore:
    score: int
    bid_depth_notional: float
    ask_depth_notional: float
    depth_imbalance: float


@dataclass(frozen=True)
class SpreadScore:
    score: int
    absolute_spread: float
    relative_spread_bps: float
    mid_price: float


@dataclass(frozen=True)
class VolatilityScore:
    score: int
    recent_volatility: float
    trade_frequency: int
    avg_trade_size: float


@dataclass(frozen=True)
class ActivityScore:
    score: int
    recent_trades: int
    recent_volume: float


@dataclass(frozen=True)
class HealthBreakdown:
    liquidity: LiquidityScore
    spread: SpreadScore
    volatility: VolatilityScore
    activity: ActivityScore


@dataclass(frozen=True)
class MarketHealth:
    """
    Weighted 0-100 health score of one market.

    Attributes:
        market_id: Market identifier.
        ticker: Market ticker.
        type: Venue kind.
        health_score: Composite score, integer in [0, 100].
        health_grade: Letter grade derived from health_score.
        metrics: Sub-scores with the raw inputs that produced them.
        computed_at: ISO-8601 UTC timestamp of the computation.
    """
    market_id: str
    ticker: str
    type: MarketType
    health_score: int
    health_grade: str
    metrics: HealthBreakdown
    computed_at: str
