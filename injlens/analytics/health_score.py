"""
Composite market health scoring.

Four sub-scores, each clamped to [0, 100], are combined with fixed weights
into an integer health score and a letter grade.

Sub-scores:
    - **Liquidity** (30%): total notional depth scaled to $500k, minus
      imbalance × 30.
    - **Spread** (25%): ≤ 5 bps scores 100, ≥ 200 bps scores 0, linear in
      between; a non-positive spread (empty side) scores 0.
    - **Volatility** (20%): step function rewarding moderate volatility,
      plus a trade frequency bonus of min(20, trades / 2).
    - **Activity** (25%): min(80, trades / 100 × 80) + min(20, notional / 100k × 20).

Grades:
    ≥ 90 A+, ≥ 80 A, ≥ 70 B, ≥ 60 C, ≥ 50 D, otherwise F.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from injlens.analytics.market_math import clamp, score_to_grade
from injlens.models.health import (
    ActivityScore,
    HealthBreakdown,
    LiquidityScore,
    MarketHealth,
    SpreadScore,
    VolatilityScore,
)
from injlens.models.market import NormalizedMarket
from injlens.models.orderbook import OrderbookMetrics
from injlens.models.trades import TradeStats

WEIGHTS = {
    "liquidity": 0.30,
    "spread": 0.25,
    "volatility": 0.20,
    "activity": 0.25,
}

LIQUIDITY_FULL_DEPTH = 500_000
IMBALANCE_PENALTY = 30
SPREAD_BEST_BPS = 5
SPREAD_WORST_BPS = 200
ACTIVITY_FULL_TRADES = 100
ACTIVITY_FULL_NOTIONAL = 100_000

# (upper bound, inclusive upper bound, score); "too quiet → sweet spot → too volatile"
_VOLATILITY_BUCKETS: tuple[tuple[float, bool, float], ...] = (
    (0.001, False, 30),
    (0.005, False, 60),
    (0.03, True, 90),
    (0.08, True, 60),
)
_VOLATILITY_EXTREME_SCORE = 20


def liquidity_score(total_depth_notional: float, imbalance: float) -> float:
    depth_score = clamp(total_depth_notional / LIQUIDITY_FULL_DEPTH * 100, 0, 100)
    return clamp(depth_score - imbalance * IMBALANCE_PENALTY, 0, 100)


def spread_score(spread_bps: float) -> float:
    if spread_bps <= 0:
        return 0.0
    span = SPREAD_WORST_BPS - SPREAD_BEST_BPS
    return clamp(100 - (spread_bps - SPREAD_BEST_BPS) / span * 100, 0, 100)


def volatility_bucket(volatility: float) -> float:
    for bound, inclusive, score in _VOLATILITY_BUCKETS:
        if volatility < bound or (inclusive and volatility == bound):
            return score
    return _VOLATILITY_EXTREME_SCORE


def volatility_score(volatility: float, trade_count: int) -> float:
    frequency_bonus = clamp(trade_count / 2, 0, 20)
    return clamp(volatility_bucket(volatility) + frequency_bonus, 0, 100)


def activity_score(trade_count: int, notional_volume: float) -> float:
    count_score = clamp(trade_count / ACTIVITY_FULL_TRADES * 80, 0, 80)
    volume_score = clamp(notional_volume / ACTIVITY_FULL_NOTIONAL * 20, 0, 20)
    return clamp(count_score + volume_score, 0, 100)


def composite_score(liquidity: float, spread: float, volatility: float, activity: float) -> int:
    weighted = (
        liquidity * WEIGHTS["liquidity"]
        + spread * WEIGHTS["spread"]
        + volatility * WEIGHTS["volatility"]
        + activity * WEIGHTS["activity"]
    )
    return int(clamp(_round_half_up(weighted), 0, 100))


def _round_half_up(value: float) -> int:
    # halves round up, not to even
    return math.floor(value + 0.5)


def compute_market_health(
    market: NormalizedMarket,
    orderbook: OrderbookMetrics,
    trade_stats: TradeStats,
    *,
    computed_at: datetime | None = None,
) -> MarketHealth:
    """
    Combine order book metrics and trade statistics into a health record.

    Args:
        market: Market the inputs belong to.
        orderbook: Depth/spread metrics of the market's book.
        trade_stats: Statistics of the market's recent trade window.
        computed_at: Timestamp override (defaults to now, UTC).

    Returns:
        MarketHealth with composite score, grade and sub-score breakdown.
    """
    liquidity = liquidity_score(orderbook.total_depth_notional, orderbook.depth_imbalance)
    spread = spread_score(orderbook.relative_spread_bps)
    volatility = volatility_score(trade_stats.volatility, trade_stats.total_trades)
    activity = activity_score(trade_stats.total_trades, trade_stats.total_notional)

    health_score = composite_score(liquidity, spread, volatility, activity)
    moment = computed_at or datetime.now(timezone.utc)

    return MarketHealth(
        market_id=market.market_id,
        ticker=market.ticker,
        type=market.type,
        health_score=health_score,
        health_grade=score_to_grade(health_score),
        metrics=HealthBreakdown(
            liquidity=LiquidityScore(
                score=_round_half_up(liquidity),
                bid_depth_notional=orderbook.bid_depth_notional,
                ask_depth_notional=orderbook.ask_depth_notional,
                depth_imbalance=orderbook.depth_imbalance,
            ),
            spread=SpreadScore(
                score=_round_half_up(spread),
                absolute_spread=orderbook.absolute_spread,
                relative_spread_bps=orderbook.relative_spread_bps,
                mid_price=orderbook.mid_price,
            ),
            volatility=VolatilityScore(
                score=_round_half_up(volatility),
                recent_volatility=trade_stats.volatility,
                trade_frequency=trade_stats.total_trades,
                avg_trade_size=trade_stats.avg_trade_size,
            ),
            activity=ActivityScore(
                score=_round_half_up(activity),
                recent_trades=trade_stats.total_trades,
                recent_volume=trade_stats.total_notional,
            ),
        ),
        computed_at=moment.isoformat().replace("+00:00", "Z"),
    )
