"""
Cross-market aggregates.

None of these are computed from upstream data directly; they are assembled
from cached per-market order book, trade and health results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from injlens.models.market import MarketType, NormalizedMarket
from injlens.models.orderbook import OrderbookMetrics

RankingMetric = Literal["volume", "liquidity", "health", "spread", "volatility"]
RANKING_METRICS: tuple[RankingMetric, ...] = ("volume", "liquidity", "health", "spread", "volatility")


@dataclass(frozen=True)
class TopMarketByVolume:
    ticker: str
    volume: float


@dataclass(frozen=True)
class TopMarketByLiquidity:
    ticker: str
    depth: float


@dataclass(frozen=True)
class AnalyticsOverview:
    total_markets: int
    active_spot_markets: int
    active_derivative_markets: int
    total_recent_volume: float
    avg_health_score: int
    top_market_by_volume: TopMarketByVolume | None
    top_market_by_liquidity: TopMarketByLiquidity | None
    timestamp: str


@dataclass(frozen=True)
class MarketRanking:
    rank: int
    market_id: str
    ticker: str
    type: MarketType
    value: float
    metric: RankingMetric


@dataclass(frozen=True)
class MarketComparisonEntry:
    market_id: str
    ticker: str
    type: MarketType
    mid_price: float
    spread_bps: float
    liquidity_depth: float
    volume: float
    volatility: float
    health_score: int
    health_grade: str


@dataclass(frozen=True)
class MarketComparison:
    markets: tuple[MarketComparisonEntry, ...]
    best_by_spread: str | None
    best_by_liquidity: str | None
    best_by_health: str | None
    compared_at: str


@dataclass(frozen=True)
class TradeDigest:
    total_trades: int
    total_volume: float
    avg_price: float
    high_price: float
    low_price: float
    price_change: float
    price_change_percent: float
    volatility: float


@dataclass(frozen=True)
class HealthDigest:
    score: int
    grade: str


@dataclass(frozen=True)
class MarketSummary:
    market: NormalizedMarket
    orderbook: OrderbookMetrics
    trade_stats: TradeDigest
    health: HealthDigest
    timestamp: str
