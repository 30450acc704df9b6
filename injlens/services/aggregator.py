"""
Cross-market aggregation: overview, rankings, comparisons and summaries.

Every aggregate is assembled from cached per-market results. Fan-out issues
one coroutine per market, all of them before the first suspension, and joins
with ``asyncio.gather(..., return_exceptions=True)`` so that one failing
market never cancels or fails the others.

Fan-out rules:
    - Results are consumed in issue order, not completion order; ties in
      "top by X" selections go to the first issued market.
    - A market whose computation raises UpstreamUnavailableError (or whose
      market record vanished between refreshes) is dropped and logged.
    - Any other exception is a bug and is re-raised.

Working set:
    The first ``max_markets`` markets (30 by default) bound the fan-out, with
    smaller sub-caps for order book (15) and health (10) sampling in the
    overview.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence, TypeVar

from injlens.analytics.decimals import to_fixed_safe
from injlens.config import AggregationConfig, CacheConfig
from injlens.models.analytics import (
    RANKING_METRICS,
    AnalyticsOverview,
    HealthDigest,
    MarketComparison,
    MarketComparisonEntry,
    MarketRanking,
    MarketSummary,
    RankingMetric,
    TopMarketByLiquidity,
    TopMarketByVolume,
    TradeDigest,
)
from injlens.models.market import MARKET_TYPES, MarketType, NormalizedMarket
from injlens.obs.logging import log_event
from injlens.services.cache import ResilientCache
from injlens.services.errors import InvalidParameterError, MarketNotFoundError, UpstreamUnavailableError
from injlens.services.health import HealthService
from injlens.services.markets import MarketService
from injlens.services.orderbook import OrderbookService
from injlens.services.trades import TradeService
from injlens.services.validation import parse_market_ids

T = TypeVar("T")

DEFAULT_RANKINGS_LIMIT = 10
MAX_RANKINGS_LIMIT = 50
SUMMARY_TRADES_LIMIT = 100

_DROPPABLE = (UpstreamUnavailableError, MarketNotFoundError)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def rank_entries(
    entries: Sequence[tuple[NormalizedMarket, float]],
    metric: RankingMetric,
    limit: int,
) -> list[MarketRanking]:
    """
    Order (market, value) pairs into a ranking.

    Spread ranks ascending (tighter is better), every other metric
    descending. The sort is stable, so equal values keep issue order.
    """
    ascending = metric == "spread"
    ordered = sorted(entries, key=lambda entry: entry[1] if ascending else -entry[1])
    return [
        MarketRanking(
            rank=position,
            market_id=market.market_id,
            ticker=market.ticker,
            type=market.type,
            value=to_fixed_safe(value, 6),
            metric=metric,
        )
        for position, (market, value) in enumerate(ordered[:limit], start=1)
    ]


def pick_best_by_spread(entries: Sequence[MarketComparisonEntry]) -> str | None:
    quoted = [entry for entry in entries if entry.spread_bps > 0] or list(entries)
    best: MarketComparisonEntry | None = None
    for entry in quoted:
        if best is None or entry.spread_bps < best.spread_bps:
            best = entry
    return best.ticker if best else None


def pick_best_by_max(entries: Sequence[MarketComparisonEntry], attribute: str) -> str | None:
    best: MarketComparisonEntry | None = None
    for entry in entries:
        if best is None or getattr(entry, attribute) > getattr(best, attribute):
            best = entry
    return best.ticker if best else None


class CrossMarketAggregator:
    def __init__(
        self,
        markets: MarketService,
        orderbooks: OrderbookService,
        trades: TradeService,
        health: HealthService,
        cache: ResilientCache,
        cache_config: CacheConfig,
        aggregation_config: AggregationConfig,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._markets = markets
        self._orderbooks = orderbooks
        self._trades = trades
        self._health = health
        self._cache = cache
        self._cache_config = cache_config
        self._config = aggregation_config
        self._logger = logger or logging.getLogger(__name__)

    async def fan_out(
        self,
        operation: str,
        markets: Sequence[NormalizedMarket],
        compute: Callable[[NormalizedMarket], Awaitable[T]],
    ) -> list[tuple[NormalizedMarket, T]]:
        results = await asyncio.gather(*(compute(market) for market in markets), return_exceptions=True)
        collected: list[tuple[NormalizedMarket, T]] = []
        for market, result in zip(markets, results):
            if isinstance(result, _DROPPABLE):
                log_event(
                    self._logger,
                    logging.WARNING,
                    "fanout_member_dropped",
                    "Dropping market from aggregate",
                    operation=operation,
                    market_id=market.market_id,
                    error=str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            collected.append((market, result))
        return collected

    async def get_overview(self) -> AnalyticsOverview:
        result = await self._cache.get_or_compute(
            "analytics:overview", self._cache_config.analytics_ttl_s, self._compute_overview
        )
        return result.data

    async def _compute_overview(self) -> AnalyticsOverview:
        markets = await self._markets.list_all_markets()
        working_set = markets[: self._config.max_markets]
        trades_limit = self._config.overview_trades_limit

        trade_results, book_results, health_results = await asyncio.gather(
            self.fan_out(
                "overview_trades",
                working_set,
                lambda market: self._trades.get_trade_stats(market.market_id, trades_limit),
            ),
            self.fan_out(
                "overview_liquidity",
                working_set[: self._config.liquidity_sample],
                lambda market: self._orderbooks.get_orderbook_metrics(market.market_id),
            ),
            self.fan_out(
                "overview_health",
                working_set[: self._config.health_sample],
                lambda market: self._health.get_market_health(market.market_id),
            ),
        )

        total_volume = 0.0
        top_by_volume: TopMarketByVolume | None = None
        for market, stats in trade_results:
            total_volume += stats.total_notional
            if top_by_volume is None or stats.total_notional > top_by_volume.volume:
                top_by_volume = TopMarketByVolume(ticker=market.ticker, volume=to_fixed_safe(stats.total_notional, 2))

        top_by_liquidity: TopMarketByLiquidity | None = None
        for market, metrics in book_results:
            depth = metrics.total_depth_notional
            if top_by_liquidity is None or depth > top_by_liquidity.depth:
                top_by_liquidity = TopMarketByLiquidity(ticker=market.ticker, depth=to_fixed_safe(depth, 2))

        scores = [health.health_score for _market, health in health_results]
        avg_health = math.floor(sum(scores) / len(scores) + 0.5) if scores else 0

        return AnalyticsOverview(
            total_markets=len(markets),
            active_spot_markets=sum(1 for market in markets if market.type == "spot"),
            active_derivative_markets=sum(1 for market in markets if market.type == "derivative"),
            total_recent_volume=to_fixed_safe(total_volume, 2),
            avg_health_score=avg_health,
            top_market_by_volume=top_by_volume,
            top_market_by_liquidity=top_by_liquidity,
            timestamp=_utc_now(),
        )

    async def get_rankings(
        self,
        metric: RankingMetric = "volume",
        market_type: MarketType | None = None,
        limit: int = DEFAULT_RANKINGS_LIMIT,
    ) -> list[MarketRanking]:
        if metric not in RANKING_METRICS:
            raise InvalidParameterError("metric", f"must be one of [{', '.join(RANKING_METRICS)}], got '{metric}'")
        if market_type is not None and market_type not in MARKET_TYPES:
            raise InvalidParameterError("type", f"must be one of [{', '.join(MARKET_TYPES)}], got '{market_type}'")
        if not 1 <= limit <= MAX_RANKINGS_LIMIT:
            raise InvalidParameterError("limit", f"must be between 1 and {MAX_RANKINGS_LIMIT}, got {limit}")

        async def produce() -> list[MarketRanking]:
            markets = await self._markets.list_all_markets()
            if market_type is not None:
                markets = [market for market in markets if market.type == market_type]
            entries = await self.metric_values(metric, markets[: self._config.max_markets])
            return rank_entries(entries, metric, limit)

        key = f"analytics:rankings:{metric}:{market_type or 'all'}:{limit}"
        result = await self._cache.get_or_compute(key, self._cache_config.analytics_ttl_s, produce)
        return result.data

    async def metric_values(
        self,
        metric: RankingMetric,
        markets: Sequence[NormalizedMarket],
    ) -> list[tuple[NormalizedMarket, float]]:
        if metric in ("volume", "volatility"):
            trades_limit = self._config.rankings_trades_limit
            stats = await self.fan_out(
                f"rankings_{metric}",
                markets,
                lambda market: self._trades.get_trade_stats(market.market_id, trades_limit),
            )
            if metric == "volume":
                return [(market, value.total_notional) for market, value in stats]
            return [(market, value.volatility) for market, value in stats]

        if metric in ("liquidity", "spread"):
            books = await self.fan_out(
                f"rankings_{metric}",
                markets,
                lambda market: self._orderbooks.get_orderbook_metrics(market.market_id),
            )
            if metric == "liquidity":
                return [(market, value.total_depth_notional) for market, value in books]
            return [(market, value.relative_spread_bps) for market, value in books]

        healths = await self.fan_out(
            "rankings_health",
            markets,
            lambda market: self._health.get_market_health(market.market_id),
        )
        return [(market, float(value.health_score)) for market, value in healths]

    async def compare_markets(self, market_ids: Sequence[str] | str) -> MarketComparison:
        ids = parse_market_ids(market_ids)
        markets = [await self._markets.require_market(market_id) for market_id in ids]

        compared = await self.fan_out("compare", markets, self._comparison_entry)
        entries = tuple(entry for _market, entry in compared)

        return MarketComparison(
            markets=entries,
            best_by_spread=pick_best_by_spread(entries),
            best_by_liquidity=pick_best_by_max(entries, "liquidity_depth"),
            best_by_health=pick_best_by_max(entries, "health_score"),
            compared_at=_utc_now(),
        )

    async def _comparison_entry(self, market: NormalizedMarket) -> MarketComparisonEntry:
        metrics, stats, health = await asyncio.gather(
            self._orderbooks.get_orderbook_metrics(market.market_id),
            self._trades.get_trade_stats(market.market_id, SUMMARY_TRADES_LIMIT),
            self._health.get_market_health(market.market_id),
        )
        return MarketComparisonEntry(
            market_id=market.market_id,
            ticker=market.ticker,
            type=market.type,
            mid_price=metrics.mid_price,
            spread_bps=metrics.relative_spread_bps,
            liquidity_depth=to_fixed_safe(metrics.total_depth_notional, 2),
            volume=stats.total_notional,
            volatility=stats.volatility,
            health_score=health.health_score,
            health_grade=health.health_grade,
        )

    async def get_market_summary(self, market_id: str) -> MarketSummary:
        market = await self._markets.require_market(market_id)

        async def produce() -> MarketSummary:
            metrics, stats, health = await asyncio.gather(
                self._orderbooks.get_orderbook_metrics(market_id),
                self._trades.get_trade_stats(market_id, SUMMARY_TRADES_LIMIT),
                self._health.get_market_health(market_id),
            )
            return MarketSummary(
                market=market,
                orderbook=metrics,
                trade_stats=TradeDigest(
                    total_trades=stats.total_trades,
                    total_volume=stats.total_notional,
                    avg_price=stats.avg_price,
                    high_price=stats.high_price,
                    low_price=stats.low_price,
                    price_change=stats.price_change,
                    price_change_percent=stats.price_change_percent,
                    volatility=stats.volatility,
                ),
                health=HealthDigest(score=health.health_score, grade=health.health_grade),
                timestamp=_utc_now(),
            )

        result = await self._cache.get_or_compute(f"summary:{market_id}", self._cache_config.health_ttl_s, produce)
        return result.data
