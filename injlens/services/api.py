"""
Request-facing facade over the market intelligence services.

Every operation validates raw caller input, runs the service call inside a
stale-read tracker and returns a ``Result``:

- ``Success(value, stale)``: ``stale`` is True when any cache read made while
  serving the request fell back to a last-known-good value, including reads
  made by fanned-out sub-computations.
- ``Failure(code, message, status_code)``: a ``ServiceError`` raised by the
  services (not found, invalid parameter, upstream unavailable).

Exceptions outside the ``ServiceError`` hierarchy are bugs and propagate.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import httpx

from injlens import __version__
from injlens.analytics.orderbook_metrics import DEFAULT_ORDERBOOK_DEPTH, MAX_ORDERBOOK_DEPTH
from injlens.analytics.trade_stats import DEFAULT_TRADES_LIMIT, MAX_TRADES_LIMIT
from injlens.config import AppConfig
from injlens.indexer.client import IndexerClient
from injlens.indexer.sources import DerivativeIndexerSource, MarketDataSource, SpotIndexerSource
from injlens.models.analytics import (
    RANKING_METRICS,
    AnalyticsOverview,
    MarketComparison,
    MarketRanking,
    MarketSummary,
)
from injlens.models.health import MarketHealth
from injlens.models.market import MARKET_TYPES, MarketFilters, MarketPage, NormalizedMarket
from injlens.models.orderbook import OrderbookMetrics, ProcessedOrderbook
from injlens.models.trades import TradeStats
from injlens.obs.logging import log_event
from injlens.obs.metrics import build_status_snapshot
from injlens.services.aggregator import DEFAULT_RANKINGS_LIMIT, MAX_RANKINGS_LIMIT, CrossMarketAggregator
from injlens.services.cache import ResilientCache, track_stale_reads
from injlens.services.errors import MarketNotFoundError, ServiceError
from injlens.services.health import HealthService
from injlens.services.markets import MAX_MARKETS_PAGE, MarketService
from injlens.services.orderbook import OrderbookService
from injlens.services.result import Failure, Result, Success
from injlens.services.trades import TradeService
from injlens.services.validation import parse_enum_param, parse_int_param, validate_market_id

T = TypeVar("T")

_SORT_FIELDS = ("ticker", "type")
_SORT_ORDERS = ("asc", "desc")


class MarketIntelApi:
    def __init__(
        self,
        config: AppConfig,
        spot_source: MarketDataSource,
        derivative_source: MarketDataSource,
        *,
        cache: ResilientCache | None = None,
        client: IndexerClient | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client = client
        self._clock = clock
        self.started_at = datetime.now(timezone.utc)
        self._started = clock()
        self.cache = cache or ResilientCache(
            stale_reseed_max_s=config.cache.stale_reseed_max_s,
            logger=self._logger,
        )
        self.markets = MarketService(
            spot_source, derivative_source, self.cache, config.cache, logger=self._logger
        )
        self.orderbooks = OrderbookService(self.markets, self.cache, config.cache)
        self.trades = TradeService(self.markets, self.cache, config.cache)
        self.health = HealthService(self.markets, self.orderbooks, self.trades, self.cache, config.cache)
        self.aggregator = CrossMarketAggregator(
            self.markets,
            self.orderbooks,
            self.trades,
            self.health,
            self.cache,
            config.cache,
            config.aggregation,
            logger=self._logger,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "MarketIntelApi":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> Result[T]:
        with track_stale_reads() as stale_keys:
            try:
                value = await call()
            except ServiceError as exc:
                log_event(
                    self._logger,
                    logging.WARNING if exc.status_code >= 500 else logging.INFO,
                    "request_failed",
                    exc.message,
                    operation=operation,
                    code=exc.code,
                    status_code=exc.status_code,
                )
                return Failure.from_error(exc)
        if stale_keys:
            log_event(
                self._logger,
                logging.INFO,
                "request_served_stale",
                f"{operation} served with stale inputs",
                operation=operation,
                keys=sorted(set(stale_keys)),
            )
        return Success(value=value, stale=bool(stale_keys))

    async def list_all_markets(self) -> Result[list[NormalizedMarket]]:
        return await self._call("list_all_markets", self.markets.list_all_markets)

    async def list_spot_markets(self) -> Result[list[NormalizedMarket]]:
        return await self._call("list_spot_markets", self.markets.get_spot_markets)

    async def list_derivative_markets(self) -> Result[list[NormalizedMarket]]:
        return await self._call("list_derivative_markets", self.markets.get_derivative_markets)

    async def get_market_by_id(self, market_id: str) -> Result[NormalizedMarket]:
        async def call() -> NormalizedMarket:
            validate_market_id(market_id)
            market = await self.markets.get_market_by_id(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            return market

        return await self._call("get_market_by_id", call)

    async def get_filtered_markets(
        self,
        *,
        type: str | None = None,
        quote: str | None = None,
        search: str | None = None,
        sort: str | None = None,
        order: str | None = None,
        limit: str | int | None = None,
        offset: str | int | None = None,
    ) -> Result[MarketPage]:
        async def call() -> MarketPage:
            filters = MarketFilters(
                type=parse_enum_param(type, "type", MARKET_TYPES),
                quote=quote or None,
                search=search or None,
                sort=parse_enum_param(sort, "sort", _SORT_FIELDS),
                order=parse_enum_param(order, "order", _SORT_ORDERS, "asc"),
                limit=parse_int_param(limit, "limit", default=50, minimum=1, maximum=MAX_MARKETS_PAGE),
                offset=parse_int_param(offset, "offset", default=0, minimum=0, maximum=10**9),
            )
            return await self.markets.get_filtered_markets(filters)

        return await self._call("get_filtered_markets", call)

    async def get_orderbook(
        self,
        market_id: str,
        depth: str | int | None = None,
    ) -> Result[ProcessedOrderbook]:
        async def call() -> ProcessedOrderbook:
            validate_market_id(market_id)
            levels = parse_int_param(
                depth, "depth", default=DEFAULT_ORDERBOOK_DEPTH, minimum=1, maximum=MAX_ORDERBOOK_DEPTH
            )
            return await self.orderbooks.get_orderbook(market_id, levels)

        return await self._call("get_orderbook", call)

    async def get_orderbook_metrics(self, market_id: str) -> Result[OrderbookMetrics]:
        async def call() -> OrderbookMetrics:
            validate_market_id(market_id)
            return await self.orderbooks.get_orderbook_metrics(market_id)

        return await self._call("get_orderbook_metrics", call)

    async def get_trade_stats(self, market_id: str, limit: str | int | None = None) -> Result[TradeStats]:
        async def call() -> TradeStats:
            validate_market_id(market_id)
            window = parse_int_param(
                limit, "limit", default=DEFAULT_TRADES_LIMIT, minimum=1, maximum=MAX_TRADES_LIMIT
            )
            return await self.trades.get_trade_stats(market_id, window)

        return await self._call("get_trade_stats", call)

    async def get_market_health(self, market_id: str) -> Result[MarketHealth]:
        async def call() -> MarketHealth:
            validate_market_id(market_id)
            return await self.health.get_market_health(market_id)

        return await self._call("get_market_health", call)

    async def get_market_summary(self, market_id: str) -> Result[MarketSummary]:
        async def call() -> MarketSummary:
            validate_market_id(market_id)
            return await self.aggregator.get_market_summary(market_id)

        return await self._call("get_market_summary", call)

    async def get_overview(self) -> Result[AnalyticsOverview]:
        return await self._call("get_overview", self.aggregator.get_overview)

    async def get_rankings(
        self,
        metric: str | None = None,
        type: str | None = None,
        limit: str | int | None = None,
    ) -> Result[list[MarketRanking]]:
        async def call() -> list[MarketRanking]:
            return await self.aggregator.get_rankings(
                parse_enum_param(metric, "metric", RANKING_METRICS, "volume"),
                parse_enum_param(type, "type", MARKET_TYPES),
                parse_int_param(
                    limit, "limit", default=DEFAULT_RANKINGS_LIMIT, minimum=1, maximum=MAX_RANKINGS_LIMIT
                ),
            )

        return await self._call("get_rankings", call)

    async def compare_markets(self, market_ids: str | Iterable[str]) -> Result[MarketComparison]:
        async def call() -> MarketComparison:
            ids = market_ids if isinstance(market_ids, str) else list(market_ids)
            return await self.aggregator.compare_markets(ids)

        return await self._call("compare_markets", call)

    async def get_status(self) -> Result[dict[str, Any]]:
        async def call() -> dict[str, Any]:
            return build_status_snapshot(
                self.cache.stats(),
                self._client.metrics if self._client is not None else None,
                version=__version__,
                network=self._config.indexer.network,
                base_url=self._client.base_url if self._client is not None else None,
                started_at=self.started_at,
                uptime_s=self._clock() - self._started,
            )

        return await self._call("get_status", call)


def build_api(
    config: AppConfig,
    *,
    logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MarketIntelApi:
    """Wire the facade to the indexer gateway described by ``config.indexer``."""
    client = IndexerClient(config.indexer, logger=logger, transport=transport)
    return MarketIntelApi(
        config,
        SpotIndexerSource(client),
        DerivativeIndexerSource(client),
        client=client,
        logger=logger,
    )
