from __future__ import annotations

from datetime import datetime, timezone

from injlens.analytics.orderbook_metrics import (
    DEFAULT_ORDERBOOK_DEPTH,
    MAX_ORDERBOOK_DEPTH,
    compute_orderbook_metrics,
    process_levels,
)
from injlens.config import CacheConfig
from injlens.indexer.errors import IndexerHttpError
from injlens.models.market import NormalizedMarket
from injlens.models.orderbook import OrderbookMetrics, ProcessedOrderbook
from injlens.services.cache import ResilientCache
from injlens.services.errors import InvalidParameterError, UpstreamUnavailableError
from injlens.services.markets import MarketService


class OrderbookService:
    def __init__(self, markets: MarketService, cache: ResilientCache, cache_config: CacheConfig) -> None:
        self._markets = markets
        self._cache = cache
        self._cache_config = cache_config

    async def get_orderbook(self, market_id: str, depth: int = DEFAULT_ORDERBOOK_DEPTH) -> ProcessedOrderbook:
        if not 1 <= depth <= MAX_ORDERBOOK_DEPTH:
            raise InvalidParameterError("depth", f"must be between 1 and {MAX_ORDERBOOK_DEPTH}, got {depth}")
        market = await self._markets.require_market(market_id)

        async def produce() -> ProcessedOrderbook:
            return await self._fetch_and_process(market, depth)

        result = await self._cache.get_or_compute(
            f"orderbook:{market_id}:{depth}", self._cache_config.orderbook_ttl_s, produce
        )
        return result.data

    async def get_orderbook_metrics(self, market_id: str) -> OrderbookMetrics:
        orderbook = await self.get_orderbook(market_id, DEFAULT_ORDERBOOK_DEPTH)
        return orderbook.metrics

    async def _fetch_and_process(self, market: NormalizedMarket, depth: int) -> ProcessedOrderbook:
        try:
            raw = await self._markets.source_for(market).fetch_orderbook(market.market_id)
            bids = process_levels(raw.get("buys") or [], market, depth)
            asks = process_levels(raw.get("sells") or [], market, depth)
        except IndexerHttpError as exc:
            raise UpstreamUnavailableError(f"failed to fetch orderbook for {market.market_id}: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailableError(f"malformed orderbook for {market.market_id}: {exc}") from exc

        return ProcessedOrderbook(
            market_id=market.market_id,
            ticker=market.ticker,
            bids=bids,
            asks=asks,
            metrics=compute_orderbook_metrics(bids, asks),
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )
