from __future__ import annotations

from collections.abc import Mapping

from injlens.analytics.trade_stats import (
    DEFAULT_TRADES_LIMIT,
    MAX_TRADES_LIMIT,
    compute_trade_stats,
    normalize_trade,
)
from injlens.config import CacheConfig
from injlens.indexer.errors import IndexerHttpError
from injlens.models.market import NormalizedMarket
from injlens.models.trades import TradeStats
from injlens.services.cache import ResilientCache
from injlens.services.errors import InvalidParameterError, UpstreamUnavailableError
from injlens.services.markets import MarketService


class TradeService:
    def __init__(self, markets: MarketService, cache: ResilientCache, cache_config: CacheConfig) -> None:
        self._markets = markets
        self._cache = cache
        self._cache_config = cache_config

    async def get_trade_stats(self, market_id: str, limit: int = DEFAULT_TRADES_LIMIT) -> TradeStats:
        if not 1 <= limit <= MAX_TRADES_LIMIT:
            raise InvalidParameterError("limit", f"must be between 1 and {MAX_TRADES_LIMIT}, got {limit}")
        market = await self._markets.require_market(market_id)

        async def produce() -> TradeStats:
            return await self._fetch_and_process(market, limit)

        result = await self._cache.get_or_compute(
            f"trades:{market_id}:{limit}", self._cache_config.trades_ttl_s, produce
        )
        return result.data

    async def _fetch_and_process(self, market: NormalizedMarket, limit: int) -> TradeStats:
        try:
            raw_trades = await self._markets.source_for(market).fetch_trades(market.market_id, limit)
        except IndexerHttpError as exc:
            raise UpstreamUnavailableError(f"failed to fetch trades for {market.market_id}: {exc}") from exc

        if not all(isinstance(raw, Mapping) for raw in raw_trades):
            raise UpstreamUnavailableError(f"malformed trades for {market.market_id}")
        # the source may return more than requested; the window is the newest `limit`
        trades = [normalize_trade(raw, market) for raw in raw_trades[:limit]]
        return compute_trade_stats(market, trades)
