from __future__ import annotations

import asyncio

from injlens.analytics.health_score import compute_market_health
from injlens.analytics.orderbook_metrics import DEFAULT_ORDERBOOK_DEPTH
from injlens.analytics.trade_stats import DEFAULT_TRADES_LIMIT
from injlens.config import CacheConfig
from injlens.models.health import MarketHealth
from injlens.services.cache import ResilientCache
from injlens.services.markets import MarketService
from injlens.services.orderbook import OrderbookService
from injlens.services.trades import TradeService


class HealthService:
    """Composite health per market, built from cached book and trade results."""

    def __init__(
        self,
        markets: MarketService,
        orderbooks: OrderbookService,
        trades: TradeService,
        cache: ResilientCache,
        cache_config: CacheConfig,
    ) -> None:
        self._markets = markets
        self._orderbooks = orderbooks
        self._trades = trades
        self._cache = cache
        self._cache_config = cache_config

    async def get_market_health(self, market_id: str) -> MarketHealth:
        market = await self._markets.require_market(market_id)

        async def produce() -> MarketHealth:
            orderbook, trade_stats = await asyncio.gather(
                self._orderbooks.get_orderbook(market_id, DEFAULT_ORDERBOOK_DEPTH),
                self._trades.get_trade_stats(market_id, DEFAULT_TRADES_LIMIT),
            )
            return compute_market_health(market, orderbook.metrics, trade_stats)

        result = await self._cache.get_or_compute(f"health:{market_id}", self._cache_config.health_ttl_s, produce)
        return result.data
