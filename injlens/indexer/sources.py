"""
Venue-scoped market data sources over the indexer REST gateway.

Both sources expose the same three calls and hand back plain dictionaries
in the flat shape the normalizer expects. Nested gateway payloads (spot
trade prices wrapped in a ``price`` object, derivative trades wrapped in a
``positionDelta`` object) are flattened here so the core never depends on
the gateway's envelope.
"""

from __future__ import annotations

from typing import Any, Protocol

from injlens.indexer.client import IndexerClient
from injlens.indexer.errors import FatalHttpError


class MarketDataSource(Protocol):
    async def list_markets(self) -> list[dict[str, Any]]:
        ...

    async def fetch_orderbook(self, market_id: str) -> dict[str, list[dict[str, Any]]]:
        ...

    async def fetch_trades(self, market_id: str, limit: int) -> list[dict[str, Any]]:
        ...


def _list_field(payload: dict[str, Any], key: str, endpoint: str, venue: str) -> list[dict[str, Any]]:
    value = payload.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise FatalHttpError(
            f"field '{key}' must be a list of objects", payload=payload, endpoint=endpoint, venue=venue
        )
    return value


def _orderbook_sides(payload: dict[str, Any], endpoint: str, venue: str) -> dict[str, list[dict[str, Any]]]:
    book = payload.get("orderbook", payload)
    if not isinstance(book, dict):
        raise FatalHttpError("orderbook must be an object", payload=payload, endpoint=endpoint, venue=venue)
    return {
        "buys": _list_field(book, "buys", endpoint, venue),
        "sells": _list_field(book, "sells", endpoint, venue),
    }


class _IndexerSource:
    venue: str
    markets_path: str
    orderbook_path: str
    trades_path: str

    def __init__(self, client: IndexerClient) -> None:
        self._client = client

    async def list_markets(self) -> list[dict[str, Any]]:
        payload = await self._client.get_object(self.markets_path, venue=self.venue)
        return _list_field(payload, "markets", self.markets_path, self.venue)

    async def fetch_orderbook(self, market_id: str) -> dict[str, list[dict[str, Any]]]:
        endpoint = self.orderbook_path.format(market_id=market_id)
        payload = await self._client.get_object(endpoint, venue=self.venue)
        return _orderbook_sides(payload, endpoint, self.venue)

    async def fetch_trades(self, market_id: str, limit: int) -> list[dict[str, Any]]:
        payload = await self._client.get_object(
            self.trades_path, params={"marketId": market_id, "limit": limit}, venue=self.venue
        )
        trades = _list_field(payload, "trades", self.trades_path, self.venue)
        return [self._flatten_trade(trade) for trade in trades]

    def _flatten_trade(self, trade: dict[str, Any]) -> dict[str, Any]:
        return trade


class SpotIndexerSource(_IndexerSource):
    venue = "spot"
    markets_path = "/api/exchange/spot/v1/markets"
    orderbook_path = "/api/exchange/spot/v2/orderbook/{market_id}"
    trades_path = "/api/exchange/spot/v1/trades"

    def _flatten_trade(self, trade: dict[str, Any]) -> dict[str, Any]:
        price = trade.get("price")
        if not isinstance(price, dict):
            return trade
        flat = {key: value for key, value in trade.items() if key != "price"}
        flat["price"] = price.get("price", "")
        flat["quantity"] = price.get("quantity", "")
        return flat


class DerivativeIndexerSource(_IndexerSource):
    venue = "derivative"
    markets_path = "/api/exchange/derivative/v1/markets"
    orderbook_path = "/api/exchange/derivative/v2/orderbook/{market_id}"
    trades_path = "/api/exchange/derivative/v1/trades"

    def _flatten_trade(self, trade: dict[str, Any]) -> dict[str, Any]:
        delta = trade.get("positionDelta")
        if not isinstance(delta, dict):
            return trade
        flat = {key: value for key, value in trade.items() if key != "positionDelta"}
        flat.update(delta)
        return flat
