"""
Market normalization and lookup.

Spot and derivative market records from the indexer are decoded into the
tagged raw union, filtered to active markets and mapped onto the unified
``NormalizedMarket`` shape.

Symbol extraction:
    When a token symbol is not supplied, the ticker is stripped of a trailing
    "PERP" marker and split on "/"; unresolvable parts become "UNKNOWN".

Known limitation:
    Derivative records carry no base token exponent, so base_decimals is set
    to DERIVATIVE_BASE_DECIMALS (18). It is an approximation kept as-is; it
    does not affect derivative price/quantity conversion, which only uses
    the quote exponent.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from injlens.analytics.decimals import parse_number
from injlens.config import CacheConfig
from injlens.indexer.errors import IndexerHttpError
from injlens.indexer.sources import MarketDataSource
from injlens.models.market import (
    DerivativeMarketRecord,
    MarketFilters,
    MarketPage,
    MarketType,
    NormalizedMarket,
    RawMarketRecord,
    SpotMarketRecord,
)
from injlens.obs.logging import log_event
from injlens.services.cache import ResilientCache
from injlens.services.errors import (
    InvalidParameterError,
    MarketDecodeError,
    MarketNotFoundError,
    UpstreamUnavailableError,
)

ACTIVE_STATUS = "active"
UNKNOWN_SYMBOL = "UNKNOWN"
DERIVATIVE_BASE_DECIMALS = 18
DEFAULT_SPOT_BASE_DECIMALS = 18
DEFAULT_QUOTE_DECIMALS = 6
MAX_MARKETS_PAGE = 100

_PERP_SUFFIX = re.compile(r"\s*PERP$", re.IGNORECASE)
_RAW_MARKET_ADAPTER: TypeAdapter[RawMarketRecord] = TypeAdapter(RawMarketRecord)


def extract_symbol(ticker: str, part: str) -> str:
    parts = _PERP_SUFFIX.sub("", ticker).split("/")
    index = 0 if part == "base" else 1
    if index < len(parts) and parts[index].strip():
        return parts[index].strip()
    return UNKNOWN_SYMBOL


def _fee_rate(value: str | float | None) -> str:
    if value is None or value == "":
        return "0"
    return str(value)


def decode_market_record(kind: MarketType, payload: Any) -> SpotMarketRecord | DerivativeMarketRecord:
    if not isinstance(payload, dict):
        raise MarketDecodeError(kind, f"expected an object, got {type(payload).__name__}")
    try:
        return _RAW_MARKET_ADAPTER.validate_python({**payload, "kind": kind})
    except ValidationError as exc:
        market_id = payload.get("marketId")
        raise MarketDecodeError(
            kind,
            "; ".join(f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()),
            market_id=market_id if isinstance(market_id, str) else None,
        ) from exc


def normalize_spot_market(record: SpotMarketRecord) -> NormalizedMarket:
    base_token = record.base_token
    quote_token = record.quote_token
    return NormalizedMarket(
        market_id=record.market_id,
        ticker=record.ticker,
        type="spot",
        base_denom=record.base_denom,
        quote_denom=record.quote_denom,
        base_token_symbol=(base_token and base_token.symbol) or extract_symbol(record.ticker, "base"),
        quote_token_symbol=(quote_token and quote_token.symbol) or extract_symbol(record.ticker, "quote"),
        base_decimals=(
            base_token.decimals
            if base_token is not None and base_token.decimals is not None
            else DEFAULT_SPOT_BASE_DECIMALS
        ),
        quote_decimals=(
            quote_token.decimals
            if quote_token is not None and quote_token.decimals is not None
            else DEFAULT_QUOTE_DECIMALS
        ),
        min_price_tick_size=parse_number(record.min_price_tick_size),
        min_quantity_tick_size=parse_number(record.min_quantity_tick_size),
        status=record.market_status,
        maker_fee_rate=_fee_rate(record.maker_fee_rate),
        taker_fee_rate=_fee_rate(record.taker_fee_rate),
    )


def normalize_derivative_market(record: DerivativeMarketRecord) -> NormalizedMarket:
    quote_token = record.quote_token
    return NormalizedMarket(
        market_id=record.market_id,
        ticker=record.ticker,
        type="derivative",
        base_denom=record.oracle_base,
        quote_denom=record.quote_denom,
        base_token_symbol=extract_symbol(record.ticker, "base"),
        quote_token_symbol=(quote_token and quote_token.symbol) or extract_symbol(record.ticker, "quote"),
        base_decimals=DERIVATIVE_BASE_DECIMALS,
        quote_decimals=(
            quote_token.decimals
            if quote_token is not None and quote_token.decimals is not None
            else DEFAULT_QUOTE_DECIMALS
        ),
        min_price_tick_size=parse_number(record.min_price_tick_size),
        min_quantity_tick_size=parse_number(record.min_quantity_tick_size),
        status=record.market_status,
        maker_fee_rate=_fee_rate(record.maker_fee_rate),
        taker_fee_rate=_fee_rate(record.taker_fee_rate),
    )


def normalize_market(record: SpotMarketRecord | DerivativeMarketRecord) -> NormalizedMarket:
    if isinstance(record, SpotMarketRecord):
        return normalize_spot_market(record)
    if isinstance(record, DerivativeMarketRecord):
        return normalize_derivative_market(record)
    raise TypeError(f"Unsupported market record: {type(record).__name__}")


class MarketService:
    def __init__(
        self,
        spot_source: MarketDataSource,
        derivative_source: MarketDataSource,
        cache: ResilientCache,
        cache_config: CacheConfig,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sources: dict[MarketType, MarketDataSource] = {
            "spot": spot_source,
            "derivative": derivative_source,
        }
        self._cache = cache
        self._cache_config = cache_config
        self._logger = logger or logging.getLogger(__name__)

    def source_for(self, market: NormalizedMarket) -> MarketDataSource:
        return self._sources[market.type]

    async def get_spot_markets(self) -> list[NormalizedMarket]:
        return await self._markets_of("spot")

    async def get_derivative_markets(self) -> list[NormalizedMarket]:
        return await self._markets_of("derivative")

    async def list_all_markets(self) -> list[NormalizedMarket]:
        spot, derivative = await asyncio.gather(self.get_spot_markets(), self.get_derivative_markets())
        return [*spot, *derivative]

    async def get_market_by_id(self, market_id: str) -> NormalizedMarket | None:
        for market in await self.list_all_markets():
            if market.market_id == market_id:
                return market
        return None

    async def require_market(self, market_id: str) -> NormalizedMarket:
        market = await self.get_market_by_id(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    async def get_filtered_markets(self, filters: MarketFilters) -> MarketPage:
        if not 1 <= filters.limit <= MAX_MARKETS_PAGE:
            raise InvalidParameterError("limit", f"must be between 1 and {MAX_MARKETS_PAGE}, got {filters.limit}")
        if filters.offset < 0:
            raise InvalidParameterError("offset", f"must be >= 0, got {filters.offset}")

        if filters.type == "spot":
            markets = await self.get_spot_markets()
        elif filters.type == "derivative":
            markets = await self.get_derivative_markets()
        else:
            markets = await self.list_all_markets()

        if filters.quote:
            quote = filters.quote.upper()
            markets = [market for market in markets if market.quote_token_symbol.upper() == quote]

        if filters.search:
            search = filters.search.lower()
            markets = [market for market in markets if search in market.ticker.lower()]

        # without a sort key, upstream order (spot first, then derivative) is kept
        if filters.sort == "type":
            markets = sorted(
                markets,
                key=lambda market: (market.type, market.ticker.lower()),
                reverse=filters.order == "desc",
            )
        elif filters.sort == "ticker":
            markets = sorted(markets, key=lambda market: market.ticker.lower(), reverse=filters.order == "desc")

        total = len(markets)
        page = markets[filters.offset : filters.offset + filters.limit]
        return MarketPage(
            markets=page,
            total=total,
            limit=filters.limit,
            offset=filters.offset,
            has_more=filters.offset + len(page) < total,
        )

    async def _markets_of(self, kind: MarketType) -> list[NormalizedMarket]:
        async def produce() -> list[NormalizedMarket]:
            try:
                raw_markets = await self._sources[kind].list_markets()
            except IndexerHttpError as exc:
                raise UpstreamUnavailableError(f"failed to fetch {kind} markets: {exc}") from exc
            return self._normalize_all(kind, raw_markets)

        result = await self._cache.get_or_compute(f"markets:{kind}", self._cache_config.markets_ttl_s, produce)
        return result.data

    def _normalize_all(self, kind: MarketType, raw_markets: list[Any]) -> list[NormalizedMarket]:
        markets: list[NormalizedMarket] = []
        rejected: list[MarketDecodeError] = []
        for payload in raw_markets:
            try:
                record = decode_market_record(kind, payload)
            except MarketDecodeError as exc:
                rejected.append(exc)
                log_event(
                    self._logger,
                    logging.WARNING,
                    "market_record_rejected",
                    "Skipping unrecognized market record",
                    kind=kind,
                    market_id=exc.market_id,
                    detail=exc.detail,
                )
                continue
            if record.market_status != ACTIVE_STATUS:
                continue
            markets.append(normalize_market(record))

        if rejected and len(rejected) == len(raw_markets):
            raise rejected[0]

        log_event(
            self._logger,
            logging.INFO,
            "markets_normalized",
            f"{kind} markets normalized",
            kind=kind,
            count=len(markets),
            rejected=len(rejected),
        )
        return markets
