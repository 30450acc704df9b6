import asyncio
import logging

import pytest

from fakes import FakeClock, StubSource, derivative_payload, market_id, spot_payload
from injlens.config import CacheConfig
from injlens.models.market import MarketFilters
from injlens.services.cache import ResilientCache
from injlens.services.errors import InvalidParameterError, MarketDecodeError, UpstreamUnavailableError
from injlens.services.markets import (
    MarketService,
    decode_market_record,
    extract_symbol,
    normalize_market,
)


def build_service(spot: StubSource, derivative: StubSource | None = None) -> MarketService:
    return MarketService(
        spot,
        derivative or StubSource(),
        ResilientCache(clock=FakeClock()),
        CacheConfig(),
    )


@pytest.mark.parametrize(
    ("ticker", "part", "expected"),
    [
        ("INJ/USDT", "base", "INJ"),
        ("INJ/USDT", "quote", "USDT"),
        ("BTC/USDT PERP", "base", "BTC"),
        ("BTC/USDT PERP", "quote", "USDT"),
        ("INJUSDT", "quote", "UNKNOWN"),
        ("", "base", "UNKNOWN"),
    ],
)
def test_extract_symbol(ticker: str, part: str, expected: str) -> None:
    assert extract_symbol(ticker, part) == expected


def test_spot_market_with_token_meta() -> None:
    market = normalize_market(decode_market_record("spot", spot_payload(1, "INJ/USDT", base_decimals=18)))

    assert market.type == "spot"
    assert market.market_id == market_id(1)
    assert market.base_token_symbol == "INJ"
    assert market.quote_token_symbol == "USDT"
    assert market.base_decimals == 18
    assert market.quote_decimals == 6
    assert market.maker_fee_rate == "-0.0001"


def test_spot_market_without_token_meta_falls_back() -> None:
    payload = spot_payload(1, "ATOM/USDC", base_decimals=None, quote_decimals=None)
    market = normalize_market(decode_market_record("spot", payload))

    assert market.base_token_symbol == "ATOM"
    assert market.quote_token_symbol == "USDC"
    assert market.base_decimals == 18
    assert market.quote_decimals == 6


def test_derivative_market_uses_fixed_base_decimals() -> None:
    market = normalize_market(decode_market_record("derivative", derivative_payload(2, "BTC/USDT PERP")))

    assert market.type == "derivative"
    assert market.base_denom == "BTC"
    assert market.base_token_symbol == "BTC"
    assert market.base_decimals == 18
    assert market.quote_decimals == 6
    assert market.min_quantity_tick_size == 0.01


def test_unrecognized_record_raises_decode_error() -> None:
    with pytest.raises(MarketDecodeError) as excinfo:
        decode_market_record("spot", {"marketId": market_id(3), "ticker": "X/Y"})

    assert excinfo.value.market_id == market_id(3)
    assert "market_status" in excinfo.value.detail or "marketStatus" in excinfo.value.detail


def test_inactive_and_invalid_records_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    spot = StubSource(
        [
            spot_payload(1, "INJ/USDT"),
            spot_payload(2, "OLD/USDT", status="delisted"),
            {"marketId": market_id(3)},
        ]
    )
    service = build_service(spot)

    with caplog.at_level(logging.WARNING):
        markets = asyncio.run(service.get_spot_markets())

    assert [market.ticker for market in markets] == ["INJ/USDT"]
    assert any(getattr(record, "event", "") == "market_record_rejected" for record in caplog.records)


def test_all_invalid_records_fail_the_listing() -> None:
    service = build_service(StubSource([{"ticker": "A/B"}, {"ticker": "C/D"}]))

    with pytest.raises(MarketDecodeError):
        asyncio.run(service.get_spot_markets())


def test_listing_failure_is_upstream_unavailable() -> None:
    spot = StubSource([spot_payload(1, "INJ/USDT")])
    spot.markets_down = True

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(build_service(spot).list_all_markets())


def test_listing_is_cached_per_kind() -> None:
    spot = StubSource([spot_payload(1, "INJ/USDT")])
    derivative = StubSource([derivative_payload(2, "INJ/USDT PERP")])
    service = build_service(spot, derivative)

    async def scenario():
        first = await service.list_all_markets()
        found = await service.get_market_by_id(market_id(2))
        missing = await service.get_market_by_id(market_id(99))
        return first, found, missing

    first, found, missing = asyncio.run(scenario())

    assert [market.type for market in first] == ["spot", "derivative"]
    assert found is not None and found.ticker == "INJ/USDT PERP"
    assert missing is None
    assert spot.calls["list_markets"] == 1
    assert derivative.calls["list_markets"] == 1


def test_filtered_markets() -> None:
    spot = StubSource(
        [
            spot_payload(1, "INJ/USDT"),
            spot_payload(2, "ATOM/USDT"),
            spot_payload(3, "WETH/USDC", quote_symbol="USDC"),
        ]
    )
    derivative = StubSource([derivative_payload(4, "INJ/USDT PERP")])
    service = build_service(spot, derivative)

    by_quote = asyncio.run(service.get_filtered_markets(MarketFilters(quote="usdt", limit=2)))
    assert [market.ticker for market in by_quote.markets] == ["INJ/USDT", "ATOM/USDT"]
    assert by_quote.total == 3
    assert by_quote.has_more is True

    searched = asyncio.run(service.get_filtered_markets(MarketFilters(search="inj", sort="ticker", order="desc")))
    assert [market.ticker for market in searched.markets] == ["INJ/USDT PERP", "INJ/USDT"]
    assert searched.has_more is False

    derivatives = asyncio.run(service.get_filtered_markets(MarketFilters(type="derivative")))
    assert [market.ticker for market in derivatives.markets] == ["INJ/USDT PERP"]

    paged = asyncio.run(service.get_filtered_markets(MarketFilters(offset=3, limit=2)))
    assert [market.ticker for market in paged.markets] == ["INJ/USDT PERP"]
    assert paged.has_more is False


def test_filtered_markets_keep_upstream_order_unless_sorted() -> None:
    spot = StubSource([spot_payload(1, "WETH/USDT"), spot_payload(2, "ATOM/USDT")])
    derivative = StubSource([derivative_payload(3, "BTC/USDT PERP"), derivative_payload(4, "AAVE/USDT PERP")])
    service = build_service(spot, derivative)

    def tickers(filters: MarketFilters) -> list[str]:
        return [market.ticker for market in asyncio.run(service.get_filtered_markets(filters)).markets]

    assert tickers(MarketFilters()) == ["WETH/USDT", "ATOM/USDT", "BTC/USDT PERP", "AAVE/USDT PERP"]
    assert tickers(MarketFilters(order="desc")) == ["WETH/USDT", "ATOM/USDT", "BTC/USDT PERP", "AAVE/USDT PERP"]
    assert tickers(MarketFilters(sort="ticker")) == ["AAVE/USDT PERP", "ATOM/USDT", "BTC/USDT PERP", "WETH/USDT"]
    assert tickers(MarketFilters(sort="type", order="desc")) == [
        "WETH/USDT",
        "ATOM/USDT",
        "BTC/USDT PERP",
        "AAVE/USDT PERP",
    ]


@pytest.mark.parametrize("filters", [MarketFilters(limit=0), MarketFilters(limit=101), MarketFilters(offset=-1)])
def test_filtered_markets_rejects_bad_paging(filters: MarketFilters) -> None:
    service = build_service(StubSource([spot_payload(1, "INJ/USDT")]))

    with pytest.raises(InvalidParameterError):
        asyncio.run(service.get_filtered_markets(filters))
