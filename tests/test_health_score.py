import itertools

import pytest

from fakes import make_market
from injlens.analytics.health_score import (
    activity_score,
    composite_score,
    compute_market_health,
    liquidity_score,
    spread_score,
    volatility_bucket,
    volatility_score,
)
from injlens.analytics.trade_stats import compute_trade_stats
from injlens.models.orderbook import OrderbookMetrics
from injlens.models.trades import TradeStats


def _book(bid_notional: float, ask_notional: float, spread_bps: float, imbalance: float) -> OrderbookMetrics:
    return OrderbookMetrics(
        mid_price=100.0,
        best_bid=99.9,
        best_ask=100.1,
        absolute_spread=0.2,
        relative_spread_bps=spread_bps,
        bid_depth_total=10.0,
        ask_depth_total=10.0,
        bid_depth_notional=bid_notional,
        ask_depth_notional=ask_notional,
        depth_imbalance=imbalance,
    )


def test_liquidity_score() -> None:
    assert liquidity_score(500_000, 0.0) == 100
    assert liquidity_score(1_000_000, 0.0) == 100
    assert liquidity_score(250_000, 0.5) == pytest.approx(35)
    assert liquidity_score(0, 1.0) == 0


def test_spread_score() -> None:
    assert spread_score(5) == 100
    assert spread_score(1) == 100
    assert spread_score(102.5) == pytest.approx(50)
    assert spread_score(200) == 0
    assert spread_score(0) == 0


@pytest.mark.parametrize(
    ("volatility", "expected"),
    [(0.0005, 30), (0.001, 60), (0.004, 60), (0.005, 90), (0.03, 90), (0.05, 60), (0.08, 60), (0.1, 20)],
)
def test_volatility_buckets(volatility: float, expected: float) -> None:
    assert volatility_bucket(volatility) == expected


def test_volatility_and_activity_scores() -> None:
    assert volatility_score(0.01, 100) == 100
    assert volatility_score(0.2, 10) == 25
    assert activity_score(100, 100_000) == 100
    assert activity_score(50, 50_000) == pytest.approx(50)


def test_composite_is_weighted_and_rounded() -> None:
    assert composite_score(100, 100, 100, 100) == 100
    assert composite_score(50, 50, 50, 50) == 50
    assert composite_score(0, 0, 30, 0) == 6


def test_empty_market_is_graded_f() -> None:
    market = make_market()
    health = compute_market_health(market, _book(0, 0, 0, 0), compute_trade_stats(market, []))

    assert health.health_score == 6
    assert health.health_grade == "F"
    assert health.metrics.volatility.score == 30
    assert health.metrics.spread.score == 0
    assert health.computed_at.endswith("Z")


def test_deep_tight_market_is_graded_a_plus() -> None:
    market = make_market()
    stats = TradeStats(
        market_id=market.market_id,
        ticker=market.ticker,
        period="last_100_trades",
        total_trades=100,
        total_volume=1_000.0,
        total_notional=200_000.0,
        avg_price=200.0,
        avg_trade_size=10.0,
        high_price=205.0,
        low_price=195.0,
        price_change=1.0,
        price_change_percent=0.5,
        buy_count=50,
        sell_count=50,
        buy_sell_ratio=1.0,
        volatility=0.01,
        trades=(),
    )

    health = compute_market_health(market, _book(300_000, 300_000, 4, 0.0), stats)

    assert health.health_score == 100
    assert health.health_grade == "A+"
    assert health.metrics.activity.recent_volume == 200_000.0


def _stats(total_trades: int, total_notional: float, volatility: float) -> TradeStats:
    return TradeStats(
        market_id="0x" + "0" * 64,
        ticker="INJ/USDT",
        period=f"last_{total_trades}_trades",
        total_trades=total_trades,
        total_volume=total_notional / 100,
        total_notional=total_notional,
        avg_price=100.0,
        avg_trade_size=1.0,
        high_price=100.0,
        low_price=100.0,
        price_change=0.0,
        price_change_percent=0.0,
        buy_count=total_trades,
        sell_count=0,
        buy_sell_ratio=float("inf") if total_trades else 0.0,
        volatility=volatility,
        trades=(),
    )


EXTREME_BOOKS = list(
    itertools.product(
        (0.0, 500_000.0, 1e15),  # depth notional per side
        (0.0, 1.0),  # imbalance
        (0.0, 0.01, 5.0, 200.0, 1e9),  # spread bps
    )
)
EXTREME_TRADES = [(0, 0.0, 0.0), (100, 100_000.0, 0.03), (10**6, 1e15, 0.0005), (10**6, 1e15, 50.0)]


@pytest.mark.parametrize(("depth", "imbalance", "spread_bps"), EXTREME_BOOKS)
@pytest.mark.parametrize(("trades", "notional", "volatility"), EXTREME_TRADES)
def test_health_score_stays_in_range(
    depth: float, imbalance: float, spread_bps: float, trades: int, notional: float, volatility: float
) -> None:
    health = compute_market_health(
        make_market(), _book(depth, depth, spread_bps, imbalance), _stats(trades, notional, volatility)
    )

    assert isinstance(health.health_score, int)
    assert 0 <= health.health_score <= 100
    for sub in (health.metrics.liquidity, health.metrics.spread, health.metrics.volatility, health.metrics.activity):
        assert 0 <= sub.score <= 100


def test_zero_spread_caps_an_otherwise_perfect_market() -> None:
    health = compute_market_health(make_market(), _book(1e15, 1e15, 0.0, 0.0), _stats(10**6, 1e15, 0.01))

    assert health.metrics.spread.score == 0
    assert health.health_score == 75
    assert health.health_grade == "B"
