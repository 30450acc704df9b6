import pytest

from fakes import make_market
from injlens.analytics.orderbook_metrics import compute_orderbook_metrics, process_levels


def test_levels_accumulate_totals_and_notional() -> None:
    market = make_market()
    bids = process_levels(
        [{"price": "100000000", "quantity": "2"}, {"price": "99000000", "quantity": "1"}],
        market,
        depth=25,
    )

    assert [level.price for level in bids] == [100.0, 99.0]
    assert [level.total for level in bids] == [2.0, 3.0]
    assert [level.notional for level in bids] == [200.0, 99.0]


def test_depth_limits_levels_and_pairs_are_accepted() -> None:
    market = make_market()
    levels = process_levels([["100000000", "2"], ["99000000", "1"]], market, depth=1)

    assert len(levels) == 1
    assert levels[0].quantity == 2.0


def test_spot_levels_use_base_and_quote_exponents() -> None:
    market = make_market(type="spot", ticker="INJ/USDT", base_decimals=18, quote_decimals=6)
    levels = process_levels(
        [{"price": "0.000000000025", "quantity": "4000000000000000000"}], market, depth=25
    )

    assert levels[0].price == pytest.approx(25.0)
    assert levels[0].quantity == pytest.approx(4.0)
    assert levels[0].notional == pytest.approx(100.0)


def test_malformed_level_raises() -> None:
    with pytest.raises(ValueError):
        process_levels(["garbage"], make_market(), depth=25)


def test_metrics_for_two_sided_book() -> None:
    market = make_market()
    bids = process_levels([["100000000", "2"], ["99000000", "1"]], market, depth=25)
    asks = process_levels([["101000000", "1"]], market, depth=25)

    metrics = compute_orderbook_metrics(bids, asks)

    assert metrics.mid_price == 100.5
    assert metrics.absolute_spread == 1.0
    assert metrics.relative_spread_bps == pytest.approx(99.5)
    assert metrics.bid_depth_total == 3.0
    assert metrics.bid_depth_notional == 299.0
    assert metrics.ask_depth_notional == 101.0
    assert metrics.depth_imbalance == pytest.approx(0.495)
    assert metrics.total_depth_notional == 400.0


def test_metrics_for_one_sided_book() -> None:
    market = make_market()
    bids = process_levels([["100000000", "2"]], market, depth=25)

    metrics = compute_orderbook_metrics(bids, ())

    assert metrics.mid_price == 0.0
    assert metrics.absolute_spread == 0.0
    assert metrics.relative_spread_bps == 0.0
    assert metrics.best_ask == 0.0
    assert metrics.depth_imbalance == 1.0
