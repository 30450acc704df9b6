import pytest

from injlens.analytics.decimals import (
    derivative_price_to_human,
    derivative_quantity_to_human,
    from_chain_amount,
    parse_number,
    spot_price_to_human,
    spot_quantity_to_human,
    to_fixed_safe,
)


@pytest.mark.parametrize("value", [None, "", "abc", "inf", "nan"])
def test_unusable_numbers_parse_to_zero(value) -> None:
    assert parse_number(value) == 0.0


def test_from_chain_amount() -> None:
    assert from_chain_amount("1500000", 6) == pytest.approx(1.5)
    assert from_chain_amount("0", 18) == 0.0
    assert from_chain_amount("", 18) == 0.0


def test_spot_conversion_uses_both_exponents() -> None:
    assert spot_price_to_human("0.000000000001", 18, 6) == pytest.approx(1.0)
    assert spot_quantity_to_human("2500000000000000000", 18) == pytest.approx(2.5)


def test_derivative_conversion() -> None:
    assert derivative_price_to_human("50000000000", 6) == pytest.approx(50000.0)
    assert derivative_quantity_to_human("0.5") == 0.5
    assert derivative_quantity_to_human("") == 0.0


def test_to_fixed_safe() -> None:
    assert to_fixed_safe(1.23456789, 2) == 1.23
    assert to_fixed_safe(0.1234567) == 0.123457
