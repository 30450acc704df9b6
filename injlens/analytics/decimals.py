"""
Chain-format to human-readable numeric conversion.

The indexer reports prices and quantities as decimal strings scaled by the
token exponents of the market. The two venue kinds scale them differently:

    spot price:            chain_price × 10^(base_decimals − quote_decimals)
    spot quantity:         chain_quantity / 10^base_decimals
    derivative price:      chain_price / 10^quote_decimals
    derivative quantity:   already human-scaled

Every function here is total: empty, ``"0"`` and non-numeric inputs return
``0.0`` instead of raising, since many upstream fields are optional.

Example:
    >>> derivative_price_to_human("50000000000", 6)
    50000.0
"""

from __future__ import annotations

import math


def parse_number(value: object) -> float:
    """Parse a numeric string (or number) leniently; anything unusable is 0."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def from_chain_amount(value: str, decimals: int) -> float:
    if not value or value == "0":
        return 0.0
    return parse_number(value) / 10**decimals


def spot_price_to_human(chain_price: str, base_decimals: int, quote_decimals: int) -> float:
    return parse_number(chain_price) * 10 ** (base_decimals - quote_decimals)


def spot_quantity_to_human(chain_quantity: str, base_decimals: int) -> float:
    return parse_number(chain_quantity) / 10**base_decimals


def derivative_price_to_human(chain_price: str, quote_decimals: int) -> float:
    return parse_number(chain_price) / 10**quote_decimals


def derivative_quantity_to_human(chain_quantity: str) -> float:
    return parse_number(chain_quantity)


def to_fixed_safe(value: float, decimals: int = 6) -> float:
    """
    Round ``value`` to ``decimals`` digits through standard float formatting.

    Ties follow the formatting of the underlying binary value, so no custom
    rounding rule is introduced.
    """
    return float(f"{value:.{decimals}f}")
