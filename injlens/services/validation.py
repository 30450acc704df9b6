from __future__ import annotations

import re
from typing import Iterable, Sequence, TypeVar

from injlens.services.errors import InvalidParameterError

E = TypeVar("E", bound=str)

_MARKET_ID_RE = re.compile(r"^0x[0-9a-fA-F]{8,}$")

MIN_COMPARE_MARKETS = 2
MAX_COMPARE_MARKETS = 5


def parse_int_param(
    value: str | int | None,
    name: str,
    *,
    default: int,
    minimum: int,
    maximum: int,
) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidParameterError(name, f"must be a valid integer, got '{value}'")
    if isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip(), 10)
        except ValueError as exc:
            raise InvalidParameterError(name, f"must be a valid integer, got '{value}'") from exc
    if parsed < minimum or parsed > maximum:
        raise InvalidParameterError(name, f"must be between {minimum} and {maximum}, got {parsed}")
    return parsed


def parse_enum_param(
    value: str | None,
    name: str,
    allowed: Sequence[E],
    default: E | None = None,
) -> E | None:
    if value is None or value == "":
        return default
    for option in allowed:
        if value == option:
            return option
    raise InvalidParameterError(name, f"must be one of [{', '.join(allowed)}], got '{value}'")


def validate_market_id(market_id: str) -> str:
    if not market_id or not _MARKET_ID_RE.match(market_id):
        raise InvalidParameterError(
            "marketId", f"must be a valid 0x-prefixed hex string, got '{market_id}'"
        )
    return market_id


def parse_market_ids(value: str | Iterable[str]) -> list[str]:
    """
    Parse the market list of a comparison request.

    Accepts a comma-separated string or an iterable of identifiers; blanks
    and duplicates are dropped, order is kept.
    """
    raw = value.split(",") if isinstance(value, str) else list(value)
    market_ids: list[str] = []
    for item in raw:
        market_id = item.strip()
        if market_id and market_id not in market_ids:
            market_ids.append(validate_market_id(market_id))
    if not MIN_COMPARE_MARKETS <= len(market_ids) <= MAX_COMPARE_MARKETS:
        raise InvalidParameterError(
            "markets",
            f"must list between {MIN_COMPARE_MARKETS} and {MAX_COMPARE_MARKETS} distinct market IDs, "
            f"got {len(market_ids)}",
        )
    return market_ids
