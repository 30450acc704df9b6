"""
Statistical helpers shared by the order book, trade and health engines.

Key Metrics:
    - **Realized volatility**: sample standard deviation (N − 1) of the log
      returns between consecutive positive prices.
    - **Relative spread**: (ask − bid) / mid × 10,000 basis points.
    - **Depth imbalance**: |bid − ask| / (bid + ask), in [0, 1].
"""

from __future__ import annotations

import math
from typing import Sequence

MIN_VOLATILITY_PRICES = 3
MIN_VOLATILITY_RETURNS = 2


def standard_deviation(values: Sequence[float]) -> float:
    """Sample standard deviation; fewer than two values yields 0."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    squared = sum((value - mean) ** 2 for value in values)
    return math.sqrt(squared / (len(values) - 1))


def log_returns(prices: Sequence[float]) -> list[float]:
    """Log returns between adjacent prices, skipping pairs with a non-positive reading."""
    returns: list[float] = []
    for previous, current in zip(prices, prices[1:]):
        if previous > 0 and current > 0:
            returns.append(math.log(current / previous))
    return returns


def realized_volatility(prices: Sequence[float]) -> float:
    """
    Realized volatility of a price series.

    Returns 0 when fewer than three prices are given or when fewer than two
    log returns survive the positivity filter.

    Example:
        >>> realized_volatility([100.0, 100.0, 100.0, 100.0])
        0.0
    """
    if len(prices) < MIN_VOLATILITY_PRICES:
        return 0.0
    returns = log_returns(prices)
    if len(returns) < MIN_VOLATILITY_RETURNS:
        return 0.0
    return standard_deviation(returns)


def relative_spread_bps(best_bid: float, best_ask: float) -> float:
    if best_bid <= 0 or best_ask <= 0:
        return 0.0
    mid_price = (best_bid + best_ask) / 2
    if mid_price == 0:
        return 0.0
    return (best_ask - best_bid) / mid_price * 10_000


def depth_imbalance(bid_depth: float, ask_depth: float) -> float:
    """0 for a balanced (or empty) book, 1 for a completely one-sided book."""
    total = bid_depth + ask_depth
    if total == 0:
        return 0.0
    return abs(bid_depth - ask_depth) / total


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


_GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
)


def score_to_grade(score: float) -> str:
    for threshold, grade in _GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"
