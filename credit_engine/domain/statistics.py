"""Numeric primitives for metric aggregation.

All results are Decimals rounded half-up at a fixed precision so that two
runs over the same inputs always produce the same score.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence, TypeVar

ZERO = Decimal("0")
HUNDRED = Decimal("100")

FOUR_PLACES = Decimal("0.0001")
TWO_PLACES = Decimal("0.01")

T = TypeVar("T", int, Decimal)


def round_half_up(value: Decimal, exponent: Decimal = TWO_PLACES) -> Decimal:
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def mean(values: Sequence[Decimal]) -> Decimal:
    """Arithmetic mean at 4 decimal places, 0 for empty input"""
    if not values:
        return ZERO
    total = sum(values, ZERO)
    return round_half_up(total / len(values), FOUR_PLACES)


def std_dev(values: Sequence[Decimal]) -> Decimal:
    """Population standard deviation at 4 decimal places, 0 for fewer than 2 values"""
    if len(values) < 2:
        return ZERO
    avg = sum(values, ZERO) / len(values)
    variance = sum(((v - avg) ** 2 for v in values), ZERO) / len(values)
    return round_half_up(variance.sqrt(), FOUR_PLACES)


def coefficient_of_variation(values: Sequence[Decimal]) -> Decimal:
    """CV = std_dev / mean, 0 when the mean is 0"""
    avg = mean(values)
    if avg == ZERO:
        return ZERO
    return round_half_up(std_dev(values) / avg, FOUR_PLACES)


def consistency_score(monthly_volumes: Sequence[Decimal]) -> Decimal:
    """
    Consistency on a 0-100 scale: 100 - (CV * 100), clamped.

    Lower month-to-month variability gives a higher score; a flat series
    scores 100.
    """
    if not monthly_volumes:
        return ZERO
    cv = coefficient_of_variation(monthly_volumes)
    score = clamp(HUNDRED - cv * HUNDRED, ZERO, HUNDRED)
    return round_half_up(score, TWO_PLACES)


def growth_rate(current: Decimal, previous: Decimal) -> Decimal:
    """Percentage change between two periods, 0 when previous is 0"""
    if previous == ZERO:
        return ZERO
    return round_half_up((current - previous) / previous * HUNDRED, TWO_PLACES)


def percentage(part: Decimal, total: Decimal) -> Decimal:
    if total == ZERO:
        return ZERO
    return round_half_up(Decimal(part) / Decimal(total) * HUNDRED, TWO_PLACES)


def clamp(value: T, low: T, high: T) -> T:
    return max(low, min(high, value))
