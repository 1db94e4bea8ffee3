"""Small numeric helpers shared by the readiness components."""

from typing import Callable, Iterable, List, Optional, Sequence
import math

from services.readiness.config import Breakpoints
from services.readiness.errors import ValidationError


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def sample_std(values: Sequence[float]) -> float:
    """Sample (n-1) standard deviation; 0.0 for fewer than 2 values."""
    n = len(values)
    if n < 2:
        return 0.0
    m = mean(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / (n - 1))


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index (units per day)."""
    n = len(values)
    if n < 2:
        return 0.0

    x_mean = (n - 1) / 2
    y_mean = mean(values)

    numerator = 0.0
    denominator = 0.0
    for i, y in enumerate(values):
        numerator += (i - x_mean) * (y - y_mean)
        denominator += (i - x_mean) ** 2

    return numerator / denominator if denominator else 0.0


def trailing_run(values: Iterable, predicate: Callable) -> int:
    """Length of the run of items at the end of values satisfying predicate."""
    run = 0
    for v in reversed(list(values)):
        if not predicate(v):
            break
        run += 1
    return run


def longest_run(values: Iterable, predicate: Callable) -> int:
    best = current = 0
    for v in values:
        current = current + 1 if predicate(v) else 0
        best = max(best, current)
    return best


def score_at_least(value: float, breakpoints: Breakpoints, default: float = 0.0) -> float:
    """First score whose lower bound value meets."""
    for bound, score in breakpoints:
        if value >= bound:
            return score
    return default


def score_at_most(value: float, breakpoints: Breakpoints, default: float = 0.0) -> float:
    """First score whose upper bound value stays within."""
    for bound, score in breakpoints:
        if value <= bound:
            return score
    return default


def day_over_day_streak(values: Sequence[float]) -> tuple:
    """
    Count trailing day-over-day changes moving in the same direction.

    Returns (direction, count) with direction "up", "down" or "flat".
    """
    if len(values) < 2:
        return ("flat", 0)

    deltas: List[float] = [b - a for a, b in zip(values, values[1:])]
    last = deltas[-1]
    if last == 0:
        return ("flat", trailing_run(deltas, lambda d: d == 0))
    if last > 0:
        return ("up", trailing_run(deltas, lambda d: d > 0))
    return ("down", trailing_run(deltas, lambda d: d < 0))


def as_number(value, field: str) -> Optional[float]:
    """Float conversion that rejects bools, NaN and non-numeric input."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number", field=field)
    return number
