"""Rounding helpers.

Set and rep targets round half away from zero (2.5 -> 3), not to even.
"""

import math


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def round_to_tenth(value: float) -> float:
    return round_half_up(value * 10) / 10


def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
