"""
Numeric helpers for cents and percentages.

Rounding is half-up (towards positive infinity on .5) everywhere money
or scores are derived, so 2.5 -> 3 and -2.5 -> -2.
"""

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_half_up_to(value: float, places: int) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
