"""
Normalization helpers shared by the pillar calculators.

Every function is pure and total: degenerate input (empty ranges, zero
baselines, NaN) maps to a defined value instead of raising, so a sparse
metrics day can never crash a scoring run.
"""

import math


def clamp01(x: float) -> float:
    """Clamp to [0, 1]; NaN maps to 0."""
    if math.isnan(x):
        return 0.0
    return max(0.0, min(1.0, x))


def norm_linear(value: float, min_value: float, max_value: float) -> float:
    """
    Linearly map value from [min_value, max_value] onto [0, 1].

    Values at or below min_value give 0, at or above max_value give 1.
    A degenerate range (max_value <= min_value) gives 0.
    """
    if max_value <= min_value:
        return 0.0
    return clamp01((value - min_value) / (max_value - min_value))


def norm_log(value: float, baseline: float, scale: float = 1.0) -> float:
    """
    Log-scaled normalization with diminishing returns above baseline.

    norm_log(v, b, s) = clamp01(ln(v / b * s + 1) / ln(s + 1)), so
    value == baseline maps to 1. Non-positive values give 0. The caller
    guarantees baseline > 0.
    """
    if value <= 0:
        return 0.0
    return clamp01(math.log(value / baseline * scale + 1) / math.log(scale + 1))


MAX_PCT_CHANGE = 1e9


def pct_change(current: float, previous: float) -> float:
    """
    Relative change from previous to current, clamped to +/-MAX_PCT_CHANGE.

    With a zero baseline there is no ratio: any positive current value
    counts as +100% and anything else as no change. A ratio that overflows
    (a near-zero baseline, say) saturates at the clamp with its sign kept.
    """
    if previous == 0:
        return 1.0 if current > 0 else 0.0
    change = (current - previous) / previous
    if math.isnan(change):
        return 0.0
    return max(-MAX_PCT_CHANGE, min(MAX_PCT_CHANGE, change))


def round_points(x: float) -> int:
    """Round non-negative component points half up (2.5 -> 3)."""
    return int(math.floor(x + 0.5))
