"""
Risk Monitor - Evaluators.

Pure classification functions used on every sample:

- classify_trend: previous vs current value -> Trend
- evaluate_threshold: value vs warning/critical -> AlertSeverity

No side effects, no I/O, no clock.
"""

from .types import AlertSeverity, ThresholdDirection, Trend


DEFAULT_STABLE_BAND_PCT = 5.0


# ============================================================
# TREND CLASSIFIER
# ============================================================


def percent_change(previous: float, current: float) -> float:
    """Relative change from ``previous`` to ``current`` in percent."""
    return (current - previous) / previous * 100.0


def classify_trend(
    previous: float,
    current: float,
    higher_is_better: bool = False,
    stable_band_pct: float = DEFAULT_STABLE_BAND_PCT,
) -> Trend:
    """
    Classify the direction of change between two samples.

    A change smaller than ``stable_band_pct`` in magnitude is
    stable. Otherwise a rise is "declining" for metrics where
    higher is worse, and "improving" when ``higher_is_better``.

    A zero ``previous`` leaves the percent change undefined and
    is reported as stable.
    """
    if previous == 0:
        return Trend.STABLE

    change = percent_change(previous, current)
    if abs(change) < stable_band_pct:
        return Trend.STABLE

    if higher_is_better:
        change = -change
    return Trend.DECLINING if change > 0 else Trend.IMPROVING


# ============================================================
# THRESHOLD EVALUATOR
# ============================================================


def evaluate_threshold(
    value: float,
    threshold_warning: float,
    threshold_critical: float,
    direction: ThresholdDirection = ThresholdDirection.INCREASING_IS_WORSE,
) -> AlertSeverity:
    """
    Classify ``value`` against its two thresholds.

    Critical is checked first so it always wins when both
    thresholds are crossed.
    """
    if direction == ThresholdDirection.DECREASING_IS_WORSE:
        if value <= threshold_critical:
            return AlertSeverity.CRITICAL
        if value <= threshold_warning:
            return AlertSeverity.WARNING
        return AlertSeverity.NONE

    if value >= threshold_critical:
        return AlertSeverity.CRITICAL
    if value >= threshold_warning:
        return AlertSeverity.WARNING
    return AlertSeverity.NONE

