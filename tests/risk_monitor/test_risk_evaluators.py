"""
Tests for risk trend and threshold classification.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- Trend is stable inside the 5% band, signed outside it
- Critical always wins when both thresholds are crossed
- Polarity is explicit per metric

============================================================
"""

import pytest

from risk_monitor.config import get_default_risk_catalog
from risk_monitor.evaluators import classify_trend, evaluate_threshold, percent_change
from risk_monitor.types import (
    AlertSeverity,
    RiskCategory,
    RiskConfigurationError,
    RiskMetric,
    ThresholdDirection,
    Trend,
)


INCREASING = ThresholdDirection.INCREASING_IS_WORSE
DECREASING = ThresholdDirection.DECREASING_IS_WORSE


# ============================================================
# TREND CLASSIFIER TESTS
# ============================================================

class TestClassifyTrend:
    """Tests for classify_trend."""

    @pytest.mark.parametrize("previous", [0.5, 1.0, 75.0, 1e6])
    def test_same_value_is_stable(self, previous):
        assert classify_trend(previous, previous) == Trend.STABLE

    def test_zero_previous_is_stable(self):
        assert classify_trend(0, 50) == Trend.STABLE

    def test_change_inside_band_is_stable(self):
        # +4.9%
        assert classify_trend(100, 104.9) == Trend.STABLE
        assert classify_trend(100, 95.1) == Trend.STABLE

    def test_rise_is_declining_when_higher_is_worse(self):
        assert classify_trend(75, 82) == Trend.DECLINING

    def test_drop_is_improving_when_higher_is_worse(self):
        assert classify_trend(80, 60) == Trend.IMPROVING

    def test_polarity_inverted_when_higher_is_better(self):
        assert classify_trend(95, 85, higher_is_better=True) == Trend.DECLINING
        assert classify_trend(85, 95, higher_is_better=True) == Trend.IMPROVING

    def test_exactly_five_percent_is_not_stable(self):
        assert classify_trend(100, 105) == Trend.DECLINING
        assert classify_trend(100, 95) == Trend.IMPROVING

    def test_custom_band(self):
        assert classify_trend(100, 108, stable_band_pct=10) == Trend.STABLE

    def test_percent_change(self):
        assert percent_change(75, 82) == pytest.approx(9.333, abs=1e-3)


# ============================================================
# THRESHOLD EVALUATOR TESTS
# ============================================================

class TestEvaluateThreshold:
    """Tests for evaluate_threshold."""

    def test_increasing_below_warning(self):
        assert evaluate_threshold(65, 70, 80, INCREASING) == AlertSeverity.NONE

    def test_increasing_warning(self):
        assert evaluate_threshold(75, 70, 80, INCREASING) == AlertSeverity.WARNING

    def test_increasing_boundaries_are_inclusive(self):
        assert evaluate_threshold(70, 70, 80, INCREASING) == AlertSeverity.WARNING
        assert evaluate_threshold(80, 70, 80, INCREASING) == AlertSeverity.CRITICAL

    def test_decreasing_warning(self):
        assert evaluate_threshold(92, 95, 90, DECREASING) == AlertSeverity.WARNING

    def test_decreasing_critical(self):
        assert evaluate_threshold(85, 95, 90, DECREASING) == AlertSeverity.CRITICAL

    def test_decreasing_healthy(self):
        assert evaluate_threshold(98, 95, 90, DECREASING) == AlertSeverity.NONE

    def test_critical_wins_when_thresholds_coincide(self):
        assert evaluate_threshold(80, 80, 80, INCREASING) == AlertSeverity.CRITICAL
        assert evaluate_threshold(90, 90, 90, DECREASING) == AlertSeverity.CRITICAL

    def test_default_direction_is_increasing(self):
        assert evaluate_threshold(85, 70, 80) == AlertSeverity.CRITICAL


# ============================================================
# RISK METRIC TESTS
# ============================================================

class TestRiskMetric:
    """Tests for RiskMetric validation."""

    def test_direction_inferred_from_thresholds(self):
        metric = RiskMetric(
            id="success_rate",
            category=RiskCategory.PERFORMANCE,
            name="Success Rate",
            current_value=97,
            threshold_warning=95,
            threshold_critical=90,
            unit="%",
        )
        assert metric.direction == DECREASING

    def test_category_coerced_from_string(self):
        metric = RiskMetric(
            id="cost",
            category="cost",
            name="Cost",
            current_value=1,
            threshold_warning=2,
            threshold_critical=3,
            unit="USD",
        )
        assert metric.category == RiskCategory.COST

    def test_unknown_category_rejected(self):
        with pytest.raises(RiskConfigurationError):
            RiskMetric(
                id="x",
                category="weather",
                name="X",
                current_value=1,
                threshold_warning=2,
                threshold_critical=3,
                unit="",
            )

    def test_non_finite_threshold_rejected(self):
        with pytest.raises(RiskConfigurationError):
            RiskMetric(
                id="x",
                category=RiskCategory.COST,
                name="X",
                current_value=1,
                threshold_warning=float("nan"),
                threshold_critical=3,
                unit="",
            )

    def test_thresholds_against_explicit_direction_rejected(self):
        with pytest.raises(RiskConfigurationError):
            RiskMetric(
                id="x",
                category=RiskCategory.COST,
                name="X",
                current_value=1,
                threshold_warning=5,
                threshold_critical=3,
                unit="",
                direction=INCREASING,
            )

    def test_default_catalog_is_consistent(self):
        catalog = get_default_risk_catalog()
        ids = [m.id for m in catalog]

        assert len(ids) == len(set(ids))
        by_id = {m.id: m for m in catalog}
        assert by_id["storage_quota_usage"].direction == INCREASING
        assert by_id["upload_success_rate_decline"].direction == DECREASING
        assert by_id["user_adoption_rate"].direction == DECREASING

    def test_default_catalog_is_a_fresh_copy(self):
        first = get_default_risk_catalog()
        first[0].current_value = 999
        assert get_default_risk_catalog()[0].current_value != 999
