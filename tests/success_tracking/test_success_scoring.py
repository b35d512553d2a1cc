"""
Tests for success criterion progress and score aggregation.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- Progress is capped at 100 and inverted for lower-is-better
- Category score is the weighted mean of progress
- Overall score is a convex combination of category scores
- Phase gates block below 80% progress, whatever the weight

============================================================
"""

from datetime import date

import pytest

from success_tracking.config import ScoringConfig
from success_tracking.phase_gate import (
    derive_phase_status,
    find_critical_blockers,
    list_achievements,
    validate_phase_gate,
)
from success_tracking.scoring import (
    calculate_category_score,
    calculate_overall_score,
    classify_success_level,
    criterion_progress,
    derive_status,
    generate_next_actions,
    generate_recommendations,
)
from success_tracking.types import (
    CriterionCategory,
    CriterionStatus,
    InvalidCriterionError,
    PhaseGate,
    PhaseStatus,
    ScoreCategory,
    SuccessCriterion,
    SuccessLevel,
    SuccessTrackingError,
)


# ============================================================
# FIXTURES
# ============================================================

def criterion(
    criterion_id="c",
    current=50.0,
    target=100.0,
    weight=0.5,
    category=CriterionCategory.TECHNICAL,
    lower_is_better=False,
    status=None,
    unit="%",
):
    c = SuccessCriterion(
        id=criterion_id,
        category=category,
        name=criterion_id.replace("_", " ").title(),
        target_value=target,
        current_value=current,
        unit=unit,
        weight=weight,
        lower_is_better=lower_is_better,
    )
    c.status = status or derive_status(c)
    return c


def scores(business, technical, ux, sustainability):
    return {
        ScoreCategory.BUSINESS: business,
        ScoreCategory.TECHNICAL: technical,
        ScoreCategory.USER_EXPERIENCE: ux,
        ScoreCategory.SUSTAINABILITY: sustainability,
    }


@pytest.fixture
def config():
    return ScoringConfig()


# ============================================================
# PROGRESS TESTS
# ============================================================

class TestCriterionProgress:
    """Tests for criterion_progress and derive_status."""

    def test_partial_progress(self):
        assert criterion_progress(criterion(current=60)) == pytest.approx(60.0)

    def test_progress_capped_at_100(self):
        assert criterion_progress(criterion(current=150)) == 100.0

    def test_lower_is_better_inverts_ratio(self):
        c = criterion(current=8, target=5, lower_is_better=True)
        assert criterion_progress(c) == pytest.approx(62.5)

    def test_lower_is_better_met(self):
        c = criterion(current=4, target=5, lower_is_better=True)
        assert criterion_progress(c) == 100.0

    def test_zero_target_lower_is_better(self):
        assert criterion_progress(criterion(current=2, target=0, lower_is_better=True)) == 0.0
        assert criterion_progress(criterion(current=0, target=0, lower_is_better=True)) == 100.0

    def test_status_derivation(self):
        assert derive_status(criterion(current=100)) == CriterionStatus.COMPLETED
        assert derive_status(criterion(current=40)) == CriterionStatus.IN_PROGRESS
        assert derive_status(criterion(current=0)) == CriterionStatus.NOT_STARTED

    def test_failed_status_sticks_until_target_met(self):
        failed = criterion(current=40, status=CriterionStatus.FAILED)
        assert derive_status(failed) == CriterionStatus.FAILED

        failed.current_value = 100
        assert derive_status(failed) == CriterionStatus.COMPLETED

    @pytest.mark.parametrize("weight", [-0.1, 1.5])
    def test_weight_outside_unit_interval_rejected(self, weight):
        with pytest.raises(InvalidCriterionError):
            criterion(weight=weight)

    def test_non_finite_value_rejected(self):
        with pytest.raises(InvalidCriterionError):
            criterion(current=float("nan"))

    def test_security_scored_as_sustainability(self):
        assert CriterionCategory.SECURITY.score_category == ScoreCategory.SUSTAINABILITY


# ============================================================
# AGGREGATION TESTS
# ============================================================

class TestScoreAggregation:
    """Tests for category and overall scores."""

    def test_empty_category_scores_100(self):
        assert calculate_category_score([]) == 100.0

    @pytest.mark.parametrize("weight", [0.0, 0.1, 0.5, 1.0])
    def test_single_criterion_at_target_scores_100(self, weight):
        assert calculate_category_score([criterion(current=100, weight=weight)]) == 100.0

    def test_weighted_mean(self):
        criteria = [
            criterion("a", current=60, weight=0.9),
            criterion("b", current=100, weight=0.2),
        ]
        expected = (60 * 0.9 + 100 * 0.2) / 1.1
        assert calculate_category_score(criteria) == pytest.approx(expected)

    def test_overall_is_convex_combination(self, config):
        assert calculate_overall_score(scores(73, 73, 73, 73), config) == pytest.approx(73)

    def test_overall_weighting_and_level(self, config):
        overall = calculate_overall_score(scores(80, 60, 50, 90), config)

        assert overall == pytest.approx(80 * 0.4 + 60 * 0.3 + 50 * 0.2 + 90 * 0.1)
        assert classify_success_level(overall, config) == SuccessLevel.ACCEPTABLE

    @pytest.mark.parametrize("score,level", [
        (85, SuccessLevel.EXCELLENT),
        (84.99, SuccessLevel.GOOD),
        (70, SuccessLevel.GOOD),
        (55, SuccessLevel.ACCEPTABLE),
        (54.9, SuccessLevel.NEEDS_IMPROVEMENT),
    ])
    def test_success_level_breakpoints(self, config, score, level):
        assert classify_success_level(score, config) == level

    def test_weights_must_sum_to_one(self):
        with pytest.raises(SuccessTrackingError):
            ScoringConfig(category_weights=scores(0.5, 0.5, 0.5, 0.5))


# ============================================================
# RECOMMENDATION TESTS
# ============================================================

class TestRecommendations:
    """Tests for recommendations and next actions."""

    def test_all_clear(self, config):
        recs = generate_recommendations(scores(90, 90, 90, 90), [criterion(current=100)], config)
        assert recs == ["Excellent progress! Continue monitoring and maintain current quality standards"]

    def test_low_category_flagged(self, config):
        recs = generate_recommendations(scores(90, 65, 90, 90), [], config)

        assert len(recs) == 1
        assert recs[0].startswith("Address technical issues")

    def test_priority_fixes_limited_to_three_in_list_order(self, config):
        criteria = [
            criterion("a", current=10, weight=0.9),
            criterion("light", current=10, weight=0.5),
            criterion("b", current=20, weight=0.6),
            criterion("c", current=90, weight=0.6, status=CriterionStatus.FAILED),
            criterion("d", current=30, weight=1.0),
        ]

        recs = generate_recommendations(scores(90, 90, 90, 90), criteria, config)

        assert recs == [
            "Priority fix needed: A (10.0% of target)",
            "Priority fix needed: B (20.0% of target)",
            "Priority fix needed: C (90.0% of target)",
        ]

    def test_next_actions_include_in_progress_count(self):
        criteria = [criterion("a", current=50), criterion("b", current=100), criterion("c", current=10)]

        actions = generate_next_actions(criteria, SuccessLevel.ACCEPTABLE)

        assert len(actions) == 4
        assert actions[-1] == "Complete 2 in-progress criteria"

    def test_next_actions_tiers_differ(self):
        tiers = {
            level: tuple(generate_next_actions([], level)) for level in SuccessLevel
        }
        assert len(set(tiers.values())) == 4
        assert all(len(actions) == 3 for actions in tiers.values())


# ============================================================
# PHASE GATE TESTS
# ============================================================

def gate(criteria):
    return PhaseGate(
        phase="phase_x",
        name="Phase X",
        criteria=criteria,
        target_completion=date(2024, 1, 15),
    )


class TestPhaseGate:
    """Tests for phase gate validation."""

    def test_gate_with_one_lagging_criterion_fails(self, config):
        lagging = criterion("lagging", current=60, weight=0.9)
        done = criterion("done", current=100, weight=0.2)

        result = validate_phase_gate(gate([lagging, done]), config)

        assert not result.passed
        assert result.blockers == ("Lagging: 60.0% complete (target: 100%)",)

    def test_blockers_counted_regardless_of_weight(self, config):
        criteria = [
            criterion("a", current=10, weight=0.0),
            criterion("b", current=79.9, weight=1.0),
            criterion("c", current=80, weight=1.0),
        ]

        result = validate_phase_gate(gate(criteria), config)

        assert not result.passed
        assert len(result.blockers) == 2

    def test_gate_passes_at_80_percent(self, config):
        result = validate_phase_gate(gate([criterion(current=80)]), config)
        assert result.passed
        assert result.blockers == ()

    def test_blocker_formats_units(self, config):
        large = criterion("large_file_support", current=500, target=2048, unit="MB")

        result = validate_phase_gate(gate([large]), config)

        assert result.blockers == ("Large File Support: 24.4% complete (target: 2048MB)",)

    def test_phase_status(self):
        assert derive_phase_status(gate([criterion(current=100)])) == PhaseStatus.COMPLETED
        assert derive_phase_status(gate([criterion(current=0)])) == PhaseStatus.NOT_STARTED
        assert derive_phase_status(
            gate([criterion(current=100), criterion(current=0)])
        ) == PhaseStatus.IN_PROGRESS
        assert derive_phase_status(
            gate([criterion(current=50, status=CriterionStatus.FAILED)])
        ) == PhaseStatus.BLOCKED

    def test_critical_blockers(self, config):
        criteria = [
            criterion("heavy_lagging", current=40, weight=0.8),
            criterion("light_lagging", current=40, weight=0.7),
            criterion("failed", current=90, weight=0.1, status=CriterionStatus.FAILED),
        ]

        blockers = find_critical_blockers(criteria, config)

        assert blockers == [
            "Heavy Lagging: 40.0% of target",
            "Failed: 90.0% of target",
        ]

    def test_achievements(self):
        criteria = [
            criterion("upload_limit", current=500, target=500, unit="MB"),
            criterion("other", current=10),
        ]
        assert list_achievements(criteria) == ["✅ Upload Limit: 500MB achieved"]
