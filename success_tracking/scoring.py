"""
Success Tracking - Score Aggregation.

============================================================
PURPOSE
============================================================
Pure functions behind the Project Success Score:

- criterion_progress: percent of target reached (0..100)
- derive_status: criterion status from its values
- calculate_category_score: weighted mean progress
- calculate_overall_score: weighted sum of category scores
- classify_success_level: score -> SuccessLevel
- generate_recommendations / generate_next_actions

============================================================
PROGRESS
============================================================
    progress = min(100, current / target * 100)

For lower_is_better criteria the ratio is inverted
(target / current). A zero target (e.g. "zero
vulnerabilities") gives 100 once met and 0 otherwise.

============================================================
"""

from typing import Dict, Iterable, List, Sequence

from .config import ScoringConfig
from .types import (
    CriterionStatus,
    ScoreCategory,
    SuccessCriterion,
    SuccessLevel,
)


# ============================================================
# CRITERION PROGRESS
# ============================================================


def is_target_met(criterion: SuccessCriterion) -> bool:
    if criterion.lower_is_better:
        return criterion.current_value <= criterion.target_value
    return criterion.current_value >= criterion.target_value


def criterion_progress(criterion: SuccessCriterion) -> float:
    """Percent of target reached, capped at 100."""
    target = criterion.target_value
    current = criterion.current_value

    if is_target_met(criterion):
        return 100.0

    if criterion.lower_is_better:
        if target <= 0 or current <= 0:
            return 0.0
        ratio = target / current
    else:
        if target == 0:
            return 0.0
        ratio = current / target

    return max(0.0, min(100.0, ratio * 100.0))


def derive_status(criterion: SuccessCriterion) -> CriterionStatus:
    """
    completed when the target is met, in_progress when any
    progress exists, else not_started.

    A criterion forced to failed stays failed until it meets
    its target.
    """
    if is_target_met(criterion):
        return CriterionStatus.COMPLETED
    if criterion.status == CriterionStatus.FAILED:
        return CriterionStatus.FAILED
    if criterion_progress(criterion) > 0:
        return CriterionStatus.IN_PROGRESS
    return CriterionStatus.NOT_STARTED


# ============================================================
# AGGREGATION
# ============================================================


def calculate_category_score(criteria: Sequence[SuccessCriterion]) -> float:
    """
    Weighted mean progress of ``criteria``.

    An empty list scores 100 (nothing to fail). A list whose
    weights are all zero falls back to the unweighted mean.
    """
    if not criteria:
        return 100.0

    weighted_sum = 0.0
    total_weight = 0.0
    for criterion in criteria:
        weighted_sum += criterion_progress(criterion) * criterion.weight
        total_weight += criterion.weight

    if total_weight <= 0:
        return sum(criterion_progress(c) for c in criteria) / len(criteria)
    return weighted_sum / total_weight


def partition_by_category(
    criteria: Iterable[SuccessCriterion],
) -> Dict[ScoreCategory, List[SuccessCriterion]]:
    """Split criteria into the four score buckets (security -> sustainability)."""
    buckets: Dict[ScoreCategory, List[SuccessCriterion]] = {c: [] for c in ScoreCategory}
    for criterion in criteria:
        buckets[criterion.category.score_category].append(criterion)
    return buckets


def calculate_category_scores(
    criteria: Iterable[SuccessCriterion],
) -> Dict[ScoreCategory, float]:
    return {
        category: calculate_category_score(bucket)
        for category, bucket in partition_by_category(criteria).items()
    }


def calculate_overall_score(
    category_scores: Dict[ScoreCategory, float],
    config: ScoringConfig,
) -> float:
    return sum(
        category_scores[category] * weight
        for category, weight in config.category_weights.items()
    )


def classify_success_level(score: float, config: ScoringConfig) -> SuccessLevel:
    if score >= config.excellent_threshold:
        return SuccessLevel.EXCELLENT
    if score >= config.good_threshold:
        return SuccessLevel.GOOD
    if score >= config.acceptable_threshold:
        return SuccessLevel.ACCEPTABLE
    return SuccessLevel.NEEDS_IMPROVEMENT


# ============================================================
# RECOMMENDATIONS
# ============================================================


CATEGORY_RECOMMENDATIONS = {
    ScoreCategory.BUSINESS: "Focus on business KPIs: improve user adoption and operational efficiency",
    ScoreCategory.TECHNICAL: "Address technical issues: optimize performance and reliability",
    ScoreCategory.USER_EXPERIENCE: "Enhance user experience: improve usability and accessibility",
    ScoreCategory.SUSTAINABILITY: "Strengthen sustainability: improve security and operational procedures",
}

ALL_CLEAR_RECOMMENDATION = "Excellent progress! Continue monitoring and maintain current quality standards"


def needs_priority_fix(criterion: SuccessCriterion, config: ScoringConfig) -> bool:
    return criterion.status == CriterionStatus.FAILED or (
        criterion_progress(criterion) < config.priority_fix_progress_pct
        and criterion.weight > config.priority_fix_min_weight
    )


def generate_recommendations(
    category_scores: Dict[ScoreCategory, float],
    criteria: Sequence[SuccessCriterion],
    config: ScoringConfig,
) -> List[str]:
    """
    One line per category below the recommendation threshold,
    then up to ``max_priority_fixes`` failing criteria in list
    order.
    """
    recommendations = [
        CATEGORY_RECOMMENDATIONS[category]
        for category in ScoreCategory
        if category_scores[category] < config.recommendation_threshold
    ]

    failing = [c for c in criteria if needs_priority_fix(c, config)]
    for criterion in failing[: config.max_priority_fixes]:
        recommendations.append(
            f"Priority fix needed: {criterion.name} "
            f"({criterion_progress(criterion):.1f}% of target)"
        )

    if not recommendations:
        recommendations.append(ALL_CLEAR_RECOMMENDATION)
    return recommendations


NEXT_ACTIONS = {
    SuccessLevel.NEEDS_IMPROVEMENT: (
        "Immediate action required: Address all critical and high-priority issues",
        "Daily standups to track progress on blocking items",
        "Consider additional resources or scope reduction",
    ),
    SuccessLevel.ACCEPTABLE: (
        'Focus on top 3 improvement areas to reach "good" level',
        "Implement quick wins to boost overall score",
        "Regular progress reviews to maintain momentum",
    ),
    SuccessLevel.GOOD: (
        'Polish remaining issues to achieve "excellent" rating',
        "Focus on user experience and sustainability improvements",
        "Document lessons learned and best practices",
    ),
    SuccessLevel.EXCELLENT: (
        "Maintain current standards through ongoing monitoring",
        "Share success patterns with other projects",
        "Plan for continuous improvement post-launch",
    ),
}


def generate_next_actions(
    criteria: Sequence[SuccessCriterion],
    level: SuccessLevel,
) -> List[str]:
    actions = list(NEXT_ACTIONS[level])
    in_progress = sum(1 for c in criteria if c.status == CriterionStatus.IN_PROGRESS)
    if in_progress > 0:
        actions.append(f"Complete {in_progress} in-progress criteria")
    return actions
