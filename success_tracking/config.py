"""
Success Tracking - Configuration.

============================================================
PURPOSE
============================================================
Scoring weights and thresholds for the Project Success
Score, plus the default phase-gate catalog of the rollout.

============================================================
THRESHOLDS
============================================================
- gate_pass_progress_pct (80): a criterion below 80% of its
  target blocks its phase gate, whatever its weight
- recommendation_threshold (70): a category scoring below
  this gets a recommendation
- priority fix: progress below 60% AND weight above 0.5
- critical blocker: progress below 50% AND weight above 0.7

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List

from .types import (
    CriterionCategory,
    PhaseGate,
    ScoreCategory,
    SuccessCriterion,
    SuccessTrackingError,
)


# ============================================================
# SCORING CONFIGURATION
# ============================================================


def _default_category_weights() -> Dict[ScoreCategory, float]:
    return {
        ScoreCategory.BUSINESS: 0.40,
        ScoreCategory.TECHNICAL: 0.30,
        ScoreCategory.USER_EXPERIENCE: 0.20,
        ScoreCategory.SUSTAINABILITY: 0.10,
    }


@dataclass(frozen=True)
class ScoringConfig:
    """
    Configuration of the Project Success Score.

    Category weights must sum to 1 so the overall score is a
    convex combination of the category scores.
    """

    category_weights: Dict[ScoreCategory, float] = field(default_factory=_default_category_weights)

    gate_pass_progress_pct: float = 80.0
    recommendation_threshold: float = 70.0

    priority_fix_progress_pct: float = 60.0
    priority_fix_min_weight: float = 0.5
    max_priority_fixes: int = 3

    critical_blocker_progress_pct: float = 50.0
    critical_blocker_min_weight: float = 0.7

    excellent_threshold: float = 85.0
    good_threshold: float = 70.0
    acceptable_threshold: float = 55.0

    def __post_init__(self) -> None:
        missing = set(ScoreCategory) - set(self.category_weights)
        if missing:
            raise SuccessTrackingError(
                f"Missing category weights: {sorted(c.value for c in missing)}"
            )
        total = sum(self.category_weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise SuccessTrackingError(f"Category weights must sum to 1, got {total}")
        if not (self.excellent_threshold >= self.good_threshold >= self.acceptable_threshold):
            raise SuccessTrackingError("Success level thresholds must be descending")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_weights": {k.value: v for k, v in self.category_weights.items()},
            "gate_pass_progress_pct": self.gate_pass_progress_pct,
            "recommendation_threshold": self.recommendation_threshold,
            "priority_fix_progress_pct": self.priority_fix_progress_pct,
            "priority_fix_min_weight": self.priority_fix_min_weight,
            "max_priority_fixes": self.max_priority_fixes,
            "critical_blocker_progress_pct": self.critical_blocker_progress_pct,
            "critical_blocker_min_weight": self.critical_blocker_min_weight,
            "excellent_threshold": self.excellent_threshold,
            "good_threshold": self.good_threshold,
            "acceptable_threshold": self.acceptable_threshold,
        }


def get_default_config() -> ScoringConfig:
    return ScoringConfig()


# ============================================================
# DEFAULT PHASE GATES
# ============================================================


def get_default_phase_gates() -> List[PhaseGate]:
    """
    Build a fresh copy of the rollout's phase gates.

    Statuses are derived by the tracker on construction, so
    criteria here only carry values.
    """
    return [
        PhaseGate(
            phase="phase_1",
            name="Foundation Setup",
            target_completion=date(2024, 1, 15),
            criteria=[
                SuccessCriterion(
                    id="database_schema_setup",
                    category=CriterionCategory.TECHNICAL,
                    name="Database Schema Setup",
                    description="Database schema created and validated",
                    target_value=100,
                    current_value=100,
                    unit="%",
                    weight=0.8,
                    evidence=["Schema migration executed successfully"],
                    validation_method="Automated migration test",
                ),
                SuccessCriterion(
                    id="tus_server_integration",
                    category=CriterionCategory.TECHNICAL,
                    name="TUS Server Integration",
                    description="Resumable upload server running and configured",
                    target_value=100,
                    current_value=85,
                    unit="%",
                    weight=0.9,
                    evidence=[
                        "Upload server responding to health checks",
                        "Upload functionality working",
                    ],
                    validation_method="Integration tests",
                ),
                SuccessCriterion(
                    id="basic_upload_functionality",
                    category=CriterionCategory.TECHNICAL,
                    name="Basic Upload Functionality",
                    description="Basic file upload working up to 500MB",
                    target_value=500,
                    current_value=500,
                    unit="MB",
                    weight=1.0,
                    evidence=["Successfully uploaded 500MB test file"],
                    validation_method="Manual testing",
                ),
                SuccessCriterion(
                    id="progress_tracking",
                    category=CriterionCategory.USER_EXPERIENCE,
                    name="Progress Tracking",
                    description="Real-time upload progress bar",
                    target_value=100,
                    current_value=90,
                    unit="%",
                    weight=0.6,
                    evidence=["Progress bar updates every 5%", "Real-time feedback working"],
                    validation_method="UI testing",
                ),
            ],
        ),
        PhaseGate(
            phase="phase_2",
            name="Core Features",
            target_completion=date(2024, 1, 17),
            criteria=[
                SuccessCriterion(
                    id="large_file_support",
                    category=CriterionCategory.TECHNICAL,
                    name="Large File Support",
                    description="Files up to 2GB",
                    target_value=2048,
                    current_value=500,
                    unit="MB",
                    weight=0.9,
                    validation_method="Stress testing with 2GB files",
                ),
                SuccessCriterion(
                    id="format_support",
                    category=CriterionCategory.TECHNICAL,
                    name="Format Support",
                    description="All major formats (MP4, AVI, MOV, ...)",
                    target_value=95,
                    current_value=60,
                    unit="%",
                    weight=0.7,
                    evidence=["MP4 and MOV support confirmed"],
                    validation_method="Format compatibility testing",
                ),
                SuccessCriterion(
                    id="admin_integration",
                    category=CriterionCategory.USER_EXPERIENCE,
                    name="Admin Integration",
                    description="Upload interface integrated in the admin panel",
                    target_value=100,
                    current_value=30,
                    unit="%",
                    weight=0.8,
                    evidence=["Basic UI components created"],
                    validation_method="User acceptance testing",
                ),
            ],
        ),
        PhaseGate(
            phase="phase_3",
            name="Production Ready",
            target_completion=date(2024, 1, 19),
            criteria=[
                SuccessCriterion(
                    id="performance_optimization",
                    category=CriterionCategory.TECHNICAL,
                    name="Performance Optimization",
                    description="Upload 1GB in under 5 minutes (95th percentile)",
                    target_value=5,
                    current_value=8,
                    unit="min",
                    weight=0.9,
                    lower_is_better=True,
                    validation_method="Performance benchmarking",
                ),
                SuccessCriterion(
                    id="monitoring_system",
                    category=CriterionCategory.SUSTAINABILITY,
                    name="Monitoring System",
                    description="Complete monitoring system",
                    target_value=100,
                    current_value=40,
                    unit="%",
                    weight=0.8,
                    evidence=["Basic telemetry implemented"],
                    validation_method="Monitoring dashboard validation",
                ),
                SuccessCriterion(
                    id="security_validation",
                    category=CriterionCategory.SECURITY,
                    name="Security Validation",
                    description="Zero critical or high vulnerabilities",
                    target_value=0,
                    current_value=2,
                    unit="vulnerabilities",
                    weight=1.0,
                    lower_is_better=True,
                    validation_method="Security scan",
                ),
            ],
        ),
    ]
