"""
Success Tracking Package.

============================================================
PURPOSE
============================================================
Weighted success criteria grouped into phase gates, scored
into the Project Success Score (PSS).

============================================================
COMPONENTS
============================================================
- scoring: progress, category and overall scores
- phase_gate: gate validation, blockers, achievements
- engine: SuccessTracker

============================================================
"""

from .types import (
    ScoreCategory,
    CriterionCategory,
    CriterionStatus,
    PhaseStatus,
    SuccessLevel,
    SuccessCriterion,
    PhaseGate,
    PhaseGateValidation,
    ProjectSuccessScore,
    ProgressReport,
    SuccessTrackingError,
    CriterionNotFoundError,
    PhaseNotFoundError,
    InvalidCriterionError,
)
from .config import (
    ScoringConfig,
    get_default_config,
    get_default_phase_gates,
)
from .scoring import (
    criterion_progress,
    derive_status,
    calculate_category_score,
    calculate_overall_score,
    classify_success_level,
    generate_recommendations,
)
from .phase_gate import validate_phase_gate
from .engine import SuccessTracker


__all__ = [
    # Types
    "ScoreCategory",
    "CriterionCategory",
    "CriterionStatus",
    "PhaseStatus",
    "SuccessLevel",
    "SuccessCriterion",
    "PhaseGate",
    "PhaseGateValidation",
    "ProjectSuccessScore",
    "ProgressReport",
    # Errors
    "SuccessTrackingError",
    "CriterionNotFoundError",
    "PhaseNotFoundError",
    "InvalidCriterionError",
    # Config
    "ScoringConfig",
    "get_default_config",
    "get_default_phase_gates",
    # Scoring
    "criterion_progress",
    "derive_status",
    "calculate_category_score",
    "calculate_overall_score",
    "classify_success_level",
    "generate_recommendations",
    "validate_phase_gate",
    # Tracker
    "SuccessTracker",
]
