"""
Success Tracking - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for success criteria, phase gates and the
Project Success Score (PSS).

============================================================
OWNERSHIP
============================================================
- SuccessCriterion / PhaseGate: mutable, owned by the
  SuccessTracker. Criteria change only through explicit
  update calls; phase fields are derived after each change.
- ProjectSuccessScore / PhaseGateValidation / ProgressReport:
  immutable, recomputed on demand, never persisted here.

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ============================================================
# ENUMS
# ============================================================


class ScoreCategory(str, Enum):
    """The four buckets of the Project Success Score."""

    BUSINESS = "business"
    TECHNICAL = "technical"
    USER_EXPERIENCE = "user_experience"
    SUSTAINABILITY = "sustainability"


class CriterionCategory(str, Enum):
    """Category of a success criterion."""

    TECHNICAL = "technical"
    BUSINESS = "business"
    USER_EXPERIENCE = "user_experience"
    SECURITY = "security"
    SUSTAINABILITY = "sustainability"

    @property
    def score_category(self) -> ScoreCategory:
        """Security criteria are scored in the sustainability bucket."""
        if self == CriterionCategory.SECURITY:
            return ScoreCategory.SUSTAINABILITY
        return ScoreCategory(self.value)


class CriterionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class PhaseStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class SuccessLevel(str, Enum):
    """
    Band of the overall score.

    - EXCELLENT: >= 85
    - GOOD: >= 70
    - ACCEPTABLE: >= 55
    - NEEDS_IMPROVEMENT: below 55
    """

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    NEEDS_IMPROVEMENT = "needs_improvement"


# ============================================================
# SUCCESS CRITERION
# ============================================================


@dataclass
class SuccessCriterion:
    """
    A weighted, target-bound indicator.

    ``weight`` is the relative importance within its category
    (0..1). ``lower_is_better`` criteria are met when
    current_value falls to target_value or below.
    """

    id: str
    category: CriterionCategory
    name: str
    target_value: float
    current_value: float
    unit: str
    weight: float
    description: str = ""
    status: CriterionStatus = CriterionStatus.NOT_STARTED
    evidence: List[str] = field(default_factory=list)
    validation_method: str = ""
    lower_is_better: bool = False
    last_updated: Optional[datetime] = None

    def __post_init__(self) -> None:
        try:
            self.category = CriterionCategory(self.category)
        except ValueError as e:
            raise InvalidCriterionError(
                f"Criterion '{self.id}' has unknown category '{self.category}'",
                criterion_id=self.id,
            ) from e
        self.status = CriterionStatus(self.status)
        validate_criterion_values(self.id, self.target_value, self.current_value, self.weight)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "name": self.name,
            "description": self.description,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "unit": self.unit,
            "weight": self.weight,
            "status": self.status.value,
            "evidence": list(self.evidence),
            "validation_method": self.validation_method,
            "lower_is_better": self.lower_is_better,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


def validate_criterion_values(
    criterion_id: str,
    target_value: float,
    current_value: float,
    weight: float,
) -> None:
    """
    Raises:
        InvalidCriterionError: non-finite values or weight outside 0..1
    """
    for label, value in (("target_value", target_value), ("current_value", current_value)):
        if value is None or not math.isfinite(float(value)):
            raise InvalidCriterionError(
                f"Criterion '{criterion_id}' has a non-finite {label}: {value}",
                criterion_id=criterion_id,
            )
    if weight is None or not (0.0 <= float(weight) <= 1.0):
        raise InvalidCriterionError(
            f"Criterion '{criterion_id}' weight must be within 0..1, got {weight}",
            criterion_id=criterion_id,
        )


# ============================================================
# PHASE GATE
# ============================================================


@dataclass
class PhaseGate:
    """
    A named milestone over an ordered list of criteria.

    status, completion_percentage and blocking_issues are
    derived by the tracker after every change.
    """

    phase: str
    name: str
    criteria: List[SuccessCriterion]
    target_completion: date
    status: PhaseStatus = PhaseStatus.NOT_STARTED
    completion_percentage: float = 0.0
    blocking_issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "name": self.name,
            "target_completion": self.target_completion.isoformat(),
            "status": self.status.value,
            "completion_percentage": round(self.completion_percentage, 2),
            "blocking_issues": list(self.blocking_issues),
            "criteria": [c.to_dict() for c in self.criteria],
        }


# ============================================================
# RESULTS
# ============================================================


@dataclass(frozen=True)
class PhaseGateValidation:
    """Outcome of validating one phase gate."""

    phase: str
    passed: bool
    blockers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "passed": self.passed,
            "blockers": list(self.blockers),
        }


@dataclass(frozen=True)
class ProjectSuccessScore:
    """The Project Success Score and its category breakdown."""

    overall_score: float
    business_score: float
    technical_score: float
    user_experience_score: float
    sustainability_score: float
    success_level: SuccessLevel
    recommendations: Tuple[str, ...]
    calculated_at: datetime

    @property
    def category_scores(self) -> Dict[ScoreCategory, float]:
        return {
            ScoreCategory.BUSINESS: self.business_score,
            ScoreCategory.TECHNICAL: self.technical_score,
            ScoreCategory.USER_EXPERIENCE: self.user_experience_score,
            ScoreCategory.SUSTAINABILITY: self.sustainability_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": round(self.overall_score, 2),
            "business_score": round(self.business_score, 2),
            "technical_score": round(self.technical_score, 2),
            "user_experience_score": round(self.user_experience_score, 2),
            "sustainability_score": round(self.sustainability_score, 2),
            "success_level": self.success_level.value,
            "recommendations": list(self.recommendations),
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class ProgressReport:
    """Combined progress view across all phases."""

    overall_progress: float
    success_level: SuccessLevel
    phase_progress: Dict[str, float]
    critical_blockers: Tuple[str, ...]
    achievements: Tuple[str, ...]
    next_actions: Tuple[str, ...]
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_progress": round(self.overall_progress, 2),
            "success_level": self.success_level.value,
            "phase_progress": {k: round(v, 2) for k, v in self.phase_progress.items()},
            "critical_blockers": list(self.critical_blockers),
            "achievements": list(self.achievements),
            "next_actions": list(self.next_actions),
            "generated_at": self.generated_at.isoformat(),
        }


# ============================================================
# ERROR TYPES
# ============================================================


class SuccessTrackingError(Exception):
    """Base exception for success tracking errors."""

    def __init__(self, message: str, criterion_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.criterion_id = criterion_id


class CriterionNotFoundError(SuccessTrackingError):
    """Raised for an unknown criterion id."""
    pass


class PhaseNotFoundError(SuccessTrackingError):
    """Raised for an unknown phase id."""
    pass


class InvalidCriterionError(SuccessTrackingError):
    """Raised for invalid criterion definitions or updates."""
    pass
