"""
Risk Monitor - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the rollout risk monitor.

Defines the enums, records and errors shared by the
evaluators, the alert dispatcher, the auto resolver and
the RiskMonitor orchestrator.

============================================================
OWNERSHIP
============================================================
- RiskMetric: mutable, owned exclusively by RiskMonitor.
  current_value / trend / last_check change once per tick.
- RiskAlert: immutable once created by the AlertDispatcher.
- RiskSample: immutable history point, one per successful
  sample.

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4


# ============================================================
# ENUMS
# ============================================================


class RiskCategory(str, Enum):
    """
    Category of a risk metric.

    Each category maps to its own pluggable sampling table.
    """

    STORAGE = "storage"
    PERFORMANCE = "performance"
    ADOPTION = "adoption"
    COST = "cost"
    TECHNICAL_DEBT = "technical_debt"

    @classmethod
    def all_categories(cls) -> List["RiskCategory"]:
        """Return all categories in sampling order."""
        return [cls.STORAGE, cls.PERFORMANCE, cls.ADOPTION, cls.COST, cls.TECHNICAL_DEBT]


class RiskSeverityLabel(str, Enum):
    """
    Informational importance of a risk.

    Carried for display only. It plays no part in evaluation.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Trend(str, Enum):
    """Direction of change between consecutive samples."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class AlertSeverity(str, Enum):
    """
    Classification of a sampled value against its thresholds.

    - NONE: no threshold crossed
    - WARNING: warning threshold crossed
    - CRITICAL: critical threshold crossed (always wins)
    """

    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def is_alerting(self) -> bool:
        return self != AlertSeverity.NONE

    @property
    def status_label(self) -> str:
        """Status label used by the risks API (healthy/warning/critical)."""
        return "healthy" if self == AlertSeverity.NONE else self.value


class ThresholdDirection(str, Enum):
    """
    Polarity of a risk metric.

    - INCREASING_IS_WORSE: alert when value rises to a threshold
    - DECREASING_IS_WORSE: alert when value falls to a threshold
    """

    INCREASING_IS_WORSE = "increasing_is_worse"
    DECREASING_IS_WORSE = "decreasing_is_worse"

    @classmethod
    def infer(cls, threshold_warning: float, threshold_critical: float) -> "ThresholdDirection":
        """
        Infer polarity from threshold ordering.

        A warning line above the critical line only makes sense
        when lower values are worse (e.g. success rate 95 / 90).
        """
        if threshold_warning > threshold_critical:
            return cls.DECREASING_IS_WORSE
        return cls.INCREASING_IS_WORSE

    @property
    def higher_is_better(self) -> bool:
        return self == ThresholdDirection.DECREASING_IS_WORSE


# ============================================================
# RISK METRIC
# ============================================================


@dataclass
class RiskMetric:
    """
    A named, periodically sampled indicator with thresholds.

    Defined statically at startup. Only RiskMonitor mutates
    current_value, trend and last_check, once per tick.
    """

    id: str
    category: RiskCategory
    name: str
    current_value: float
    threshold_warning: float
    threshold_critical: float
    unit: str
    severity: RiskSeverityLabel = RiskSeverityLabel.MEDIUM
    description: str = ""
    direction: Optional[ThresholdDirection] = None
    trend: Trend = Trend.STABLE
    last_check: Optional[datetime] = None
    mitigation_actions: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.category, RiskCategory):
            try:
                self.category = RiskCategory(self.category)
            except ValueError as e:
                raise RiskConfigurationError(
                    f"Risk '{self.id}' has unknown category '{self.category}'",
                    risk_id=self.id,
                ) from e
        for label, value in (
            ("current_value", self.current_value),
            ("threshold_warning", self.threshold_warning),
            ("threshold_critical", self.threshold_critical),
        ):
            if value is None or not math.isfinite(float(value)):
                raise RiskConfigurationError(
                    f"Risk '{self.id}' has a non-finite {label}: {value}",
                    risk_id=self.id,
                )
        if self.direction is None:
            self.direction = ThresholdDirection.infer(
                self.threshold_warning, self.threshold_critical
            )
        else:
            self.direction = ThresholdDirection(self.direction)
        self.validate_thresholds(self.threshold_warning, self.threshold_critical)

    def validate_thresholds(self, warning: float, critical: float) -> None:
        """Reject thresholds whose ordering contradicts the metric's direction."""
        if self.direction == ThresholdDirection.INCREASING_IS_WORSE and warning > critical:
            raise RiskConfigurationError(
                f"Risk '{self.id}': warning {warning} above critical {critical} "
                f"for an increasing-is-worse metric",
                risk_id=self.id,
            )
        if self.direction == ThresholdDirection.DECREASING_IS_WORSE and warning < critical:
            raise RiskConfigurationError(
                f"Risk '{self.id}': warning {warning} below critical {critical} "
                f"for a decreasing-is-worse metric",
                risk_id=self.id,
            )

    def threshold_for(self, severity: "AlertSeverity") -> Optional[float]:
        """Threshold value that defines ``severity`` for this metric."""
        if severity == AlertSeverity.CRITICAL:
            return self.threshold_critical
        if severity == AlertSeverity.WARNING:
            return self.threshold_warning
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "name": self.name,
            "description": self.description,
            "current_value": self.current_value,
            "threshold_warning": self.threshold_warning,
            "threshold_critical": self.threshold_critical,
            "direction": self.direction.value,
            "unit": self.unit,
            "trend": self.trend.value,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "mitigation_actions": list(self.mitigation_actions),
        }


# ============================================================
# ALERT RECORD
# ============================================================


@dataclass(frozen=True)
class RiskAlert:
    """
    Alert raised when a sampled value crosses a threshold.

    Immutable once created. Resolution state, when tracked, lives
    in the alert store, never on this record.
    """

    risk_id: str
    severity: AlertSeverity
    message: str
    recommended_actions: Tuple[str, ...] = ()
    auto_resolution_attempted: bool = False
    auto_resolution_succeeded: Optional[bool] = None
    current_value: Optional[float] = None
    threshold: Optional[float] = None
    unit: str = ""
    category: Optional[RiskCategory] = None
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    alert_id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_id": str(self.alert_id),
            "risk_id": self.risk_id,
            "triggered_at": self.triggered_at.isoformat(),
            "severity": self.severity.value,
            "message": self.message,
            "recommended_actions": list(self.recommended_actions),
            "auto_resolution_attempted": self.auto_resolution_attempted,
            "auto_resolution_succeeded": self.auto_resolution_succeeded,
            "current_value": self.current_value,
            "threshold": self.threshold,
            "unit": self.unit,
            "category": self.category.value if self.category else None,
        }


# ============================================================
# HISTORY AND CYCLE RESULTS
# ============================================================


@dataclass(frozen=True)
class RiskSample:
    """One successful sample of a risk metric."""

    risk_id: str
    value: float
    trend: Trend
    severity: AlertSeverity
    sampled_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_id": self.risk_id,
            "value": self.value,
            "trend": self.trend.value,
            "severity": self.severity.value,
            "timestamp": self.sampled_at.isoformat(),
            "date": self.sampled_at.date().isoformat(),
        }


@dataclass(frozen=True)
class RiskCheckOutcome:
    """What happened to one metric during one evaluation cycle."""

    risk_id: str
    sampled: bool
    value: Optional[float] = None
    trend: Optional[Trend] = None
    severity: AlertSeverity = AlertSeverity.NONE
    alert: Optional[RiskAlert] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RiskCheckReport:
    """Summary of one full evaluation cycle."""

    started_at: datetime
    finished_at: datetime
    outcomes: Tuple[RiskCheckOutcome, ...] = ()

    @property
    def alerts(self) -> List[RiskAlert]:
        return [o.alert for o in self.outcomes if o.alert is not None]

    @property
    def skipped(self) -> List[str]:
        return [o.risk_id for o in self.outcomes if not o.sampled]


@dataclass(frozen=True)
class MitigationResult:
    """Result of a manually triggered mitigation."""

    risk_id: str
    triggered_at: datetime
    auto_resolvable: bool
    succeeded: bool
    action: Optional[str] = None
    recommended_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_id": self.risk_id,
            "triggered_at": self.triggered_at.isoformat(),
            "auto_resolvable": self.auto_resolvable,
            "succeeded": self.succeeded,
            "action": self.action,
            "recommended_actions": list(self.recommended_actions),
        }


# ============================================================
# ERROR TYPES
# ============================================================


class RiskMonitorError(Exception):
    """Base exception for risk monitor errors."""

    def __init__(self, message: str, risk_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.risk_id = risk_id


class RiskConfigurationError(RiskMonitorError):
    """
    Invalid risk definition or registration.

    Raised at startup/registration only, never inside a cycle.
    """
    pass


class UnknownRiskError(RiskMonitorError):
    """Raised when an explicit call references an unregistered risk id."""
    pass


class AlertNotFoundError(RiskMonitorError):
    """Raised when resolving an alert id the store does not hold."""
    pass


class SamplingError(RiskMonitorError):
    """Raised by data sources on transport failure."""
    pass


class AlertPersistenceError(RiskMonitorError):
    """Raised by alert stores when an alert cannot be written."""
    pass


class MitigationError(RiskMonitorError):
    """Raised by mitigation targets when an action cannot run."""
    pass
