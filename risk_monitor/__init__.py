"""
Risk Monitor Package.

============================================================
PURPOSE
============================================================
Periodic evaluation of rollout risk metrics.

Samples each registered RiskMetric, classifies its trend
and threshold severity, attempts automatic mitigation for
allow-listed risks and fans alerts out to observers and the
alert store.

============================================================
COMPONENTS
============================================================
- evaluators: classify_trend, evaluate_threshold
- sources: MetricDataSource, CategoryDataSource
- resolver: AutoResolver, mitigation targets
- alerting: AlertDispatcher, alert stores
- scheduler: single-flight PeriodicScheduler
- engine: RiskMonitor orchestrator

============================================================
"""

from .types import (
    RiskCategory,
    RiskSeverityLabel,
    Trend,
    AlertSeverity,
    ThresholdDirection,
    RiskMetric,
    RiskAlert,
    RiskSample,
    RiskCheckOutcome,
    RiskCheckReport,
    MitigationResult,
    RiskMonitorError,
    RiskConfigurationError,
    UnknownRiskError,
    AlertNotFoundError,
    SamplingError,
    AlertPersistenceError,
    MitigationError,
)
from .config import (
    RiskMonitorConfig,
    get_default_config,
    get_default_risk_catalog,
)
from .evaluators import classify_trend, evaluate_threshold, percent_change
from .sources import MetricDataSource, CategoryDataSource, SamplingFunction
from .resolver import (
    MitigationTarget,
    LocalMitigationTarget,
    UploadThrottle,
    MitigationAction,
    AutoResolver,
    build_default_resolver,
)
from .alerting import (
    AlertDispatcher,
    AlertObserver,
    AlertStore,
    InMemoryAlertStore,
    StoredAlert,
    build_alert_message,
)
from .history import RiskHistoryStore, InMemoryRiskHistory
from .scheduler import PeriodicScheduler
from .engine import RiskMonitor


__all__ = [
    # Types
    "RiskCategory",
    "RiskSeverityLabel",
    "Trend",
    "AlertSeverity",
    "ThresholdDirection",
    "RiskMetric",
    "RiskAlert",
    "RiskSample",
    "RiskCheckOutcome",
    "RiskCheckReport",
    "MitigationResult",
    # Errors
    "RiskMonitorError",
    "RiskConfigurationError",
    "UnknownRiskError",
    "AlertNotFoundError",
    "SamplingError",
    "AlertPersistenceError",
    "MitigationError",
    # Config
    "RiskMonitorConfig",
    "get_default_config",
    "get_default_risk_catalog",
    # Evaluators
    "classify_trend",
    "evaluate_threshold",
    "percent_change",
    # Sources
    "MetricDataSource",
    "CategoryDataSource",
    "SamplingFunction",
    # Resolution
    "MitigationTarget",
    "LocalMitigationTarget",
    "UploadThrottle",
    "MitigationAction",
    "AutoResolver",
    "build_default_resolver",
    # Alerting
    "AlertDispatcher",
    "AlertObserver",
    "AlertStore",
    "InMemoryAlertStore",
    "StoredAlert",
    "build_alert_message",
    # History
    "RiskHistoryStore",
    "InMemoryRiskHistory",
    # Orchestration
    "PeriodicScheduler",
    "RiskMonitor",
]
