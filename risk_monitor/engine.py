"""
Risk Monitor - Orchestrator.

============================================================
PURPOSE
============================================================
Owns the registry of risk metrics and drives the periodic
evaluation cycle:

    Scheduler tick
      -> data source fetch (per metric)
      -> trend + threshold classification
      -> AlertDispatcher (auto resolution, observers, store)
      -> telemetry KPI

============================================================
CYCLE SEMANTICS
============================================================
- Metrics are processed sequentially, in registration order
- A fetch failure skips that metric for this cycle only
- Cycles never overlap: the scheduler skips a tick while one
  is running, and run_check() holds a lock so a manual check
  cannot interleave with a scheduled one
- Nothing raised inside a cycle reaches the scheduler

============================================================
"""

import asyncio
import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from telemetry.collector import TelemetryCollector

from .alerting import AlertDispatcher, AlertObserver, InMemoryAlertStore, StoredAlert
from .config import RiskMonitorConfig, get_default_config
from .evaluators import classify_trend, evaluate_threshold
from .history import RiskHistoryStore
from .scheduler import PeriodicScheduler
from .sources import MetricDataSource
from .types import (
    AlertSeverity,
    MitigationResult,
    RiskAlert,
    RiskCategory,
    RiskCheckOutcome,
    RiskCheckReport,
    RiskMetric,
    RiskSample,
    RiskConfigurationError,
    UnknownRiskError,
)


logger = logging.getLogger(__name__)


class RiskMonitor:
    """
    Periodic risk evaluation service.

    All collaborators are constructor parameters; there is no
    module-level instance.

    Usage:
        monitor = RiskMonitor(data_source, dispatcher, metrics=get_default_risk_catalog())
        monitor.on_alert(notify_ops)
        await monitor.start_monitoring()
        ...
        await monitor.stop_monitoring()
    """

    def __init__(
        self,
        data_source: MetricDataSource,
        dispatcher: Optional[AlertDispatcher] = None,
        config: Optional[RiskMonitorConfig] = None,
        metrics: Optional[List[RiskMetric]] = None,
        history: Optional[RiskHistoryStore] = None,
        telemetry: Optional[TelemetryCollector] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or get_default_config()
        self._clock = clock or SystemClock()
        self._data_source = data_source
        self._dispatcher = dispatcher or AlertDispatcher(
            InMemoryAlertStore(),
            callback_timeout_seconds=self._config.callback_timeout_seconds,
            clock=self._clock,
            max_observer_threads=self._config.max_observer_threads,
        )
        self._history = history
        self._telemetry = telemetry

        self._metrics: Dict[str, RiskMetric] = {}
        for metric in metrics or []:
            self.register_metric(metric)

        # Created on first check so it binds to the running loop
        self._check_lock: Optional[asyncio.Lock] = None
        self._last_report: Optional[RiskCheckReport] = None
        self._scheduler = PeriodicScheduler(
            self.run_check,
            self._config.check_interval_seconds,
            name="risk-monitor",
        )

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def config(self) -> RiskMonitorConfig:
        return self._config

    @property
    def dispatcher(self) -> AlertDispatcher:
        return self._dispatcher

    @property
    def scheduler(self) -> PeriodicScheduler:
        return self._scheduler

    @property
    def is_monitoring(self) -> bool:
        return self._scheduler.is_running

    @property
    def metrics(self) -> List[RiskMetric]:
        return list(self._metrics.values())

    @property
    def last_report(self) -> Optional[RiskCheckReport]:
        return self._last_report

    # --------------------------------------------------------
    # REGISTRY
    # --------------------------------------------------------

    def register_metric(self, metric: RiskMetric) -> None:
        """
        Add a metric to the registry.

        Raises:
            RiskConfigurationError: duplicate id
        """
        if metric.id in self._metrics:
            raise RiskConfigurationError(
                f"Risk '{metric.id}' is already registered",
                risk_id=metric.id,
            )
        self._metrics[metric.id] = metric
        logger.info(
            f"Registered risk {metric.id} ({metric.category.value}, "
            f"{metric.direction.value}, warning={metric.threshold_warning}, "
            f"critical={metric.threshold_critical})"
        )

    def get_metric(self, risk_id: str) -> RiskMetric:
        metric = self._metrics.get(risk_id)
        if metric is None:
            raise UnknownRiskError(f"Unknown risk '{risk_id}'", risk_id=risk_id)
        return metric

    def on_alert(self, callback: AlertObserver) -> None:
        """Register an alert observer."""
        self._dispatcher.on_alert(callback)

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start_monitoring(self, interval_seconds: Optional[float] = None) -> None:
        """
        Start periodic checks. One check runs immediately.

        Args:
            interval_seconds: Override the configured interval
        """
        await self._scheduler.start(interval_seconds or self._config.check_interval_seconds)
        logger.info(f"Risk monitoring started for {len(self._metrics)} risk(s)")

    async def stop_monitoring(self) -> None:
        """Stop periodic checks. Idempotent."""
        was_running = self._scheduler.is_running
        await self._scheduler.stop()
        if was_running:
            logger.info("Risk monitoring stopped")

    # --------------------------------------------------------
    # EVALUATION CYCLE
    # --------------------------------------------------------

    async def run_check(self) -> RiskCheckReport:
        """Run one full evaluation cycle over every registered metric."""
        if self._check_lock is None:
            self._check_lock = asyncio.Lock()
        async with self._check_lock:
            started_at = self._clock.now()
            outcomes = []
            for metric in list(self._metrics.values()):
                outcomes.append(await self._check_metric(metric))

            report = RiskCheckReport(
                started_at=started_at,
                finished_at=self._clock.now(),
                outcomes=tuple(outcomes),
            )
            self._last_report = report

            logger.info(
                f"Risk check complete: {len(outcomes)} risk(s), "
                f"{len(report.alerts)} alert(s), {len(report.skipped)} skipped"
            )
            return report

    async def _check_metric(self, metric: RiskMetric) -> RiskCheckOutcome:
        # sampling
        try:
            value = float(await self._data_source.fetch(metric))
        except Exception as e:
            logger.error(f"Error sampling risk {metric.id}, skipping this cycle: {e}")
            return RiskCheckOutcome(risk_id=metric.id, sampled=False, error=str(e))

        if not math.isfinite(value):
            logger.error(f"Risk {metric.id} sampled a non-finite value ({value}), skipping")
            return RiskCheckOutcome(risk_id=metric.id, sampled=False, error="non-finite value")

        # evaluating
        trend = classify_trend(
            metric.current_value,
            value,
            higher_is_better=metric.direction.higher_is_better,
            stable_band_pct=self._config.trend_stable_band_pct,
        )
        metric.current_value = value
        metric.trend = trend
        metric.last_check = self._clock.now()

        severity = evaluate_threshold(
            value,
            metric.threshold_warning,
            metric.threshold_critical,
            metric.direction,
        )
        logger.debug(
            f"Risk {metric.id} = {value}{metric.unit} trend={trend.value} severity={severity.value}"
        )

        await self._record_history(
            RiskSample(
                risk_id=metric.id,
                value=value,
                trend=trend,
                severity=severity,
                sampled_at=metric.last_check,
            )
        )

        # alerting
        alert: Optional[RiskAlert] = None
        if severity.is_alerting:
            logger.warning(
                f"Risk {metric.id} crossed {severity.value} threshold: "
                f"{value}{metric.unit} (threshold {metric.threshold_for(severity)}{metric.unit})"
            )
            alert = await self._dispatcher.dispatch(metric, severity)
            self._track_alert(alert)

        return RiskCheckOutcome(
            risk_id=metric.id,
            sampled=True,
            value=value,
            trend=trend,
            severity=severity,
            alert=alert,
        )

    async def _record_history(self, sample: RiskSample) -> None:
        if self._history is None or not self._config.record_history:
            return
        try:
            await self._history.record(sample)
        except Exception as e:
            logger.error(f"Failed to record history sample for risk {sample.risk_id}: {e}")

    def _track_alert(self, alert: RiskAlert) -> None:
        if self._telemetry is None:
            return
        self._telemetry.track_business_metric(
            "risk_alert_triggered",
            1,
            {
                "risk_id": alert.risk_id,
                "severity": alert.severity.value,
                "current_value": alert.current_value,
                "threshold": alert.threshold,
            },
        )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def current_severity(self, metric: RiskMetric) -> AlertSeverity:
        return evaluate_threshold(
            metric.current_value,
            metric.threshold_warning,
            metric.threshold_critical,
            metric.direction,
        )

    def get_risks(self) -> List[Dict[str, Any]]:
        """Every metric with its status (critical, warning, healthy)."""
        risks = []
        for metric in self._metrics.values():
            data = metric.to_dict()
            data["status"] = self.current_severity(metric).status_label
            risks.append(data)
        return risks

    def get_statistics(self) -> Dict[str, Any]:
        statuses = [self.current_severity(m).status_label for m in self._metrics.values()]
        checks = [m.last_check for m in self._metrics.values() if m.last_check is not None]
        return {
            "total_risks": len(self._metrics),
            "critical_count": statuses.count("critical"),
            "warning_count": statuses.count("warning"),
            "healthy_count": statuses.count("healthy"),
            "categories": {
                category.value: sum(1 for m in self._metrics.values() if m.category == category)
                for category in RiskCategory.all_categories()
            },
            "last_update": (max(checks) if checks else self._clock.now()).isoformat(),
        }

    async def get_history(self, risk_id: str, days: int = 30) -> List[RiskSample]:
        """Samples of one risk over the last ``days`` days, oldest first."""
        self.get_metric(risk_id)
        if self._history is None:
            return []
        since = self._clock.now() - timedelta(days=days)
        return await self._history.get_history(risk_id, since)

    async def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        category: Optional[RiskCategory] = None,
        limit: int = 50,
    ) -> List[StoredAlert]:
        return await self._dispatcher.store.list_alerts(severity, category, limit)

    # --------------------------------------------------------
    # RUNTIME OPERATIONS
    # --------------------------------------------------------

    async def resolve_alert(self, alert_id, resolved_by: str) -> StoredAlert:
        """
        Mark an alert resolved in the store.

        Raises:
            AlertNotFoundError: unknown alert id
        """
        stored = await self._dispatcher.store.resolve_alert(
            alert_id, resolved_by, self._clock.now()
        )
        logger.info(f"Alert {alert_id} resolved by {resolved_by}")
        return stored

    async def trigger_mitigation(self, risk_id: str) -> MitigationResult:
        """
        Run the automatic mitigation of a risk on demand.

        Raises:
            UnknownRiskError: unknown risk id
        """
        metric = self.get_metric(risk_id)
        resolver = self._dispatcher.resolver
        action = resolver.get_action(risk_id) if resolver is not None else None

        succeeded = False
        if action is not None:
            succeeded = await resolver.attempt_resolution(risk_id)
        else:
            logger.warning(f"Risk {risk_id} has no automatic mitigation")

        return MitigationResult(
            risk_id=risk_id,
            triggered_at=self._clock.now(),
            auto_resolvable=action is not None,
            succeeded=succeeded,
            action=action.name if action is not None else None,
            recommended_actions=tuple(metric.mitigation_actions),
        )

    def update_thresholds(
        self,
        risk_id: str,
        threshold_warning: Optional[float] = None,
        threshold_critical: Optional[float] = None,
    ) -> RiskMetric:
        """
        Replace a metric's thresholds at runtime.

        Raises:
            UnknownRiskError: unknown risk id
            RiskConfigurationError: thresholds invalid for the metric's direction
        """
        metric = self.get_metric(risk_id)
        warning = metric.threshold_warning if threshold_warning is None else float(threshold_warning)
        critical = metric.threshold_critical if threshold_critical is None else float(threshold_critical)

        if not (math.isfinite(warning) and math.isfinite(critical)):
            raise RiskConfigurationError(
                f"Risk '{risk_id}': thresholds must be finite",
                risk_id=risk_id,
            )
        metric.validate_thresholds(warning, critical)

        metric.threshold_warning = warning
        metric.threshold_critical = critical
        logger.info(f"Updated thresholds for {risk_id}: warning={warning}, critical={critical}")
        return metric
