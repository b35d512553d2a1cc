"""
Risk Monitor - Alert Dispatching.

============================================================
PURPOSE
============================================================
Turns a threshold crossing into a RiskAlert and fans it out.

Dispatch order for one crossing:
1. AutoResolver (only for allow-listed risks)
2. Observers, in registration order
3. Alert store

============================================================
ISOLATION
============================================================
- Each observer runs under its own timeout; sync observers
  run on a small executor owned by the dispatcher, separate
  from the default executor the samplers and stores use
- When every observer thread is busy, further sync observers
  are skipped and logged rather than queued
- A failing or slow observer never prevents later observers
  or persistence
- Store failures are logged, never raised to the monitor

============================================================
"""

import asyncio
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from core.clock import ClockProtocol, SystemClock
from core.formatting import format_number

from .resolver import AutoResolver
from .types import (
    AlertSeverity,
    RiskAlert,
    RiskCategory,
    RiskMetric,
    AlertNotFoundError,
)


logger = logging.getLogger(__name__)


# Observers receive the alert; any return value is ignored
AlertObserver = Callable[[RiskAlert], Any]

DEFAULT_CALLBACK_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_OBSERVER_THREADS = 4


def build_alert_message(metric: RiskMetric, severity: AlertSeverity) -> str:
    """e.g. "Storage Quota Usage: 75% (warning threshold: 70%)"."""
    threshold = metric.threshold_for(severity)
    return (
        f"{metric.name}: {format_number(metric.current_value)}{metric.unit} "
        f"({severity.value} threshold: {format_number(threshold)}{metric.unit})"
    )


# ============================================================
# ALERT STORES
# ============================================================


@dataclass
class StoredAlert:
    """An alert plus the resolution state tracked by the store."""

    alert: RiskAlert
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def to_dict(self) -> Dict[str, Any]:
        data = self.alert.to_dict()
        data["resolved_at"] = self.resolved_at.isoformat() if self.resolved_at else None
        data["resolved_by"] = self.resolved_by
        return data


class AlertStore(ABC):
    """Persistence collaborator for alerts."""

    @abstractmethod
    async def append(self, alert: RiskAlert) -> None:
        """
        Persist one alert.

        Raises:
            AlertPersistenceError: when the write fails
        """
        pass

    @abstractmethod
    async def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        category: Optional[RiskCategory] = None,
        limit: int = 50,
    ) -> List[StoredAlert]:
        """Newest first, filtered by severity and category."""
        pass

    @abstractmethod
    async def resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: str,
        resolved_at: datetime,
    ) -> StoredAlert:
        """
        Mark an alert resolved.

        Raises:
            AlertNotFoundError: if the id is unknown
        """
        pass


class InMemoryAlertStore(AlertStore):
    """
    Bounded in-process alert store.

    Oldest alerts are dropped beyond ``max_history``.
    """

    def __init__(self, max_history: int = 10000) -> None:
        self._alerts: List[StoredAlert] = []
        self._by_id: Dict[UUID, StoredAlert] = {}
        self._max_history = max_history

    def __len__(self) -> int:
        return len(self._alerts)

    async def append(self, alert: RiskAlert) -> None:
        stored = StoredAlert(alert=alert)
        self._alerts.append(stored)
        self._by_id[alert.alert_id] = stored

        if len(self._alerts) > self._max_history:
            removed = self._alerts[:-self._max_history]
            self._alerts = self._alerts[-self._max_history:]
            for old in removed:
                self._by_id.pop(old.alert.alert_id, None)

    async def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        category: Optional[RiskCategory] = None,
        limit: int = 50,
    ) -> List[StoredAlert]:
        matches = [
            s for s in reversed(self._alerts)
            if (severity is None or s.alert.severity == severity)
            and (category is None or s.alert.category == category)
        ]
        return matches[:limit]

    async def resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: str,
        resolved_at: datetime,
    ) -> StoredAlert:
        stored = self._by_id.get(alert_id)
        if stored is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found")
        stored.resolved_at = resolved_at
        stored.resolved_by = resolved_by
        return stored


# ============================================================
# ALERT DISPATCHER
# ============================================================


class AlertDispatcher:
    """
    Builds alerts and fans them out to observers and the store.

    Owns an explicit ordered observer registry.
    """

    def __init__(
        self,
        store: AlertStore,
        resolver: Optional[AutoResolver] = None,
        callback_timeout_seconds: float = DEFAULT_CALLBACK_TIMEOUT_SECONDS,
        clock: Optional[ClockProtocol] = None,
        max_observer_threads: int = DEFAULT_MAX_OBSERVER_THREADS,
    ) -> None:
        if max_observer_threads < 1:
            raise ValueError("max_observer_threads must be at least 1")
        self._store = store
        self._resolver = resolver
        self._callback_timeout = callback_timeout_seconds
        self._clock = clock or SystemClock()
        self._observers: List[AlertObserver] = []

        # Sync observers; a timed out call keeps its thread until it returns
        self._max_observer_threads = max_observer_threads
        self._executor = ThreadPoolExecutor(
            max_workers=max_observer_threads,
            thread_name_prefix="alert-observer",
        )
        self._busy_lock = threading.Lock()
        self._busy_threads = 0
        self._skipped_observers = 0

    @property
    def store(self) -> AlertStore:
        return self._store

    @property
    def resolver(self) -> Optional[AutoResolver]:
        return self._resolver

    @property
    def observers(self) -> List[AlertObserver]:
        return list(self._observers)

    @property
    def busy_observer_threads(self) -> int:
        with self._busy_lock:
            return self._busy_threads

    @property
    def skipped_observers(self) -> int:
        return self._skipped_observers

    def close(self) -> None:
        """Stop the observer executor without waiting for running observers."""
        self._executor.shutdown(wait=False)

    def on_alert(self, callback: AlertObserver) -> None:
        """Register an observer. Observers run in registration order."""
        if not callable(callback):
            raise TypeError("Alert observer must be callable")
        self._observers.append(callback)

    def remove_observer(self, callback: AlertObserver) -> bool:
        """Unregister an observer. Returns False if it was not registered."""
        try:
            self._observers.remove(callback)
            return True
        except ValueError:
            return False

    async def dispatch(self, metric: RiskMetric, severity: AlertSeverity) -> RiskAlert:
        """
        Build, notify and persist the alert for one crossing.

        Never raises for observer, resolver or store failures.
        """
        if not severity.is_alerting:
            raise ValueError("Cannot dispatch an alert for severity 'none'")

        attempted = False
        succeeded: Optional[bool] = None
        if self._resolver is not None and self._resolver.can_auto_resolve(metric.id):
            attempted = True
            succeeded = await self._resolver.attempt_resolution(metric.id)

        alert = RiskAlert(
            risk_id=metric.id,
            severity=severity,
            message=build_alert_message(metric, severity),
            recommended_actions=tuple(metric.mitigation_actions),
            auto_resolution_attempted=attempted,
            auto_resolution_succeeded=succeeded,
            current_value=metric.current_value,
            threshold=metric.threshold_for(severity),
            unit=metric.unit,
            category=metric.category,
            triggered_at=self._clock.now(),
        )

        await self._notify_observers(alert)
        await self._persist(alert)
        return alert

    async def _notify_observers(self, alert: RiskAlert) -> None:
        for callback in list(self._observers):
            try:
                await asyncio.wait_for(
                    self._invoke(callback, alert),
                    timeout=self._callback_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"Alert observer {_callback_name(callback)} timed out after "
                    f"{self._callback_timeout}s for risk {alert.risk_id}"
                )
            except Exception as e:
                logger.error(
                    f"Alert observer {_callback_name(callback)} failed for risk "
                    f"{alert.risk_id}: {e}"
                )

    async def _invoke(self, callback: AlertObserver, alert: RiskAlert) -> None:
        if inspect.iscoroutinefunction(callback):
            await callback(alert)
            return

        future = self._submit(callback, alert)
        if future is None:
            self._skipped_observers += 1
            logger.warning(
                f"Alert observer {_callback_name(callback)} skipped for risk "
                f"{alert.risk_id}: all {self._max_observer_threads} observer threads busy"
            )
            return

        result = await asyncio.wrap_future(future)
        if inspect.isawaitable(result):
            await result

    def _submit(self, callback: AlertObserver, alert: RiskAlert) -> Optional[Future]:
        """Run a sync observer on the observer executor, or None when saturated."""
        with self._busy_lock:
            if self._busy_threads >= self._max_observer_threads:
                return None
            self._busy_threads += 1
        try:
            future = self._executor.submit(callback, alert)
        except RuntimeError:
            self._observer_finished(None)
            raise
        future.add_done_callback(self._observer_finished)
        return future

    def _observer_finished(self, _future: Optional[Future]) -> None:
        with self._busy_lock:
            self._busy_threads -= 1

    async def _persist(self, alert: RiskAlert) -> None:
        try:
            await self._store.append(alert)
        except Exception as e:
            logger.error(f"Failed to store alert {alert.alert_id} for risk {alert.risk_id}: {e}")


def _callback_name(callback: AlertObserver) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)
