"""
Tests for alert dispatching and alert stores.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- Observers run in registration order
- A failing or slow observer never blocks the others
- Persistence happens even when observers fail
- Auto-resolution runs only for allow-listed risks

============================================================
"""

import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from core.clock import MockClock
from risk_monitor.alerting import (
    AlertDispatcher,
    AlertStore,
    InMemoryAlertStore,
    build_alert_message,
)
from risk_monitor.resolver import AutoResolver, MitigationAction
from risk_monitor.types import (
    AlertNotFoundError,
    AlertPersistenceError,
    AlertSeverity,
    RiskAlert,
    RiskCategory,
    RiskMetric,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def metric():
    return RiskMetric(
        id="storage_quota_usage",
        category=RiskCategory.STORAGE,
        name="Storage Quota Usage",
        current_value=75.0,
        threshold_warning=70.0,
        threshold_critical=80.0,
        unit="%",
        mitigation_actions=["Schedule cleanup of temporary files", "Upgrade plan"],
    )


class FailingStore(AlertStore):
    """Store whose writes always fail."""

    async def append(self, alert):
        raise AlertPersistenceError("disk full")

    async def list_alerts(self, severity=None, category=None, limit=50):
        return []

    async def resolve_alert(self, alert_id, resolved_by, resolved_at):
        raise AlertNotFoundError("nope")


def resolver_with(result):
    async def handler():
        if isinstance(result, Exception):
            raise result
        return result

    return AutoResolver({
        "storage_quota_usage": MitigationAction("cleanup", "Cleanup temp files", handler),
    })


def make_alert(severity, category, minutes, clock):
    return RiskAlert(
        risk_id=f"risk_{minutes}",
        severity=severity,
        message="m",
        category=category,
        triggered_at=clock.now() + timedelta(minutes=minutes),
    )


# ============================================================
# MESSAGE TESTS
# ============================================================

class TestBuildAlertMessage:
    """Tests for alert message formatting."""

    def test_warning_message(self, metric):
        message = build_alert_message(metric, AlertSeverity.WARNING)
        assert message == "Storage Quota Usage: 75% (warning threshold: 70%)"

    def test_critical_message_uses_critical_threshold(self, metric):
        metric.current_value = 82.5
        message = build_alert_message(metric, AlertSeverity.CRITICAL)
        assert message == "Storage Quota Usage: 82.5% (critical threshold: 80%)"


# ============================================================
# DISPATCHER TESTS
# ============================================================

class TestAlertDispatcher:
    """Tests for AlertDispatcher."""

    @pytest.mark.asyncio
    async def test_dispatch_builds_and_stores_alert(self, metric, clock):
        store = InMemoryAlertStore()
        dispatcher = AlertDispatcher(store, clock=clock)

        alert = await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert alert.risk_id == "storage_quota_usage"
        assert alert.current_value == 75.0
        assert alert.threshold == 70.0
        assert alert.recommended_actions == tuple(metric.mitigation_actions)
        assert alert.triggered_at == clock.now()
        assert not alert.auto_resolution_attempted
        assert alert.auto_resolution_succeeded is None
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_dispatch_none_rejected(self, metric, clock):
        dispatcher = AlertDispatcher(InMemoryAlertStore(), clock=clock)

        with pytest.raises(ValueError):
            await dispatcher.dispatch(metric, AlertSeverity.NONE)

    @pytest.mark.asyncio
    async def test_observers_run_in_registration_order(self, metric, clock):
        dispatcher = AlertDispatcher(InMemoryAlertStore(), clock=clock)
        seen = []

        async def first(alert):
            seen.append("first")

        def second(alert):
            seen.append("second")

        async def third(alert):
            seen.append("third")

        dispatcher.on_alert(first)
        dispatcher.on_alert(second)
        dispatcher.on_alert(third)

        await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert seen == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_failing_observer_isolated(self, metric, clock):
        store = InMemoryAlertStore()
        dispatcher = AlertDispatcher(store, clock=clock)
        seen = []

        def broken(alert):
            raise RuntimeError("boom")

        async def healthy(alert):
            seen.append(alert.risk_id)

        dispatcher.on_alert(broken)
        dispatcher.on_alert(healthy)

        await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert seen == ["storage_quota_usage"]
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_slow_observer_times_out(self, metric, clock):
        store = InMemoryAlertStore()
        dispatcher = AlertDispatcher(store, callback_timeout_seconds=0.05, clock=clock)
        seen = []

        async def slow(alert):
            await asyncio.sleep(10)

        async def fast(alert):
            seen.append("fast")

        dispatcher.on_alert(slow)
        dispatcher.on_alert(fast)

        started = time.monotonic()
        await dispatcher.dispatch(metric, AlertSeverity.CRITICAL)

        assert time.monotonic() - started < 5
        assert seen == ["fast"]
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_saturated_observer_threads_skip_sync_observers(self, metric, clock):
        """A blocked sync observer holds its thread; later sync observers are skipped, not queued."""
        store = InMemoryAlertStore()
        dispatcher = AlertDispatcher(
            store, callback_timeout_seconds=0.05, clock=clock, max_observer_threads=1
        )
        release = threading.Event()
        seen = []

        async def async_observer(alert):
            seen.append("async")

        dispatcher.on_alert(lambda alert: release.wait())
        dispatcher.on_alert(lambda alert: seen.append("sync"))
        dispatcher.on_alert(async_observer)

        try:
            await dispatcher.dispatch(metric, AlertSeverity.WARNING)

            assert seen == ["async"]
            assert dispatcher.skipped_observers == 1
            assert dispatcher.busy_observer_threads == 1
            assert len(store) == 1

            release.set()
            for _ in range(200):
                if not dispatcher.busy_observer_threads:
                    break
                await asyncio.sleep(0.01)
            await dispatcher.dispatch(metric, AlertSeverity.WARNING)

            assert seen == ["async", "sync", "async"]
            assert dispatcher.skipped_observers == 1
        finally:
            release.set()
            dispatcher.close()

    def test_observer_thread_count_validated(self, clock):
        with pytest.raises(ValueError):
            AlertDispatcher(InMemoryAlertStore(), clock=clock, max_observer_threads=0)

    @pytest.mark.asyncio
    async def test_store_failure_is_not_raised(self, metric, clock):
        dispatcher = AlertDispatcher(FailingStore(), clock=clock)

        alert = await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert alert.severity == AlertSeverity.WARNING

    def test_non_callable_observer_rejected(self, clock):
        dispatcher = AlertDispatcher(InMemoryAlertStore(), clock=clock)

        with pytest.raises(TypeError):
            dispatcher.on_alert("not callable")

    def test_remove_observer(self, clock):
        dispatcher = AlertDispatcher(InMemoryAlertStore(), clock=clock)

        def observer(alert):
            pass

        dispatcher.on_alert(observer)

        assert dispatcher.remove_observer(observer) is True
        assert dispatcher.remove_observer(observer) is False
        assert dispatcher.observers == []

    @pytest.mark.asyncio
    async def test_auto_resolution_success_recorded(self, metric, clock):
        dispatcher = AlertDispatcher(
            InMemoryAlertStore(), resolver=resolver_with(True), clock=clock
        )

        alert = await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert alert.auto_resolution_attempted
        assert alert.auto_resolution_succeeded is True

    @pytest.mark.asyncio
    async def test_auto_resolution_failure_does_not_block_persistence(self, metric, clock):
        store = InMemoryAlertStore()
        dispatcher = AlertDispatcher(
            store, resolver=resolver_with(RuntimeError("denied")), clock=clock
        )

        alert = await dispatcher.dispatch(metric, AlertSeverity.CRITICAL)

        assert alert.auto_resolution_attempted
        assert alert.auto_resolution_succeeded is False
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_auto_resolution_skipped_for_other_risks(self, metric, clock):
        metric.id = "storage_growth_rate"
        dispatcher = AlertDispatcher(
            InMemoryAlertStore(), resolver=resolver_with(True), clock=clock
        )

        alert = await dispatcher.dispatch(metric, AlertSeverity.WARNING)

        assert not alert.auto_resolution_attempted
        assert alert.auto_resolution_succeeded is None


# ============================================================
# IN-MEMORY STORE TESTS
# ============================================================

class TestInMemoryAlertStore:
    """Tests for InMemoryAlertStore."""

    @pytest.mark.asyncio
    async def test_list_newest_first_with_filters(self, clock):
        store = InMemoryAlertStore()
        await store.append(make_alert(AlertSeverity.WARNING, RiskCategory.STORAGE, 0, clock))
        await store.append(make_alert(AlertSeverity.CRITICAL, RiskCategory.COST, 1, clock))
        await store.append(make_alert(AlertSeverity.WARNING, RiskCategory.COST, 2, clock))

        everything = await store.list_alerts()
        warnings = await store.list_alerts(severity=AlertSeverity.WARNING)
        cost = await store.list_alerts(category=RiskCategory.COST, limit=1)

        assert [s.alert.risk_id for s in everything] == ["risk_2", "risk_1", "risk_0"]
        assert [s.alert.risk_id for s in warnings] == ["risk_2", "risk_0"]
        assert [s.alert.risk_id for s in cost] == ["risk_2"]

    @pytest.mark.asyncio
    async def test_bounded_history(self, clock):
        store = InMemoryAlertStore(max_history=2)
        first = make_alert(AlertSeverity.WARNING, RiskCategory.STORAGE, 0, clock)
        await store.append(first)
        await store.append(make_alert(AlertSeverity.WARNING, RiskCategory.STORAGE, 1, clock))
        await store.append(make_alert(AlertSeverity.WARNING, RiskCategory.STORAGE, 2, clock))

        assert len(store) == 2
        with pytest.raises(AlertNotFoundError):
            await store.resolve_alert(first.alert_id, "ops", clock.now())

    @pytest.mark.asyncio
    async def test_resolve_alert(self, clock):
        store = InMemoryAlertStore()
        alert = make_alert(AlertSeverity.WARNING, RiskCategory.STORAGE, 0, clock)
        await store.append(alert)

        stored = await store.resolve_alert(alert.alert_id, "ops", clock.now())

        assert stored.is_resolved
        assert stored.to_dict()["resolved_by"] == "ops"

    @pytest.mark.asyncio
    async def test_resolve_unknown(self, clock):
        with pytest.raises(AlertNotFoundError):
            await InMemoryAlertStore().resolve_alert(uuid4(), "ops", clock.now())
