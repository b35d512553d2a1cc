"""
Tests for the SQLAlchemy alert store and risk history.

Runs against a temporary SQLite database file.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from database import create_all_tables, create_database_engine, create_session_factory
from risk_monitor.repository import SqlAlchemyAlertStore, SqlAlchemyRiskHistory
from risk_monitor.types import (
    AlertNotFoundError,
    AlertSeverity,
    RiskAlert,
    RiskCategory,
    RiskSample,
    Trend,
)


# ============================================================
# FIXTURES
# ============================================================

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_database_engine(f"sqlite:///{tmp_path / 'monitor.db'}")
    create_all_tables(engine)
    yield create_session_factory(engine)
    engine.dispose()


def make_alert(risk_id, severity, category, minutes=0):
    return RiskAlert(
        risk_id=risk_id,
        severity=severity,
        message=f"{risk_id} crossed",
        recommended_actions=("Act",),
        auto_resolution_attempted=True,
        auto_resolution_succeeded=False,
        current_value=75.0,
        threshold=70.0,
        unit="%",
        category=category,
        triggered_at=T0 + timedelta(minutes=minutes),
    )


# ============================================================
# ALERT STORE TESTS
# ============================================================

class TestSqlAlchemyAlertStore:
    """Tests for SqlAlchemyAlertStore."""

    @pytest.mark.asyncio
    async def test_round_trip_preserves_fields(self, session_factory):
        store = SqlAlchemyAlertStore(session_factory)
        alert = make_alert("storage_quota_usage", AlertSeverity.WARNING, RiskCategory.STORAGE)

        await store.append(alert)
        [stored] = await store.list_alerts()

        assert stored.alert == alert
        assert not stored.is_resolved

    @pytest.mark.asyncio
    async def test_list_filters_and_orders(self, session_factory):
        store = SqlAlchemyAlertStore(session_factory)
        await store.append(make_alert("a", AlertSeverity.WARNING, RiskCategory.STORAGE, 0))
        await store.append(make_alert("b", AlertSeverity.CRITICAL, RiskCategory.COST, 1))
        await store.append(make_alert("c", AlertSeverity.WARNING, RiskCategory.COST, 2))

        everything = await store.list_alerts()
        critical = await store.list_alerts(severity=AlertSeverity.CRITICAL)
        cost = await store.list_alerts(category=RiskCategory.COST, limit=1)

        assert [s.alert.risk_id for s in everything] == ["c", "b", "a"]
        assert [s.alert.risk_id for s in critical] == ["b"]
        assert [s.alert.risk_id for s in cost] == ["c"]

    @pytest.mark.asyncio
    async def test_resolve_alert(self, session_factory):
        store = SqlAlchemyAlertStore(session_factory)
        alert = make_alert("a", AlertSeverity.WARNING, RiskCategory.STORAGE)
        await store.append(alert)

        resolved_at = T0 + timedelta(hours=1)
        stored = await store.resolve_alert(alert.alert_id, "ops", resolved_at)
        [listed] = await store.list_alerts()

        assert stored.resolved_by == "ops"
        assert listed.resolved_at == resolved_at
        assert listed.alert.message == alert.message

    @pytest.mark.asyncio
    async def test_resolve_unknown_alert(self, session_factory):
        store = SqlAlchemyAlertStore(session_factory)

        with pytest.raises(AlertNotFoundError):
            await store.resolve_alert(uuid4(), "ops", T0)


# ============================================================
# RISK HISTORY TESTS
# ============================================================

class TestSqlAlchemyRiskHistory:
    """Tests for SqlAlchemyRiskHistory."""

    @pytest.mark.asyncio
    async def test_history_window_and_order(self, session_factory):
        history = SqlAlchemyRiskHistory(session_factory)
        for days_ago, value in ((40, 50.0), (10, 60.0), (1, 75.0)):
            await history.record(RiskSample(
                risk_id="storage_quota_usage",
                value=value,
                trend=Trend.STABLE,
                severity=AlertSeverity.NONE,
                sampled_at=T0 - timedelta(days=days_ago),
            ))
        await history.record(RiskSample(
            risk_id="other",
            value=1.0,
            trend=Trend.STABLE,
            severity=AlertSeverity.NONE,
            sampled_at=T0,
        ))

        samples = await history.get_history("storage_quota_usage", T0 - timedelta(days=30))

        assert [s.value for s in samples] == [60.0, 75.0]
        assert samples[-1].sampled_at == T0 - timedelta(days=1)
        assert samples[-1].to_dict()["date"] == "2024-01-14"
