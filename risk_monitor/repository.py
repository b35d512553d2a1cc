"""
Risk Monitor - Repository.

============================================================
PURPOSE
============================================================
SQLAlchemy persistence for alerts and risk samples.

- RiskAlertRepository / RiskHistoryRepository: synchronous
  repositories over one Session
- SqlAlchemyAlertStore / SqlAlchemyRiskHistory: async
  collaborators used by the monitor; every call opens its own
  transaction_scope in a worker thread

============================================================
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, desc, and_
from sqlalchemy.orm import Session, sessionmaker

from database.engine import transaction_scope, DatabaseError

from .alerting import AlertStore, StoredAlert
from .history import RiskHistoryStore
from .models import RiskAlertRecord, RiskSampleRecord
from .types import (
    AlertSeverity,
    RiskAlert,
    RiskCategory,
    RiskSample,
    Trend,
    AlertNotFoundError,
    AlertPersistenceError,
)


logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================
# SYNCHRONOUS REPOSITORIES
# ============================================================


class RiskAlertRepository:
    """
    Repository for alert rows.

    ============================================================
    METHODS
    ============================================================
    - save_alert: insert one alert
    - list_alerts: newest first, filtered
    - resolve_alert: write resolution columns
    ============================================================
    """

    def __init__(self, session: Session):
        self._session = session

    def save_alert(self, alert: RiskAlert) -> RiskAlertRecord:
        record = RiskAlertRecord(
            id=alert.alert_id,
            risk_id=alert.risk_id,
            category=alert.category.value if alert.category else None,
            severity=alert.severity.value,
            message=alert.message,
            recommended_actions=list(alert.recommended_actions),
            auto_resolution_attempted=alert.auto_resolution_attempted,
            auto_resolution_succeeded=alert.auto_resolution_succeeded,
            current_value=alert.current_value,
            threshold=alert.threshold,
            unit=alert.unit,
            triggered_at=alert.triggered_at,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        category: Optional[RiskCategory] = None,
        limit: int = 50,
    ) -> List[RiskAlertRecord]:
        conditions = []
        if severity is not None:
            conditions.append(RiskAlertRecord.severity == severity.value)
        if category is not None:
            conditions.append(RiskAlertRecord.category == category.value)

        stmt = select(RiskAlertRecord)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(desc(RiskAlertRecord.triggered_at)).limit(limit)
        return list(self._session.execute(stmt).scalars().all())

    def get_alert(self, alert_id: UUID) -> Optional[RiskAlertRecord]:
        return self._session.get(RiskAlertRecord, alert_id)

    def resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: str,
        resolved_at: datetime,
    ) -> RiskAlertRecord:
        record = self.get_alert(alert_id)
        if record is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found")
        record.resolved_at = resolved_at
        record.resolved_by = resolved_by
        self._session.flush()
        return record


class RiskHistoryRepository:
    """Repository for risk sample rows."""

    def __init__(self, session: Session):
        self._session = session

    def save_sample(self, sample: RiskSample) -> RiskSampleRecord:
        record = RiskSampleRecord(
            risk_id=sample.risk_id,
            value=sample.value,
            trend=sample.trend.value,
            severity=sample.severity.value,
            sampled_at=sample.sampled_at,
        )
        self._session.add(record)
        return record

    def get_samples_since(self, risk_id: str, since: datetime) -> List[RiskSampleRecord]:
        stmt = (
            select(RiskSampleRecord)
            .where(
                and_(
                    RiskSampleRecord.risk_id == risk_id,
                    RiskSampleRecord.sampled_at >= since,
                )
            )
            .order_by(RiskSampleRecord.sampled_at)
        )
        return list(self._session.execute(stmt).scalars().all())


# ============================================================
# RECORD CONVERSION
# ============================================================


def record_to_stored_alert(record: RiskAlertRecord) -> StoredAlert:
    alert = RiskAlert(
        alert_id=record.id,
        risk_id=record.risk_id,
        severity=AlertSeverity(record.severity),
        message=record.message,
        recommended_actions=tuple(record.recommended_actions or ()),
        auto_resolution_attempted=record.auto_resolution_attempted,
        auto_resolution_succeeded=record.auto_resolution_succeeded,
        current_value=record.current_value,
        threshold=record.threshold,
        unit=record.unit,
        category=RiskCategory(record.category) if record.category else None,
        triggered_at=_as_utc(record.triggered_at),
    )
    return StoredAlert(
        alert=alert,
        resolved_at=_as_utc(record.resolved_at),
        resolved_by=record.resolved_by,
    )


def record_to_sample(record: RiskSampleRecord) -> RiskSample:
    return RiskSample(
        risk_id=record.risk_id,
        value=record.value,
        trend=Trend(record.trend),
        severity=AlertSeverity(record.severity),
        sampled_at=_as_utc(record.sampled_at),
    )


# ============================================================
# ASYNC COLLABORATORS
# ============================================================


class SqlAlchemyAlertStore(AlertStore):
    """Alert store backed by the ``risk_alerts`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def append(self, alert: RiskAlert) -> None:
        await asyncio.to_thread(self._append, alert)

    def _append(self, alert: RiskAlert) -> None:
        try:
            with transaction_scope(self._session_factory) as session:
                RiskAlertRepository(session).save_alert(alert)
        except DatabaseError as e:
            raise AlertPersistenceError(
                f"Could not persist alert {alert.alert_id}: {e}",
                risk_id=alert.risk_id,
            ) from e
        logger.debug(f"Stored alert {alert.alert_id} for risk {alert.risk_id}")

    async def list_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        category: Optional[RiskCategory] = None,
        limit: int = 50,
    ) -> List[StoredAlert]:
        return await asyncio.to_thread(self._list_alerts, severity, category, limit)

    def _list_alerts(
        self,
        severity: Optional[AlertSeverity],
        category: Optional[RiskCategory],
        limit: int,
    ) -> List[StoredAlert]:
        with transaction_scope(self._session_factory) as session:
            records = RiskAlertRepository(session).list_alerts(severity, category, limit)
            return [record_to_stored_alert(r) for r in records]

    async def resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: str,
        resolved_at: datetime,
    ) -> StoredAlert:
        return await asyncio.to_thread(self._resolve_alert, alert_id, resolved_by, resolved_at)

    def _resolve_alert(
        self,
        alert_id: UUID,
        resolved_by: str,
        resolved_at: datetime,
    ) -> StoredAlert:
        with transaction_scope(self._session_factory) as session:
            record = RiskAlertRepository(session).resolve_alert(alert_id, resolved_by, resolved_at)
            return record_to_stored_alert(record)


class SqlAlchemyRiskHistory(RiskHistoryStore):
    """Risk history backed by the ``risk_samples`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def record(self, sample: RiskSample) -> None:
        await asyncio.to_thread(self._record, sample)

    def _record(self, sample: RiskSample) -> None:
        with transaction_scope(self._session_factory) as session:
            RiskHistoryRepository(session).save_sample(sample)

    async def get_history(self, risk_id: str, since: datetime) -> List[RiskSample]:
        return await asyncio.to_thread(self._get_history, risk_id, since)

    def _get_history(self, risk_id: str, since: datetime) -> List[RiskSample]:
        with transaction_scope(self._session_factory) as session:
            records = RiskHistoryRepository(session).get_samples_since(risk_id, since)
            return [record_to_sample(r) for r in records]
