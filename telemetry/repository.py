"""
Telemetry - Ingestion and Queries.

============================================================
PURPOSE
============================================================
Server side of the telemetry pipeline.

- classify_event: decide the EventType of a raw event
- TelemetryEventRepository: inserts and the aggregate queries
  used by the risk samplers
- MetricsIngestionService: validates a posted batch, stores
  it and reports processed / failed / total

============================================================
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, distinct, case
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.clock import ClockProtocol, SystemClock
from database.engine import transaction_scope, verify_database_connection, DatabaseError

from .models import TelemetryEventRecord
from .types import EventType, IngestionResult, InvalidBatchError


logger = logging.getLogger(__name__)


# ============================================================
# CLASSIFICATION
# ============================================================


def classify_event(event: Dict[str, Any]) -> EventType:
    """Classify a raw event by the keys it carries."""
    if event.get("type") == EventType.BUSINESS_KPI.value:
        return EventType.BUSINESS_KPI
    if "upload_start_time" in event:
        return EventType.UPLOAD
    if "endpoint" in event:
        return EventType.PERFORMANCE
    if "task_type" in event:
        return EventType.USER_EXPERIENCE
    return EventType.GENERIC


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"non-finite number {value!r}")
    return result


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _optional_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def build_record(event: Dict[str, Any], received_at: datetime) -> TelemetryEventRecord:
    """
    Build the row for one raw event.

    Raises:
        ValueError: missing/invalid timestamp or typed field
    """
    timestamp = event.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise ValueError("missing or non-numeric 'timestamp'")
    event_time = datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)

    event_type = classify_event(event)
    record = TelemetryEventRecord(
        event_type=event_type.value,
        payload=dict(event),
        event_time=event_time,
        received_at=received_at,
        session_id=event.get("session_id"),
        user_id=event.get("user_id"),
    )

    if event_type == EventType.BUSINESS_KPI:
        record.metric_name = str(event.get("metric", ""))
        record.metric_value = _optional_float(event.get("value"))
    elif event_type == EventType.UPLOAD:
        start = _optional_float(event.get("upload_start_time"))
        end = _optional_float(event.get("upload_end_time"))
        record.success = _optional_bool(event.get("success"))
        record.file_size = _optional_int(event.get("file_size"))
        record.duration_ms = end - start if start is not None and end is not None else None
    elif event_type == EventType.PERFORMANCE:
        record.duration_ms = _optional_float(event.get("response_time"))
        record.status_code = _optional_int(event.get("status_code"))
    elif event_type == EventType.USER_EXPERIENCE:
        record.success = _optional_bool(event.get("successful"))
        record.duration_ms = _optional_float(event.get("completion_time"))

    return record


# ============================================================
# REPOSITORY
# ============================================================


@dataclass(frozen=True)
class UploadStats:
    """Aggregate of upload events in a window."""

    total: int
    succeeded: int
    total_bytes: int
    average_duration_ms: Optional[float]

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


class TelemetryEventRepository:
    """
    Repository for telemetry rows.

    ============================================================
    METHODS
    ============================================================
    - save_records: insert a batch
    - upload_stats: counts, bytes and mean duration of uploads
    - api_error_rate: share of API calls answered with >= 400
    - distinct_uploaders: users with at least one upload
    - count_events: rows of a type in a window
    ============================================================
    """

    def __init__(self, session: Session):
        self._session = session

    def save_records(self, records: List[TelemetryEventRecord]) -> None:
        self._session.add_all(records)
        self._session.flush()

    def upload_stats(self, since: datetime) -> UploadStats:
        window = and_(
            TelemetryEventRecord.event_type == EventType.UPLOAD.value,
            TelemetryEventRecord.event_time >= since,
        )
        succeeded = TelemetryEventRecord.success.is_(True)
        row = self._session.execute(
            select(
                func.count(TelemetryEventRecord.id),
                func.sum(case((succeeded, 1), else_=0)),
                func.sum(case((succeeded, TelemetryEventRecord.file_size), else_=0)),
                func.avg(case((succeeded, TelemetryEventRecord.duration_ms), else_=None)),
            ).where(window)
        ).one()
        return UploadStats(
            total=int(row[0] or 0),
            succeeded=int(row[1] or 0),
            total_bytes=int(row[2] or 0),
            average_duration_ms=float(row[3]) if row[3] is not None else None,
        )

    def api_error_rate(self, since: datetime) -> Optional[float]:
        """Percent of performance events with status >= 400, None without data."""
        row = self._session.execute(
            select(
                func.count(TelemetryEventRecord.id),
                func.sum(case((TelemetryEventRecord.status_code >= 400, 1), else_=0)),
            ).where(
                and_(
                    TelemetryEventRecord.event_type == EventType.PERFORMANCE.value,
                    TelemetryEventRecord.event_time >= since,
                )
            )
        ).one()
        total = int(row[0] or 0)
        if total == 0:
            return None
        return int(row[1] or 0) / total * 100.0

    def distinct_uploaders(self, since: datetime) -> int:
        return int(
            self._session.execute(
                select(func.count(distinct(TelemetryEventRecord.user_id))).where(
                    and_(
                        TelemetryEventRecord.event_type == EventType.UPLOAD.value,
                        TelemetryEventRecord.event_time >= since,
                        TelemetryEventRecord.user_id.is_not(None),
                    )
                )
            ).scalar_one()
        )

    def count_events(self, event_type: EventType, since: Optional[datetime] = None) -> int:
        conditions = [TelemetryEventRecord.event_type == event_type.value]
        if since is not None:
            conditions.append(TelemetryEventRecord.event_time >= since)
        return int(
            self._session.execute(
                select(func.count(TelemetryEventRecord.id)).where(and_(*conditions))
            ).scalar_one()
        )


# ============================================================
# INGESTION SERVICE
# ============================================================


class MetricsIngestionService:
    """Stores posted telemetry batches."""

    def __init__(
        self,
        session_factory: sessionmaker,
        engine: Engine,
        clock: Optional[ClockProtocol] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self._clock = clock or SystemClock()

    async def ingest(self, body: Any) -> IngestionResult:
        """
        Store a ``{"metrics": [...]}`` body.

        Events that cannot be converted are counted as failed.
        If the insert transaction fails, every event of the batch
        is counted as failed.

        Raises:
            InvalidBatchError: body is not ``{"metrics": [...]}``
        """
        if not isinstance(body, dict) or not isinstance(body.get("metrics"), list):
            raise InvalidBatchError("Invalid metrics format")

        events = body["metrics"]
        received_at = self._clock.now()
        records, errors = self._build_records(events, received_at)

        if records:
            try:
                await asyncio.to_thread(self._store, records)
            except DatabaseError as e:
                logger.error(f"Failed to store {len(records)} telemetry event(s): {e}")
                errors.append(f"storage failed: {e}")
                return IngestionResult(processed=0, failed=len(events), total=len(events), errors=errors)

        failed = len(events) - len(records)
        if failed:
            logger.warning(f"Rejected {failed} of {len(events)} telemetry event(s)")
        logger.debug(f"Stored {len(records)} telemetry event(s)")
        return IngestionResult(
            processed=len(records),
            failed=failed,
            total=len(events),
            errors=errors,
        )

    def _build_records(
        self,
        events: List[Any],
        received_at: datetime,
    ) -> Tuple[List[TelemetryEventRecord], List[str]]:
        records: List[TelemetryEventRecord] = []
        errors: List[str] = []
        for index, event in enumerate(events):
            if not isinstance(event, dict):
                errors.append(f"event {index}: not an object")
                continue
            try:
                records.append(build_record(event, received_at))
            except (ValueError, TypeError, OverflowError) as e:
                errors.append(f"event {index}: {e}")
        return records, errors

    def _store(self, records: List[TelemetryEventRecord]) -> None:
        with transaction_scope(self._session_factory) as session:
            TelemetryEventRepository(session).save_records(records)

    async def health_check(self) -> Dict[str, Any]:
        """
        Verify database connectivity.

        Raises:
            DatabaseConnectionError: database unreachable
        """
        await asyncio.to_thread(verify_database_connection, self._engine)
        return {
            "status": "healthy",
            "timestamp": self._clock.now().isoformat(),
            "database": "connected",
        }
