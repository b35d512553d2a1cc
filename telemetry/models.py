"""
Telemetry - ORM Models.

All ingested events share one table. The columns the risk
samplers query (success, file size, duration, status code,
user) are extracted at ingestion time; the full event is kept
in ``payload``.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    BigInteger,
    JSON,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class TelemetryEventRecord(Base):
    """One ingested telemetry event."""

    __tablename__ = "telemetry_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    event_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="business_kpi, upload, performance, user_experience, generic",
    )

    metric_name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Business KPI name",
    )

    metric_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    success: Mapped[Optional[bool]] = mapped_column(
        Boolean,
        nullable=True,
        comment="Upload success or user task success",
    )

    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    duration_ms: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Upload duration, response time or task completion time",
    )

    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    event_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="From the event's millisecond timestamp",
    )

    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_telemetry_events_type_time", "event_type", "event_time"),
        Index("ix_telemetry_events_metric_name", "metric_name"),
    )

    def __repr__(self) -> str:
        return f"<TelemetryEventRecord(id={self.id}, type={self.event_type}, event_time={self.event_time})>"
