"""
Risk Monitor - ORM Models.

============================================================
MODELS
============================================================
1. RiskAlertRecord: one row per dispatched alert, plus the
   resolution columns written when an operator resolves it
2. RiskSampleRecord: one row per successful metric sample

============================================================
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


# ============================================================
# RISK ALERT MODEL
# ============================================================


class RiskAlertRecord(Base):
    """
    Persisted risk alert.

    The alert columns are written once. Only resolved_at and
    resolved_by are ever updated.
    """

    __tablename__ = "risk_alerts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    risk_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Risk metric identifier",
    )

    category: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        comment="storage, performance, adoption, cost, technical_debt",
    )

    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="warning or critical",
    )

    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    recommended_actions: Mapped[List[Any]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    auto_resolution_attempted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    auto_resolution_succeeded: Mapped[Optional[bool]] = mapped_column(
        Boolean,
        nullable=True,
        comment="NULL when no resolution was attempted",
    )

    current_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    threshold: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Threshold crossed for this severity",
    )

    unit: Mapped[str] = mapped_column(String(30), nullable=False, default="")

    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_risk_alerts_triggered_at", "triggered_at"),
        Index("ix_risk_alerts_risk_id", "risk_id"),
        Index("ix_risk_alerts_severity_category", "severity", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<RiskAlertRecord(id={self.id}, risk_id={self.risk_id}, "
            f"severity={self.severity}, triggered_at={self.triggered_at})>"
        )


# ============================================================
# RISK SAMPLE MODEL
# ============================================================


class RiskSampleRecord(Base):
    """One successful sample of a risk metric."""

    __tablename__ = "risk_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    risk_id: Mapped[str] = mapped_column(String(100), nullable=False)

    value: Mapped[float] = mapped_column(Float, nullable=False)

    trend: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="improving, stable, declining",
    )

    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="none, warning, critical",
    )

    sampled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_risk_samples_risk_id_sampled_at", "risk_id", "sampled_at"),
    )

    def __repr__(self) -> str:
        return f"<RiskSampleRecord(risk_id={self.risk_id}, value={self.value}, sampled_at={self.sampled_at})>"
