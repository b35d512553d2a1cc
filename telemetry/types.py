"""
Telemetry - Event Types.

============================================================
PURPOSE
============================================================
Typed telemetry events produced by the upload feature and
the monitoring engine itself.

Every event serializes to a flat JSON object carrying a
millisecond ``timestamp``. The collector is transparent to
event shape; the ingestion endpoint classifies events by the
keys they carry:

- "type" == "business_kpi"  -> business_kpi
- "upload_start_time"       -> upload
- "endpoint"                -> performance
- "task_type"               -> user_experience
- anything else             -> generic

============================================================
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# ENUMS
# ============================================================


class EventType(str, Enum):
    """Classification assigned to an ingested event."""

    BUSINESS_KPI = "business_kpi"
    UPLOAD = "upload"
    PERFORMANCE = "performance"
    USER_EXPERIENCE = "user_experience"
    GENERIC = "generic"


class UploadErrorType(str, Enum):
    NETWORK = "network"
    SERVER = "server"
    CLIENT = "client"
    VALIDATION = "validation"


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ============================================================
# EVENTS
# ============================================================


@dataclass
class UploadEvent:
    """One finished (successful or failed) upload."""

    upload_start_time: int
    upload_end_time: int
    file_size: int
    success: bool
    video_format: str
    upload_speed: float = 0.0
    resume_count: int = 0
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    user_role: Optional[str] = None
    device_type: Optional[str] = None
    browser_type: Optional[str] = None
    video_duration: Optional[float] = None
    compression_ratio: Optional[float] = None
    category: str = "direct_upload"
    session_id: Optional[str] = None
    timestamp: Optional[int] = None

    @property
    def upload_duration(self) -> int:
        """Duration in milliseconds."""
        return self.upload_end_time - self.upload_start_time

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none(asdict(self))
        if isinstance(self.error_type, UploadErrorType):
            data["error_type"] = self.error_type.value
        return data


@dataclass
class PerformanceEvent:
    """Timing of one API call."""

    endpoint: str
    response_time: float
    status_code: int
    storage_used: float = 0.0
    bandwidth_used: float = 0.0
    active_uploads: int = 0
    queue_length: int = 0
    feature: str = "video_management"
    operation: str = "unknown"
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class UserExperienceEvent:
    """Completion of one user task."""

    task_type: str
    completion_time: float
    successful: bool
    error_count: int = 0
    help_accessed: bool = False
    satisfaction_score: Optional[float] = None
    recommendation_score: Optional[float] = None
    feedback: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class BusinessMetricEvent:
    """A named business KPI value."""

    metric: str
    value: float
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none(asdict(self))
        data["type"] = EventType.BUSINESS_KPI.value
        return data


# ============================================================
# INGESTION RESULT
# ============================================================


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of storing one batch of events."""

    processed: int
    failed: int
    total: int
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "processed": self.processed,
            "failed": self.failed,
            "total": self.total,
            "errors": list(self.errors),
        }


# ============================================================
# ERROR TYPES
# ============================================================


class TelemetryError(Exception):
    """Base exception for telemetry errors."""
    pass


class TelemetryConfigurationError(TelemetryError):
    """Invalid telemetry configuration."""
    pass


class IngestionError(TelemetryError):
    """
    Raised when a batch could not be delivered.

    Covers transport failures and non-2xx responses.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class InvalidBatchError(TelemetryError):
    """Raised when an ingested body is not ``{"metrics": [...]}``."""
    pass
