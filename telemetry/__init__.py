"""
Telemetry Package.

============================================================
PURPOSE
============================================================
Client and server halves of the metrics pipeline:

- TelemetryCollector: batched, bounded-retry event buffer
- HttpIngestionClient: aiohttp delivery to the endpoint
- MetricsIngestionService: classification and storage of
  posted batches

============================================================
"""

from .types import (
    EventType,
    UploadErrorType,
    UploadEvent,
    PerformanceEvent,
    UserExperienceEvent,
    BusinessMetricEvent,
    IngestionResult,
    TelemetryError,
    TelemetryConfigurationError,
    IngestionError,
    InvalidBatchError,
)
from .config import TelemetryConfig, DEFAULT_ENDPOINT
from .client import IngestionClient, HttpIngestionClient
from .collector import (
    TelemetryCollector,
    UploadTracker,
    ApiCallTracker,
    UserTaskTracker,
    generate_session_id,
)


__all__ = [
    # Types
    "EventType",
    "UploadErrorType",
    "UploadEvent",
    "PerformanceEvent",
    "UserExperienceEvent",
    "BusinessMetricEvent",
    "IngestionResult",
    # Errors
    "TelemetryError",
    "TelemetryConfigurationError",
    "IngestionError",
    "InvalidBatchError",
    # Config
    "TelemetryConfig",
    "DEFAULT_ENDPOINT",
    # Delivery
    "IngestionClient",
    "HttpIngestionClient",
    "TelemetryCollector",
    "UploadTracker",
    "ApiCallTracker",
    "UserTaskTracker",
    "generate_session_id",
]
