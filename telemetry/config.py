"""
Telemetry - Configuration.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict

from .types import TelemetryConfigurationError


DEFAULT_ENDPOINT = "http://localhost:8080/api/monitoring/metrics"


@dataclass(frozen=True)
class TelemetryConfig:
    """
    Batching and delivery settings for the TelemetryCollector.

    ============================================================
    PARAMETERS
    ============================================================
    endpoint:
        Ingestion URL receiving ``{"metrics": [...]}``.
    batch_size:
        Buffered events that trigger an immediate flush.
    flush_interval_seconds:
        Timer flush period, regardless of buffer size.
    retry_limit:
        Events re-queued after a failed flush. The rest of the
        batch is dropped.
    request_timeout_seconds:
        Total timeout of one ingestion request.
    ============================================================
    """

    endpoint: str = DEFAULT_ENDPOINT
    batch_size: int = 50
    flush_interval_seconds: float = 30.0
    retry_limit: int = 10
    request_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise TelemetryConfigurationError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.flush_interval_seconds <= 0:
            raise TelemetryConfigurationError(
                f"flush_interval_seconds must be positive, got {self.flush_interval_seconds}"
            )
        if self.retry_limit < 0:
            raise TelemetryConfigurationError(f"retry_limit must not be negative, got {self.retry_limit}")
        if self.request_timeout_seconds <= 0:
            raise TelemetryConfigurationError(
                f"request_timeout_seconds must be positive, got {self.request_timeout_seconds}"
            )

    @classmethod
    def from_env(cls) -> "TelemetryConfig":
        """Build config from TELEMETRY_* environment variables."""
        return cls(
            endpoint=os.getenv("TELEMETRY_ENDPOINT", DEFAULT_ENDPOINT),
            batch_size=int(os.getenv("TELEMETRY_BATCH_SIZE", "50")),
            flush_interval_seconds=float(os.getenv("TELEMETRY_FLUSH_INTERVAL_SECONDS", "30")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "batch_size": self.batch_size,
            "flush_interval_seconds": self.flush_interval_seconds,
            "retry_limit": self.retry_limit,
            "request_timeout_seconds": self.request_timeout_seconds,
        }
