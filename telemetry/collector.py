"""
Telemetry - Collector.

============================================================
PURPOSE
============================================================
Buffers telemetry events in memory and delivers them in
batches to the ingestion endpoint.

============================================================
FLUSH RULES
============================================================
- Size: the record() that brings the buffer to batch_size
  schedules a swap-and-send on the collector's event loop
- Timer: every flush_interval_seconds, if the buffer is not
  empty
- Failure: only the first retry_limit events of the failed
  batch are put back at the front of the buffer; the rest
  are dropped and counted
- flush() and the timer never raise

record() may be called from any thread, e.g. a sync alert
observer running on an executor. The buffer is guarded by a
lock; background sends always start on the loop the collector
was started on (or first used from).

============================================================
"""

import asyncio
import logging
import secrets
import string
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from core.clock import ClockProtocol, SystemClock

from .client import IngestionClient
from .config import TelemetryConfig
from .types import (
    BusinessMetricEvent,
    PerformanceEvent,
    UploadEvent,
    UserExperienceEvent,
)


logger = logging.getLogger(__name__)


_SESSION_ALPHABET = string.ascii_lowercase + string.digits


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def generate_session_id(clock: ClockProtocol) -> str:
    """session_<ms>_<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"session_{clock.timestamp_ms()}_{suffix}"


# ============================================================
# COLLECTOR
# ============================================================


class TelemetryCollector:
    """
    Batched, bounded-retry telemetry buffer.

    Usage:
        collector = TelemetryCollector(HttpIngestionClient(url))
        await collector.start()
        collector.track_business_metric("risk_alert_triggered", 1, {...})
        ...
        await collector.shutdown()
    """

    def __init__(
        self,
        client: IngestionClient,
        config: Optional[TelemetryConfig] = None,
        clock: Optional[ClockProtocol] = None,
        session_id: Optional[str] = None,
    ):
        self._client = client
        self._config = config or TelemetryConfig()
        self._clock = clock or SystemClock()
        self._session_id = session_id or generate_session_id(self._clock)

        self._buffer: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = _running_loop()
        self._send_tasks: Set[asyncio.Task] = set()
        self._timer_task: Optional[asyncio.Task] = None
        self._running = False

        self._events_recorded = 0
        self._events_sent = 0
        self._events_dropped = 0
        self._flush_failures = 0

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    def stats(self) -> Dict[str, Any]:
        return {
            "buffered": len(self._buffer),
            "events_recorded": self._events_recorded,
            "events_sent": self._events_sent,
            "events_dropped": self._events_dropped,
            "flush_failures": self._flush_failures,
            "in_flight_batches": len(self._send_tasks),
        }

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic flush timer."""
        if self._running:
            return
        self._running = True
        self._loop = asyncio.get_running_loop()
        self._timer_task = asyncio.create_task(self._flush_loop())
        logger.info(
            f"Telemetry collector started (batch_size={self._config.batch_size}, "
            f"flush_interval={self._config.flush_interval_seconds}s)"
        )

    async def shutdown(self) -> None:
        """Cancel the timer, wait for in-flight batches, flush the rest."""
        self._running = False

        if self._timer_task:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        await self.wait_idle()
        await self.flush()
        await self._client.close()

        logger.info(
            f"Telemetry collector stopped: {self._events_sent} sent, "
            f"{self._events_dropped} dropped, {len(self._buffer)} left in buffer"
        )

    async def wait_idle(self) -> None:
        """Wait until every background batch send has finished."""
        while self._send_tasks:
            await asyncio.gather(*list(self._send_tasks))

    # --------------------------------------------------------
    # RECORDING
    # --------------------------------------------------------

    def record(self, event: Any) -> None:
        """
        Append one event. Accepts an event dataclass or a dict.

        Stamps a millisecond ``timestamp`` if the event has none.
        """
        data = event.to_dict() if hasattr(event, "to_dict") else dict(event)
        data.setdefault("timestamp", self._clock.timestamp_ms())

        with self._lock:
            self._buffer.append(data)
            self._events_recorded += 1
            full = len(self._buffer) >= self._config.batch_size

        if full:
            self._schedule_flush()

    def track_upload(self, event: UploadEvent) -> None:
        if event.session_id is None:
            event.session_id = self._session_id
        self.record(event)

    def track_performance(self, event: PerformanceEvent) -> None:
        self.record(event)

    def track_user_experience(self, event: UserExperienceEvent) -> None:
        if event.session_id is None:
            event.session_id = self._session_id
        self.record(event)

    def track_business_metric(
        self,
        metric: str,
        value: float,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.record(BusinessMetricEvent(metric=metric, value=value, context=dict(context or {})))

    # --------------------------------------------------------
    # CONVENIENCE TRACKERS
    # --------------------------------------------------------

    def upload_tracker(self, file_size: int, video_format: str) -> "UploadTracker":
        """Start timing an upload now."""
        return UploadTracker(self, file_size, video_format, self._clock.timestamp_ms())

    def api_call_tracker(self, endpoint: str) -> "ApiCallTracker":
        """Start timing an API call now."""
        return ApiCallTracker(self, endpoint, self._clock.timestamp_ms())

    def user_task_tracker(self, task_type: str) -> "UserTaskTracker":
        """Start timing a user task now."""
        return UserTaskTracker(self, task_type, self._clock.timestamp_ms())

    def now_ms(self) -> int:
        return self._clock.timestamp_ms()

    # --------------------------------------------------------
    # FLUSHING
    # --------------------------------------------------------

    async def flush(self) -> int:
        """
        Send everything currently buffered.

        Returns:
            Number of events delivered (0 on failure)
        """
        batch = self._take_batch()
        if not batch:
            return 0
        delivered = await self._send(batch)
        return len(batch) if delivered else 0

    def _take_batch(self) -> List[Dict[str, Any]]:
        with self._lock:
            batch, self._buffer = self._buffer, []
        return batch

    def _schedule_flush(self) -> None:
        running = _running_loop()
        owner = self._loop
        if owner is None or owner.is_closed():
            if running is None:
                # No loop yet: leave the events for the next flush
                return
            self._loop = owner = running

        if running is owner:
            self._start_send()
            return
        try:
            owner.call_soon_threadsafe(self._start_send)
        except RuntimeError:
            # Loop closed in between; the events stay buffered
            logger.debug("Telemetry loop closed, size flush deferred")

    def _start_send(self) -> None:
        """Swap the buffer out and send it in a background task. Loop thread only."""
        batch = self._take_batch()
        if not batch:
            return
        task = asyncio.get_running_loop().create_task(self._send(batch))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, batch: List[Dict[str, Any]]) -> bool:
        try:
            await self._client.send(batch)
        except Exception as e:
            retained = batch[: self._config.retry_limit]
            with self._lock:
                self._buffer[:0] = retained
            dropped = len(batch) - len(retained)
            self._events_dropped += dropped
            self._flush_failures += 1
            logger.error(
                f"Failed to send {len(batch)} telemetry event(s): {e}. "
                f"Re-queued {len(retained)}, dropped {dropped}"
            )
            return False

        self._events_sent += len(batch)
        logger.debug(f"Sent {len(batch)} telemetry event(s)")
        return True

    async def _flush_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._config.flush_interval_seconds)
            except asyncio.CancelledError:
                break
            if self._buffer:
                await self.flush()


# ============================================================
# CONVENIENCE TRACKERS
# ============================================================


@dataclass
class UploadTracker:
    """Times one upload and records its outcome once."""

    collector: TelemetryCollector
    file_size: int
    video_format: str
    started_at: int

    def _event(self, success: bool, **extra: Any) -> UploadEvent:
        ended_at = self.collector.now_ms()
        elapsed_s = (ended_at - self.started_at) / 1000.0
        speed = self.file_size / elapsed_s if success and elapsed_s > 0 else 0.0
        return UploadEvent(
            upload_start_time=self.started_at,
            upload_end_time=ended_at,
            file_size=self.file_size,
            success=success,
            video_format=self.video_format,
            upload_speed=speed,
            **extra,
        )

    def success(self, compression_ratio: Optional[float] = None) -> UploadEvent:
        event = self._event(True, compression_ratio=compression_ratio)
        self.collector.track_upload(event)
        return event

    def failure(self, error_type: str, error_message: str) -> UploadEvent:
        event = self._event(False, error_type=error_type, error_message=error_message)
        self.collector.track_upload(event)
        return event


@dataclass
class ApiCallTracker:
    collector: TelemetryCollector
    endpoint: str
    started_at: int

    def record_response(self, status_code: int) -> PerformanceEvent:
        event = PerformanceEvent(
            endpoint=self.endpoint,
            response_time=self.collector.now_ms() - self.started_at,
            status_code=status_code,
            operation=self.endpoint.rstrip("/").split("/")[-1] or "unknown",
        )
        self.collector.track_performance(event)
        return event


@dataclass
class UserTaskTracker:
    collector: TelemetryCollector
    task_type: str
    started_at: int

    def complete(self, successful: bool, error_count: int = 0) -> UserExperienceEvent:
        event = UserExperienceEvent(
            task_type=self.task_type,
            completion_time=self.collector.now_ms() - self.started_at,
            successful=successful,
            error_count=error_count,
        )
        self.collector.track_user_experience(event)
        return event
