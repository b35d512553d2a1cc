"""
Risk Monitor - Auto Resolution.

============================================================
PURPOSE
============================================================
Automated mitigation for a small allow-list of risks.

- AutoResolver: static table risk id -> MitigationAction
- MitigationTarget: the system the actions act upon
- LocalMitigationTarget: temp-file cleanup and an in-process
  upload throttle

============================================================
FAILURE SEMANTICS
============================================================
A mitigation that raises or reports False is a failed
resolution. It is logged and never propagates to the
evaluation cycle.

============================================================
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock

from .types import MitigationError


logger = logging.getLogger(__name__)


# ============================================================
# MITIGATION TARGETS
# ============================================================


class MitigationTarget(ABC):
    """System acted upon by automatic mitigations."""

    @abstractmethod
    async def cleanup_temporary_files(self) -> bool:
        """Remove stale temporary upload files."""
        pass

    @abstractmethod
    async def enable_upload_throttling(self) -> bool:
        """Limit the number of concurrent uploads."""
        pass


class UploadThrottle:
    """
    In-process limit on concurrent uploads.

    Disengaged by default. While engaged, acquire() refuses new
    uploads once ``limit`` uploads are active.

    This is the hook the host application's upload handler wraps
    around each upload: call acquire() before accepting the file
    (reject or queue it on False) and release() once it finishes.
    The same instance is handed to LocalMitigationTarget, which
    engages it, and to TelemetrySamplers, whose concurrent_uploads
    sample reads ``active_uploads``. MonitoringRuntime exposes it
    as ``runtime.throttle``.
    """

    def __init__(self) -> None:
        self._limit: Optional[int] = None
        self._active = 0

    @property
    def is_engaged(self) -> bool:
        return self._limit is not None

    @property
    def limit(self) -> Optional[int]:
        return self._limit

    @property
    def active_uploads(self) -> int:
        return self._active

    def engage(self, limit: int) -> None:
        if limit < 1:
            raise MitigationError(f"Throttle limit must be at least 1, got {limit}")
        self._limit = limit
        logger.info(f"Upload throttle engaged: max {limit} concurrent uploads")

    def disengage(self) -> None:
        self._limit = None
        logger.info("Upload throttle disengaged")

    def acquire(self) -> bool:
        """Called by the upload handler before an upload starts. Returns False when throttled."""
        if self._limit is not None and self._active >= self._limit:
            return False
        self._active += 1
        return True

    def release(self) -> None:
        """Called by the upload handler when an upload finishes, successful or not."""
        self._active = max(0, self._active - 1)


class LocalMitigationTarget(MitigationTarget):
    """
    Mitigations against the local upload host.

    - cleanup: delete files in ``temp_dir`` older than
      ``max_age_hours``
    - throttling: engage ``throttle`` at ``throttle_limit``
    """

    def __init__(
        self,
        temp_dir: str,
        throttle: Optional[UploadThrottle] = None,
        max_age_hours: float = 24.0,
        throttle_limit: int = 3,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._temp_dir = Path(temp_dir)
        self._throttle = throttle or UploadThrottle()
        self._max_age = timedelta(hours=max_age_hours)
        self._throttle_limit = throttle_limit
        self._clock = clock or SystemClock()

    @property
    def throttle(self) -> UploadThrottle:
        return self._throttle

    async def cleanup_temporary_files(self) -> bool:
        removed = await asyncio.to_thread(self._remove_stale_files)
        logger.info(f"Temporary file cleanup removed {len(removed)} file(s) from {self._temp_dir}")
        return True

    async def enable_upload_throttling(self) -> bool:
        self._throttle.engage(self._throttle_limit)
        return True

    def _remove_stale_files(self) -> List[Path]:
        if not self._temp_dir.is_dir():
            logger.info(f"Temporary directory {self._temp_dir} does not exist, nothing to clean")
            return []

        cutoff = self._clock.timestamp() - self._max_age.total_seconds()
        removed: List[Path] = []
        for entry in self._temp_dir.iterdir():
            if not entry.is_file():
                continue
            try:
                if entry.stat().st_mtime < cutoff:
                    os.remove(entry)
                    removed.append(entry)
            except OSError as e:
                raise MitigationError(f"Cannot remove {entry}: {e}") from e
        return removed


# ============================================================
# AUTO RESOLVER
# ============================================================


@dataclass(frozen=True)
class MitigationAction:
    """A named automatic mitigation."""

    name: str
    description: str
    handler: Callable[[], Awaitable[bool]]


class AutoResolver:
    """
    Maps allow-listed risk ids to mitigation actions.

    Stateless beyond its action table. Risks not in the table
    are never auto-resolved.
    """

    def __init__(self, actions: Optional[Dict[str, MitigationAction]] = None) -> None:
        self._actions: Dict[str, MitigationAction] = dict(actions or {})

    @property
    def resolvable_risks(self) -> List[str]:
        return list(self._actions)

    def get_action(self, risk_id: str) -> Optional[MitigationAction]:
        return self._actions.get(risk_id)

    def can_auto_resolve(self, risk_id: str) -> bool:
        return risk_id in self._actions

    async def attempt_resolution(self, risk_id: str) -> bool:
        """
        Run the mapped mitigation for ``risk_id``.

        Returns:
            True only if the action completed and reported success
        """
        action = self._actions.get(risk_id)
        if action is None:
            return False

        try:
            succeeded = bool(await action.handler())
        except Exception as e:
            logger.error(f"Auto-resolution '{action.name}' failed for risk {risk_id}: {e}")
            return False

        if succeeded:
            logger.info(f"Auto-resolution '{action.name}' succeeded for risk {risk_id}")
        else:
            logger.warning(f"Auto-resolution '{action.name}' reported failure for risk {risk_id}")
        return succeeded


def build_default_resolver(target: MitigationTarget) -> AutoResolver:
    """Allow-list: storage quota cleanup and upload throttling."""
    return AutoResolver({
        "storage_quota_usage": MitigationAction(
            name="cleanup_temporary_files",
            description="Remove stale temporary upload files",
            handler=target.cleanup_temporary_files,
        ),
        "concurrent_upload_bottleneck": MitigationAction(
            name="enable_upload_throttling",
            description="Limit concurrent uploads",
            handler=target.enable_upload_throttling,
        ),
    })
