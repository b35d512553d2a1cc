"""
Risk Monitor - Telemetry Backed Samplers.

============================================================
PURPOSE
============================================================
Builds a CategoryDataSource whose sampling functions read
the telemetry tables and the local upload storage.

    storage          quota usage, growth rate
    performance      upload success rate, mean upload time,
                     API error rate, concurrent uploads
    adoption         admins uploading directly
    cost             projected storage cost
    technical_debt   failed uploads per week

Windows: success rate, upload time and API errors look at
the last 24 hours; growth and error accumulation at the last
7 days; adoption at the last 30 days.

============================================================
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import sessionmaker

from core.clock import ClockProtocol, SystemClock
from database.engine import transaction_scope, DatabaseError
from telemetry.repository import TelemetryEventRepository, UploadStats

from .resolver import UploadThrottle
from .sources import CategoryDataSource
from .types import RiskCategory, SamplingError


logger = logging.getLogger(__name__)


BYTES_PER_GB = 1024 ** 3


@dataclass(frozen=True)
class SamplerConfig:
    """
    Inputs the samplers cannot read from telemetry.

    storage_root:
        Directory holding uploaded files.
    storage_quota_gb:
        Quota of the storage plan.
    storage_price_usd_per_gb:
        Monthly price of one stored GB.
    admin_count:
        Number of users eligible for direct upload.
    projection_months:
        Horizon of the storage cost projection.
    """

    storage_root: str = "./uploads"
    storage_quota_gb: float = 10.0
    storage_price_usd_per_gb: float = 0.021
    admin_count: int = 10
    projection_months: int = 3


class TelemetrySamplers:
    """Sampling functions over telemetry rows and upload storage."""

    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[SamplerConfig] = None,
        throttle: Optional[UploadThrottle] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._session_factory = session_factory
        self._config = config or SamplerConfig()
        self._throttle = throttle
        self._clock = clock or SystemClock()

    # --------------------------------------------------------
    # QUERY HELPERS
    # --------------------------------------------------------

    async def _upload_stats(self, days: float) -> UploadStats:
        since = self._clock.now() - timedelta(days=days)
        return await asyncio.to_thread(self._query, lambda repo: repo.upload_stats(since))

    def _query(self, fn):
        try:
            with transaction_scope(self._session_factory) as session:
                return fn(TelemetryEventRepository(session))
        except DatabaseError as e:
            raise SamplingError(f"Telemetry query failed: {e}") from e

    def _storage_used_bytes(self) -> int:
        root = Path(self._config.storage_root)
        if not root.is_dir():
            return 0
        total = 0
        try:
            for dirpath, _, filenames in os.walk(root):
                for name in filenames:
                    total += os.path.getsize(os.path.join(dirpath, name))
        except OSError as e:
            raise SamplingError(f"Cannot measure storage under {root}: {e}") from e
        return total

    # --------------------------------------------------------
    # STORAGE
    # --------------------------------------------------------

    async def storage_quota_usage(self) -> float:
        used = await asyncio.to_thread(self._storage_used_bytes)
        return used / (self._config.storage_quota_gb * BYTES_PER_GB) * 100.0

    async def storage_growth_rate(self) -> float:
        """GB per month, extrapolated from the last week."""
        stats = await self._upload_stats(days=7)
        return stats.total_bytes / BYTES_PER_GB * 4

    # --------------------------------------------------------
    # PERFORMANCE
    # --------------------------------------------------------

    async def upload_success_rate(self) -> float:
        stats = await self._upload_stats(days=1)
        if stats.total == 0:
            return 100.0
        return stats.succeeded / stats.total * 100.0

    async def average_upload_time(self) -> float:
        """Seconds."""
        stats = await self._upload_stats(days=1)
        if stats.average_duration_ms is None:
            return 0.0
        return stats.average_duration_ms / 1000.0

    async def api_error_rate(self) -> float:
        since = self._clock.now() - timedelta(days=1)
        rate = await asyncio.to_thread(self._query, lambda repo: repo.api_error_rate(since))
        return rate or 0.0

    async def concurrent_uploads(self) -> float:
        """Uploads currently holding a throttle slot; 0 without a throttle."""
        return float(self._throttle.active_uploads) if self._throttle else 0.0

    # --------------------------------------------------------
    # ADOPTION / COST / TECHNICAL DEBT
    # --------------------------------------------------------

    async def user_adoption_rate(self) -> float:
        if self._config.admin_count <= 0:
            return 0.0
        since = self._clock.now() - timedelta(days=30)
        uploaders = await asyncio.to_thread(self._query, lambda repo: repo.distinct_uploaders(since))
        return min(100.0, uploaders / self._config.admin_count * 100.0)

    async def storage_cost_projection(self) -> float:
        """USD per month at the end of the projection horizon."""
        used_gb = await asyncio.to_thread(self._storage_used_bytes) / BYTES_PER_GB
        growth_gb = await self.storage_growth_rate()
        projected_gb = used_gb + growth_gb * self._config.projection_months
        return projected_gb * self._config.storage_price_usd_per_gb

    async def error_accumulation(self) -> float:
        """Failed uploads in the last 7 days."""
        stats = await self._upload_stats(days=7)
        return float(stats.failed)

    # --------------------------------------------------------
    # DATA SOURCE
    # --------------------------------------------------------

    def build_data_source(self) -> CategoryDataSource:
        return CategoryDataSource({
            RiskCategory.STORAGE: {
                "storage_quota_usage": self.storage_quota_usage,
                "storage_growth_rate": self.storage_growth_rate,
            },
            RiskCategory.PERFORMANCE: {
                "upload_success_rate_decline": self.upload_success_rate,
                "average_upload_time_increase": self.average_upload_time,
                "api_error_rate_increase": self.api_error_rate,
                "concurrent_upload_bottleneck": self.concurrent_uploads,
            },
            RiskCategory.ADOPTION: {
                "user_adoption_rate": self.user_adoption_rate,
            },
            RiskCategory.COST: {
                "storage_cost_projection": self.storage_cost_projection,
            },
            RiskCategory.TECHNICAL_DEBT: {
                "error_accumulation": self.error_accumulation,
            },
        })
