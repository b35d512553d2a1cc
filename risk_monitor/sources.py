"""
Risk Monitor - Metric Data Sources.

============================================================
PURPOSE
============================================================
Supplies the current value of a risk metric on each tick.

Every category (storage, performance, adoption, cost,
technical debt) owns its own sampling table mapping a risk
id to a sampling function. Tables are registered
independently so each category can be backed by a different
system.

============================================================
CONTRACT
============================================================
- "No data" is NOT an error: unknown ids return 0.0
- Transport failures raise SamplingError; the monitor logs
  and skips that metric for the current cycle
- Non-finite values are rejected as SamplingError

============================================================
"""

import inspect
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .types import RiskCategory, RiskMetric, SamplingError


logger = logging.getLogger(__name__)


# A sampler may be sync or async; it takes no arguments
SamplingFunction = Callable[[], Union[float, Awaitable[float]]]


# ============================================================
# DATA SOURCE INTERFACE
# ============================================================


class MetricDataSource(ABC):
    """Abstract interface for risk metric sampling."""

    @abstractmethod
    async def fetch(self, metric: RiskMetric) -> float:
        """
        Return the current value of ``metric``.

        Raises:
            SamplingError: on transport failure
        """
        pass


# ============================================================
# CATEGORY ROUTED DATA SOURCE
# ============================================================


class CategoryDataSource(MetricDataSource):
    """
    Routes each metric to the sampling table of its category.

    Usage:
        source = CategoryDataSource()
        source.register(RiskCategory.STORAGE, "storage_quota_usage", read_quota)
        value = await source.fetch(metric)
    """

    def __init__(
        self,
        tables: Optional[Dict[RiskCategory, Dict[str, SamplingFunction]]] = None,
    ) -> None:
        self._tables: Dict[RiskCategory, Dict[str, SamplingFunction]] = {
            category: {} for category in RiskCategory.all_categories()
        }
        for category, table in (tables or {}).items():
            self.register_category(category, table)

    def register(
        self,
        category: RiskCategory,
        risk_id: str,
        sampler: SamplingFunction,
    ) -> None:
        """Register the sampling function for one risk id."""
        category = RiskCategory(category)
        if not callable(sampler):
            raise TypeError(f"Sampler for '{risk_id}' is not callable")
        self._tables[category][risk_id] = sampler
        logger.debug(f"Registered sampler {category.value}/{risk_id}")

    def register_category(
        self,
        category: RiskCategory,
        table: Dict[str, SamplingFunction],
    ) -> None:
        """Register a whole category table at once."""
        for risk_id, sampler in table.items():
            self.register(category, risk_id, sampler)

    def has_sampler(self, metric: RiskMetric) -> bool:
        return metric.id in self._tables.get(metric.category, {})

    async def fetch(self, metric: RiskMetric) -> float:
        sampler = self._tables.get(metric.category, {}).get(metric.id)
        if sampler is None:
            logger.debug(f"No sampler for {metric.category.value}/{metric.id}, reporting 0")
            return 0.0

        try:
            result: Any = sampler()
            if inspect.isawaitable(result):
                result = await result
        except SamplingError:
            raise
        except Exception as e:
            raise SamplingError(
                f"Sampling {metric.id} failed: {e}",
                risk_id=metric.id,
            ) from e

        if result is None:
            return 0.0

        try:
            value = float(result)
        except (TypeError, ValueError) as e:
            raise SamplingError(
                f"Sampler for {metric.id} returned a non-numeric value: {result!r}",
                risk_id=metric.id,
            ) from e

        if not math.isfinite(value):
            raise SamplingError(
                f"Sampler for {metric.id} returned a non-finite value: {value}",
                risk_id=metric.id,
            )
        return value
