"""
Risk Monitor - Sample History.

History collaborator interface plus a bounded in-memory
implementation. The SQLAlchemy implementation lives in
``repository.py``.
"""

from abc import ABC, abstractmethod
from collections import defaultdict, deque
from datetime import datetime
from typing import Deque, Dict, List

from .types import RiskSample


class RiskHistoryStore(ABC):
    """Persists and queries successful risk samples."""

    @abstractmethod
    async def record(self, sample: RiskSample) -> None:
        pass

    @abstractmethod
    async def get_history(self, risk_id: str, since: datetime) -> List[RiskSample]:
        """Samples for ``risk_id`` at or after ``since``, oldest first."""
        pass


class InMemoryRiskHistory(RiskHistoryStore):
    """Keeps the last ``max_samples_per_risk`` samples of each risk."""

    def __init__(self, max_samples_per_risk: int = 2000) -> None:
        self._samples: Dict[str, Deque[RiskSample]] = defaultdict(
            lambda: deque(maxlen=max_samples_per_risk)
        )

    async def record(self, sample: RiskSample) -> None:
        self._samples[sample.risk_id].append(sample)

    async def get_history(self, risk_id: str, since: datetime) -> List[RiskSample]:
        return [s for s in self._samples.get(risk_id, ()) if s.sampled_at >= since]
