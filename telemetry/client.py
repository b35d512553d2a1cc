"""
Telemetry - Ingestion Clients.

The collector talks to an IngestionClient. The production
client POSTs ``{"metrics": [...]}`` over HTTP with aiohttp;
any 2xx is success.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from .types import IngestionError


logger = logging.getLogger(__name__)


class IngestionClient(ABC):
    """Delivers one batch of events."""

    @abstractmethod
    async def send(self, batch: List[Dict[str, Any]]) -> None:
        """
        Deliver ``batch``.

        Raises:
            IngestionError: delivery failed
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass


class HttpIngestionClient(IngestionClient):
    """aiohttp client for the metrics ingestion endpoint."""

    def __init__(self, endpoint: str, timeout_seconds: float = 10.0):
        self._endpoint = endpoint
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def send(self, batch: List[Dict[str, Any]]) -> None:
        session = await self._get_session()
        try:
            async with session.post(self._endpoint, json={"metrics": batch}) as response:
                if 200 <= response.status < 300:
                    return
                body = await response.text()
                raise IngestionError(
                    f"Ingestion endpoint returned {response.status}: {body[:200]}",
                    status=response.status,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise IngestionError(f"Ingestion request to {self._endpoint} failed: {e}") from e
