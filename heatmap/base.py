"""
Base Heatmap Client - Abstract interface for all heatmap data clients.

The network client and the fixture client both implement this contract,
so the rest of the pipeline never knows which one it is talking to.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .acquirer import BatchAcquirer, BatchResult
from .models import HeatmapResponse


logger = logging.getLogger(__name__)


class BaseHeatmapClient(ABC):
    """
    Abstract base class for heatmap clients.

    Subclasses implement get_heatmap(), which must either return a
    validated HeatmapResponse or raise NetworkError, HttpError or
    ValidationError once its own retries are exhausted.

    Batch methods are shared: they fan out get_heatmap() and never raise
    for individual asset failures.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._acquirer = BatchAcquirer(self)

        # Statistics
        self._stats = {
            "total_requests": 0,
            "total_attempts": 0,
            "retries": 0,
            "successful_fetches": 0,
            "failed_fetches": 0,
        }

    @abstractmethod
    async def get_heatmap(self, asset: str) -> HeatmapResponse:
        """Fetch and validate the heatmap payload for one asset."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get_multiple_heatmaps(self, assets: list[str]) -> list[HeatmapResponse]:
        """
        Fetch several assets concurrently.

        Returns only the successful responses. If every asset fails the
        result is an empty list, not an error.
        """
        return await self._acquirer.acquire_responses(assets)

    async def fetch_batch(self, assets: list[str]) -> BatchResult:
        """Fetch several assets and keep every per-asset outcome."""
        return await self._acquirer.acquire(assets)

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics."""
        total = self._stats["total_requests"]
        error_rate = (
            self._stats["failed_fetches"] / total * 100
            if total > 0 else 0
        )
        return {
            **self._stats,
            "error_rate_pct": round(error_rate, 2),
            "client_name": self.name,
        }

    async def close(self) -> None:
        """Cleanup resources. Override if needed."""
        pass

    async def __aenter__(self) -> "BaseHeatmapClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
