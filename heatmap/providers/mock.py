"""
Mock Heatmap Client - In-memory fixture data honoring the client contract.

Useful for development and tests without a live endpoint. Responses go
through the same validation as the network client and carry a fresh
``as_of`` on every call.
"""

import asyncio
import copy
import logging
import random
from datetime import datetime, timezone
from typing import Any, Optional

from ..base import BaseHeatmapClient
from ..exceptions import HttpError
from ..models import HeatmapResponse
from ..validation import validate_response


logger = logging.getLogger(__name__)


FIXTURE_VERSION = "2025.08.1"
FIXTURE_SCALE = [-24, 24]


def _pillar(name: str, score: int, components: dict[str, int]) -> dict[str, Any]:
    return {
        "name": name,
        "score": score,
        "components": [{"key": key, "score": value} for key, value in components.items()],
    }


MOCK_FIXTURES: dict[str, dict[str, Any]] = {
    "USOIL": {
        "asset": "USOIL",
        "score": 13,
        "scale": FIXTURE_SCALE,
        "pillars": [
            _pillar("sentiment", 4, {"cot": 2, "retailPos": 2}),
            _pillar("technical", 3, {"seasonality": 1, "trend": 2}),
            _pillar("economic", 6, {
                "gdp": 1,
                "mPMI": 1,
                "sPMI": 1,
                "retailSales": 1,
                "inflation": 1,
                "employmentChange": 1,
            }),
        ],
        "version": FIXTURE_VERSION,
    },
    "USD": {
        "asset": "USD",
        "score": 10,
        "scale": FIXTURE_SCALE,
        "pillars": [
            _pillar("sentiment", 3, {"cot": 1, "retailPos": 2}),
            _pillar("technical", 3, {"seasonality": 1, "trend": 2}),
            _pillar("economic", 4, {"gdp": 1, "mPMI": 1, "sPMI": 1, "inflation": 1}),
        ],
        "version": FIXTURE_VERSION,
    },
    "EUR": {
        "asset": "EUR",
        "score": -4,
        "scale": FIXTURE_SCALE,
        "pillars": [
            _pillar("sentiment", -1, {"cot": -1, "retailPos": 0}),
            _pillar("technical", -1, {"seasonality": -1, "trend": 0}),
            _pillar("economic", -2, {"gdp": -1, "retailSales": -1}),
        ],
        "version": FIXTURE_VERSION,
    },
}


class MockHeatmapClient(BaseHeatmapClient):
    """
    Fixture-backed client.

    Unknown assets raise HttpError(404), so batch behaviour matches the
    network client. Latency is sampled uniformly from ``latency_range``
    seconds; pass (0, 0) to disable it.
    """

    name = "mock"

    DEFAULT_LATENCY_RANGE = (0.1, 0.3)

    def __init__(
        self,
        fixtures: Optional[dict[str, dict[str, Any]]] = None,
        latency_range: Optional[tuple[float, float]] = None,
    ) -> None:
        super().__init__()
        self._fixtures = fixtures if fixtures is not None else MOCK_FIXTURES
        self.latency_range = latency_range or self.DEFAULT_LATENCY_RANGE

    @property
    def available_assets(self) -> list[str]:
        return list(self._fixtures)

    async def get_heatmap(self, asset: str) -> HeatmapResponse:
        self._stats["total_requests"] += 1
        self._stats["total_attempts"] += 1
        await self._simulate_latency()

        if asset not in self._fixtures:
            self._stats["failed_fetches"] += 1
            raise HttpError(
                f"Asset {asset} not found",
                status_code=404,
                asset=asset,
                reason="Not Found",
            )

        payload = copy.deepcopy(self._fixtures[asset])
        payload.setdefault("as_of", datetime.now(timezone.utc).isoformat())
        response = validate_response(payload, asset=asset)
        self._stats["successful_fetches"] += 1
        return response

    async def _simulate_latency(self) -> None:
        low, high = self.latency_range
        if high <= 0:
            return
        await asyncio.sleep(random.uniform(low, high))
