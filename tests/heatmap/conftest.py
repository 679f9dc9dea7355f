"""
Shared fixtures for heatmap tests.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest

from heatmap import BaseHeatmapClient, HeatmapResponse, HttpError, validate_response


AS_OF = "2025-08-01T12:00:00Z"


def build_payload(
    asset: str = "USOIL",
    score: Any = 13,
    scale: Any = None,
    pillars: Any = None,
    as_of: Any = AS_OF,
    version: str = "2025.08.1",
) -> dict[str, Any]:
    if pillars is None:
        pillars = [
            {
                "name": "sentiment",
                "score": 4,
                "components": [{"key": "cot", "score": 24}, {"key": "retailPos", "score": 24}],
            },
            {
                "name": "technical",
                "score": 3,
                "components": [{"key": "trend", "score": 24}],
            },
            {
                "name": "economic",
                "score": 6,
                "components": [{"key": "gdp", "score": 16}],
            },
        ]
    return {
        "asset": asset,
        "score": score,
        "scale": [-24, 24] if scale is None else scale,
        "pillars": pillars,
        "as_of": as_of,
        "version": version,
    }


class FakeClient(BaseHeatmapClient):
    """
    Scriptable client.

    ``outcomes`` maps asset -> payload dict or exception instance. When
    ``gate`` is set, every call blocks until the event is released.
    """

    name = "fake"

    def __init__(
        self,
        outcomes: dict[str, Any],
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        super().__init__()
        self.outcomes = outcomes
        self.gate = gate
        self.calls: list[str] = []
        self.in_progress = 0

    async def get_heatmap(self, asset: str) -> HeatmapResponse:
        self.calls.append(asset)
        self.in_progress += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.in_progress -= 1

        outcome = self.outcomes.get(asset)
        if outcome is None:
            raise HttpError(f"Asset {asset} not found", status_code=404, asset=asset)
        if isinstance(outcome, BaseException):
            raise outcome
        return validate_response(outcome, asset=asset)


@pytest.fixture
def payload_factory() -> Callable[..., dict[str, Any]]:
    """Build raw provider payloads."""
    return build_payload


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeClient]:
    """Build scriptable clients."""
    return FakeClient


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Deterministic clock for lastUpdated."""
    moment = datetime(2025, 8, 1, 12, 30, tzinfo=timezone.utc)
    return lambda: moment
