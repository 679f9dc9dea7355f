"""Heatmap client implementations."""

from .http import HeatmapApiClient
from .mock import MOCK_FIXTURES, MockHeatmapClient

__all__ = ["HeatmapApiClient", "MockHeatmapClient", "MOCK_FIXTURES"]
