"""
Asset Heatmap - Scoring data acquisition and normalization pipeline.

This package provides:
- HeatmapApiClient: retrying aiohttp client for the provider's /heatmap endpoint
- MockHeatmapClient: in-memory fixture client with the same contract
- BatchAcquirer: concurrent per-asset fan-out with partial-failure tolerance
- normalize_score / classify_bias: display buckets and bias labels
- transform_response: raw response to display-ready HeatmapAsset
- PollingController: refresh cadence, view state and lifecycle

Usage:
    from heatmap import HeatmapApiClient, PollingController

    client = HeatmapApiClient("https://scores.example.com", max_retries=3)
    controller = PollingController(client)
    controller.subscribe(lambda state: print(state.to_dict()))

    await controller.start(["USOIL", "USD", "EUR"], interval_ms=60_000)
    ...
    await controller.stop()
    await client.close()

Normalized buckets:
- -2 / -1 / 0 / 1 / 2 from the component's position within the response scale

Bias thresholds (raw total score):
- >= 15 Very Bullish, >= 8 Bullish, >= -7 Neutral, >= -15 Bearish, else Very Bearish
"""

from .acquirer import AssetFetchResult, BatchAcquirer, BatchResult
from .base import BaseHeatmapClient
from .config import HeatmapConfig, create_client, normalize_assets
from .controller import PollingController
from .exceptions import (
    ControllerStoppedError,
    HeatmapError,
    HttpError,
    NetworkError,
    TransformError,
    ValidationError,
)
from .models import (
    SCORE_BUCKETS,
    Bias,
    Component,
    HeatmapAsset,
    HeatmapResponse,
    Pillar,
    PillarType,
    PollPhase,
    PollState,
)
from .normalizer import classify_bias, normalize_score
from .providers import MOCK_FIXTURES, HeatmapApiClient, MockHeatmapClient
from .transformer import parse_timestamp, transform_response
from .validation import REQUIRED_FIELDS, validate_response


__all__ = [
    # Clients
    "BaseHeatmapClient",
    "HeatmapApiClient",
    "MockHeatmapClient",
    "MOCK_FIXTURES",
    "create_client",

    # Acquisition & polling
    "BatchAcquirer",
    "BatchResult",
    "AssetFetchResult",
    "PollingController",

    # Normalization & transformation
    "normalize_score",
    "classify_bias",
    "transform_response",
    "parse_timestamp",
    "validate_response",
    "REQUIRED_FIELDS",

    # Models
    "Bias",
    "Component",
    "HeatmapAsset",
    "HeatmapResponse",
    "Pillar",
    "PillarType",
    "PollPhase",
    "PollState",
    "SCORE_BUCKETS",

    # Configuration
    "HeatmapConfig",
    "normalize_assets",

    # Exceptions
    "HeatmapError",
    "NetworkError",
    "HttpError",
    "ValidationError",
    "TransformError",
    "ControllerStoppedError",
]


# Version
__version__ = "1.0.0"
