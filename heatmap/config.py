"""
Heatmap - Configuration.

============================================================
CONFIGURATION SURFACE
============================================================

- API base URL
- Asset symbol list (ordered, upper-cased)
- Refresh interval in milliseconds (0 = one-shot)
- Max retry count per asset call
- Network client vs. in-memory fixture client

Configuration can be loaded from:
- Default values
- Environment variables
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from .base import BaseHeatmapClient
from .providers import HeatmapApiClient, MockHeatmapClient


logger = logging.getLogger(__name__)


DEFAULT_ASSETS: tuple[str, ...] = ("USOIL", "USD", "EUR")

_TRUTHY = {"1", "true", "yes", "on"}


def normalize_assets(assets: Union[str, list[str], tuple[str, ...], None]) -> list[str]:
    """Strip and upper-case symbols, dropping empties. Accepts a comma list."""
    if assets is None:
        return []
    if isinstance(assets, str):
        assets = assets.split(",")
    return [str(a).strip().upper() for a in assets if str(a).strip()]


@dataclass
class HeatmapConfig:
    """Settings for the acquisition client and polling controller."""
    api_base_url: str = "http://localhost:8000"
    assets: list[str] = field(default_factory=lambda: list(DEFAULT_ASSETS))
    refresh_interval_ms: int = 0
    max_retries: int = 3
    use_mock: bool = False

    # Transport
    request_timeout_seconds: float = 10.0
    max_backoff_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate and normalize settings."""
        self.api_base_url = (self.api_base_url or "").strip().rstrip("/")
        if not self.api_base_url and not self.use_mock:
            raise ValueError("api_base_url is required unless use_mock is set")
        self.assets = normalize_assets(self.assets)
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.refresh_interval_ms < 0:
            raise ValueError("refresh_interval_ms must be >= 0")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if self.max_backoff_seconds <= 0:
            raise ValueError("max_backoff_seconds must be > 0")

    @property
    def refresh_enabled(self) -> bool:
        return self.refresh_interval_ms > 0

    @classmethod
    def from_env(cls) -> "HeatmapConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - HEATMAP_API_BASE_URL
        - HEATMAP_ASSETS (comma-separated)
        - HEATMAP_REFRESH_INTERVAL_MS
        - HEATMAP_MAX_RETRIES
        - HEATMAP_USE_MOCK
        - HEATMAP_REQUEST_TIMEOUT
        - HEATMAP_MAX_BACKOFF
        """
        kwargs: dict[str, Any] = {}

        if os.getenv("HEATMAP_API_BASE_URL"):
            kwargs["api_base_url"] = os.getenv("HEATMAP_API_BASE_URL")
        if os.getenv("HEATMAP_ASSETS"):
            kwargs["assets"] = normalize_assets(os.getenv("HEATMAP_ASSETS"))
        if os.getenv("HEATMAP_REFRESH_INTERVAL_MS"):
            kwargs["refresh_interval_ms"] = int(os.getenv("HEATMAP_REFRESH_INTERVAL_MS"))
        if os.getenv("HEATMAP_MAX_RETRIES"):
            kwargs["max_retries"] = int(os.getenv("HEATMAP_MAX_RETRIES"))
        if os.getenv("HEATMAP_USE_MOCK"):
            kwargs["use_mock"] = os.getenv("HEATMAP_USE_MOCK").strip().lower() in _TRUTHY
        if os.getenv("HEATMAP_REQUEST_TIMEOUT"):
            kwargs["request_timeout_seconds"] = float(os.getenv("HEATMAP_REQUEST_TIMEOUT"))
        if os.getenv("HEATMAP_MAX_BACKOFF"):
            kwargs["max_backoff_seconds"] = float(os.getenv("HEATMAP_MAX_BACKOFF"))

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "HeatmapConfig":
        """Load configuration from YAML file."""
        try:
            import yaml
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}

            known = {
                "api_base_url",
                "assets",
                "refresh_interval_ms",
                "max_retries",
                "use_mock",
                "request_timeout_seconds",
                "max_backoff_seconds",
            }
            unknown = set(data) - known
            if unknown:
                logger.warning(f"Ignoring unknown config keys in {path}: {sorted(unknown)}")

            return cls(**{k: v for k, v in data.items() if k in known})

        except Exception as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "api_base_url": self.api_base_url,
            "assets": list(self.assets),
            "refresh_interval_ms": self.refresh_interval_ms,
            "max_retries": self.max_retries,
            "use_mock": self.use_mock,
            "request_timeout_seconds": self.request_timeout_seconds,
            "max_backoff_seconds": self.max_backoff_seconds,
        }


def create_client(
    config: HeatmapConfig,
    mock_latency: Optional[tuple[float, float]] = None,
) -> BaseHeatmapClient:
    """Build the network client or the fixture client from configuration."""
    if config.use_mock:
        logger.info("Using mock heatmap client")
        return MockHeatmapClient(latency_range=mock_latency)

    return HeatmapApiClient(
        api_base_url=config.api_base_url,
        max_retries=config.max_retries,
        timeout=config.request_timeout_seconds,
        max_backoff=config.max_backoff_seconds,
    )
