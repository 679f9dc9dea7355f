"""
Heatmap Exceptions - Error taxonomy for the acquisition pipeline.

Per-asset errors (network, HTTP status, validation) are retried by the
client and absorbed by the batch layer. They only reach callers of
get_heatmap() directly, never the polling controller.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class HeatmapError(Exception):
    """Base exception for all heatmap pipeline errors."""

    def __init__(
        self,
        message: str,
        asset: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.asset = asset
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "asset": self.asset,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class NetworkError(HeatmapError):
    """Transport-level failure (unreachable host, timeout, reset)."""

    def __init__(
        self,
        message: str,
        asset: str = "",
        url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, asset, details)
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["url"] = self.url
        return data


class HttpError(HeatmapError):
    """Response received with a non-success status code."""

    def __init__(
        self,
        message: str,
        status_code: int,
        asset: str = "",
        url: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, asset, details)
        self.status_code = status_code
        self.url = url
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "url": self.url,
            "reason": self.reason,
        })
        return data


class ValidationError(HeatmapError):
    """Response body failed structural validation."""

    def __init__(
        self,
        message: str,
        asset: str = "",
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, asset, details)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class TransformError(HeatmapError):
    """A validated response could not be turned into a display record."""

    def __init__(
        self,
        message: str,
        asset: str = "",
        field: Optional[str] = None,
        raw_value: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, asset, details)
        self.field = field
        self.raw_value = raw_value

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "field": self.field,
            "raw_value": str(self.raw_value)[:100] if self.raw_value is not None else None,
        })
        return data


class ControllerStoppedError(HeatmapError):
    """Operation attempted on a controller that has been torn down."""
    pass
