"""
Batch Acquirer - Concurrent per-asset fetches with partial-failure tolerance.

Every asset gets its own get_heatmap() call, started together. Each outcome
is recorded as an AssetFetchResult so that dropping failures is an explicit
step (BatchResult.responses) rather than a side effect of swallowed errors.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from .models import HeatmapResponse

if TYPE_CHECKING:
    from .base import BaseHeatmapClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetFetchResult:
    """Outcome of fetching one asset: a response or an error, never both."""
    asset: str
    response: Optional[HeatmapResponse] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset,
            "ok": self.ok,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
        }


@dataclass
class BatchResult:
    """All per-asset outcomes of one batch, in request order."""
    results: list[AssetFetchResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def responses(self) -> list[HeatmapResponse]:
        """Successful responses only; failures are dropped here."""
        return [r.response for r in self.results if r.ok]

    @property
    def failures(self) -> list[AssetFetchResult]:
        return [r for r in self.results if not r.ok]

    @property
    def succeeded(self) -> list[str]:
        return [r.asset for r in self.results if r.ok]

    @property
    def failed(self) -> list[str]:
        return [r.asset for r in self.results if not r.ok]

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "succeeded": self.succeeded,
            "failed": self.failed,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


class BatchAcquirer:
    """
    Fans get_heatmap() out across an asset list.

    No concurrency limit is applied. The batch completes when every call has
    settled, so its latency is that of the slowest asset's retry chain. An
    all-failed batch is an empty result, not an error.
    """

    def __init__(self, client: "BaseHeatmapClient") -> None:
        self._client = client

    async def acquire(self, assets: list[str]) -> BatchResult:
        """Fetch every asset concurrently and collect all outcomes."""
        batch = BatchResult()
        if not assets:
            batch.finished_at = datetime.now(timezone.utc)
            return batch

        tasks = [
            asyncio.create_task(self._client.get_heatmap(asset), name=f"heatmap:{asset}")
            for asset in assets
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for asset, outcome in zip(assets, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"[{asset}] Dropped from batch: {outcome}")
                batch.results.append(AssetFetchResult(asset=asset, error=outcome))
            else:
                batch.results.append(AssetFetchResult(asset=asset, response=outcome))

        batch.finished_at = datetime.now(timezone.utc)

        if batch.failed:
            logger.info(
                f"Batch finished: {len(batch.succeeded)}/{len(assets)} assets succeeded "
                f"(failed: {', '.join(batch.failed)})"
            )
        else:
            logger.debug(f"Batch finished: {len(assets)}/{len(assets)} assets succeeded")

        return batch

    async def acquire_responses(self, assets: list[str]) -> list[HeatmapResponse]:
        """Fetch every asset and return only the successful responses."""
        batch = await self.acquire(assets)
        return batch.responses
