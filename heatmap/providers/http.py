"""
Heatmap API Client - aiohttp client for the provider's /heatmap endpoint.

Contract consumed:
    GET <base>/heatmap?asset=<SYMBOL>  ->  JSON HeatmapResponse

Every failure kind (transport, non-2xx status, invalid body) is retried the
same way, with exponential backoff: 1s, 2s, 4s, ... capped at
MAX_BACKOFF_SECONDS. Retry state is per call; nothing is shared between
assets or between calls.
"""

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from ..base import BaseHeatmapClient
from ..exceptions import HeatmapError, HttpError, NetworkError, ValidationError
from ..models import HeatmapResponse
from ..validation import validate_response


logger = logging.getLogger(__name__)


class HeatmapApiClient(BaseHeatmapClient):
    """
    Network client with bounded retries.

    A call makes at most ``1 + max_retries`` attempts. Intermediate errors
    are logged, only the last one is raised to the caller.
    """

    name = "http"

    DEFAULT_MAX_RETRIES = 3
    DEFAULT_TIMEOUT = 10.0  # seconds, per attempt
    BASE_BACKOFF_SECONDS = 1.0
    MAX_BACKOFF_SECONDS = 30.0

    def __init__(
        self,
        api_base_url: str,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        max_backoff: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__()
        self.base_url = api_base_url.rstrip("/")
        self.max_retries = self.DEFAULT_MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.max_backoff = max_backoff or self.MAX_BACKOFF_SECONDS

        self._session = session
        self._owns_session = session is None
        self._closed = False

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    def build_url(self, asset: str) -> str:
        """Full request URL for one asset."""
        return f"{self.base_url}/heatmap?asset={quote(asset, safe='')}"

    async def get_heatmap(self, asset: str) -> HeatmapResponse:
        """
        Fetch one asset, retrying on any failure.

        Raises:
            NetworkError, HttpError, ValidationError: the last attempt's
                error once retries are exhausted
        """
        self._stats["total_requests"] += 1
        url = self.build_url(asset)
        last_error: Optional[HeatmapError] = None

        for attempt in range(self.max_retries + 1):
            self._stats["total_attempts"] += 1
            try:
                response = await self._fetch_once(asset, url)
                self._stats["successful_fetches"] += 1
                if attempt > 0:
                    logger.info(f"[{asset}] Succeeded after {attempt + 1} attempts")
                return response
            except HeatmapError as e:
                last_error = e
                logger.warning(
                    f"[{asset}] {type(e).__name__} (attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                )

            if self._closed:
                break
            if attempt < self.max_retries:
                self._stats["retries"] += 1
                await self._delay(self.backoff_delay(attempt))

        self._stats["failed_fetches"] += 1
        logger.error(f"[{asset}] Giving up after {attempt + 1} attempts: {last_error}")
        raise last_error

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (0-based) failed attempt."""
        return min(self.BASE_BACKOFF_SECONDS * (2 ** attempt), self.max_backoff)

    async def close(self) -> None:
        """
        Close the HTTP session if this client created it.

        The client is unusable afterwards: an in-flight retry chain ends
        with NetworkError at its next attempt instead of opening a new
        session.
        """
        self._closed = True
        if self._session is None or not self._owns_session:
            return
        if not self._session.closed:
            await self._session.close()
        self._session = None

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _fetch_once(self, asset: str, url: str) -> HeatmapResponse:
        """Single attempt: request, status check, decode, validate."""
        if self._closed:
            raise NetworkError("Client closed", asset=asset, url=url)
        session = await self._get_session()
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        try:
            async with session.get(
                f"{self.base_url}/heatmap",
                params={"asset": asset},
                headers=headers,
            ) as response:
                if not 200 <= response.status < 300:
                    raise HttpError(
                        f"HTTP {response.status}: {response.reason}",
                        status_code=response.status,
                        asset=asset,
                        url=url,
                        reason=response.reason,
                    )
                data = await self._decode(response, asset)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"Request failed: {type(e).__name__}: {e}",
                asset=asset,
                url=url,
            ) from e

        return validate_response(data, asset=asset)

    async def _decode(self, response: aiohttp.ClientResponse, asset: str) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            raise ValidationError(
                f"Response body is not valid JSON: {e}",
                asset=asset,
            ) from e

    async def _delay(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
