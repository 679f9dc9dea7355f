"""
Polling Controller - Owns refresh cadence, view state and lifecycle.

============================================================
LIFECYCLE
============================================================

IDLE --start()--> LOADING --> READY | ERRORED --> LOADING --> ...
any --stop()--> STOPPED (terminal)

============================================================
CYCLES
============================================================

One cycle: loading=True -> batch acquire -> transform each response ->
publish a new PollState in a single swap.

- Cycles are serialized. A scheduled tick that fires while a cycle is in
  flight is skipped; refresh_now() joins the in-flight cycle.
- Individual asset failures never fail a cycle. An all-failed batch is a
  READY cycle with empty data.
- An asset whose response cannot be transformed is dropped from the
  cycle; the cycle still succeeds.
- Only an unexpected exception from the pipeline itself produces an
  ERRORED cycle.
- After stop(), nothing is published, including results of a cycle that
  was already in flight.

============================================================
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .acquirer import BatchAcquirer, BatchResult
from .base import BaseHeatmapClient
from .config import HeatmapConfig, create_client, normalize_assets
from .exceptions import ControllerStoppedError, TransformError
from .models import HeatmapAsset, HeatmapResponse, PollPhase, PollState
from .transformer import transform_response


logger = logging.getLogger(__name__)


StateCallback = Callable[[PollState], None]
Transformer = Callable[[HeatmapResponse], HeatmapAsset]


class PollingController:
    """
    Drives repeated acquisition for one set of assets.

    Each instance owns its own PollState; observers receive every new
    snapshot through subscribe() and can never mutate it.

    Usage:
        controller = PollingController(MockHeatmapClient())
        unsubscribe = controller.subscribe(render)

        await controller.start(["USOIL", "EUR"], interval_ms=60_000)
        ...
        await controller.stop()
    """

    def __init__(
        self,
        client: BaseHeatmapClient,
        transformer: Optional[Transformer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        assets: Optional[list[str]] = None,
        interval_ms: int = 0,
    ) -> None:
        self._client = client
        self._acquirer = BatchAcquirer(client)
        self._transform = transformer or transform_response
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._assets: list[str] = normalize_assets(assets)
        self._interval_ms = interval_ms

        self._state = PollState()
        self._observers: list[StateCallback] = []
        self._started = False
        self._stopped = False

        self._schedule_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._last_batch: Optional[BatchResult] = None

        # Statistics
        self._stats = {
            "cycles_started": 0,
            "cycles_completed": 0,
            "cycles_errored": 0,
            "cycles_discarded": 0,
            "ticks_skipped": 0,
            "assets_dropped": 0,
        }

    @classmethod
    def from_config(
        cls,
        config: HeatmapConfig,
        client: Optional[BaseHeatmapClient] = None,
    ) -> "PollingController":
        """Build a controller (and its client) from configuration."""
        return cls(
            client=client or create_client(config),
            assets=config.assets,
            interval_ms=config.refresh_interval_ms,
        )

    # ─────────────────────────────────────────────────────────────
    # Read-only view
    # ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def client(self) -> BaseHeatmapClient:
        return self._client

    @property
    def phase(self) -> PollPhase:
        return self._state.phase

    @property
    def assets(self) -> list[str]:
        return list(self._assets)

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    @property
    def is_cycle_in_flight(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    @property
    def last_batch(self) -> Optional[BatchResult]:
        """Per-asset outcomes of the most recently completed cycle."""
        return self._last_batch

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """
        Register an observer.

        The callback is invoked immediately with the current state and then
        with every new snapshot. Returns a function that unsubscribes it.
        """
        self._observers.append(callback)
        self._notify(callback, self._state)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    # ─────────────────────────────────────────────────────────────
    # Control
    # ─────────────────────────────────────────────────────────────

    async def start(
        self,
        assets: Optional[list[str]] = None,
        interval_ms: Optional[int] = None,
    ) -> None:
        """
        Begin polling.

        Triggers an immediate cycle and, when ``interval_ms > 0``, schedules
        recurring cycles at that fixed period. Returns without waiting for
        the first cycle; use wait_for_cycle() for that.
        """
        if self._stopped:
            raise ControllerStoppedError("Controller has been stopped")
        if self._started:
            logger.warning("Controller already started")
            return

        if assets is not None:
            self._assets = normalize_assets(assets)
        if interval_ms is not None:
            self._interval_ms = interval_ms
        if self._interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")
        self._started = True

        self._publish(replace(self._state, loading=True, error=None, phase=PollPhase.LOADING))
        self._launch_cycle()

        if self._interval_ms > 0:
            self._schedule_task = asyncio.create_task(
                self._schedule_loop(self._interval_ms / 1000),
                name="heatmap-schedule",
            )

        logger.info(
            f"Started polling {len(self._assets)} assets "
            f"(interval: {self._interval_ms}ms)"
        )

    async def stop(self) -> None:
        """
        Stop polling. Terminal.

        The schedule is cancelled before this returns. A cycle already in
        flight runs to completion but its result is discarded.
        """
        if self._stopped:
            return

        self._publish(replace(self._state, loading=False, phase=PollPhase.STOPPED))
        self._stopped = True

        if self._schedule_task:
            self._schedule_task.cancel()
            try:
                await self._schedule_task
            except asyncio.CancelledError:
                pass
            self._schedule_task = None

        self._observers.clear()
        logger.info("Stopped polling")

    async def refresh_now(self) -> PollState:
        """
        Run one cycle outside the schedule and return the resulting state.

        Joins the in-flight cycle if there is one.
        """
        if self._stopped:
            raise ControllerStoppedError("Controller has been stopped")

        task = self._launch_cycle()
        await asyncio.shield(task)
        return self._state

    async def wait_for_cycle(self) -> None:
        """Wait for the in-flight cycle, if any, to finish."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    def get_stats(self) -> dict[str, Any]:
        """Get controller statistics."""
        return {
            **self._stats,
            "phase": self._state.phase.value,
            "assets": list(self._assets),
            "interval_ms": self._interval_ms,
            "observers": len(self._observers),
            "client": self._client.get_stats(),
        }

    async def __aenter__(self) -> "PollingController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    def _launch_cycle(self) -> asyncio.Task:
        if self.is_cycle_in_flight:
            return self._cycle_task
        self._cycle_task = asyncio.create_task(self._run_cycle(), name="heatmap-cycle")
        return self._cycle_task

    async def _schedule_loop(self, interval_seconds: float) -> None:
        """Fire a cycle every interval, skipping ticks while one is running."""
        while not self._stopped:
            await asyncio.sleep(interval_seconds)
            if self._stopped:
                break
            if self.is_cycle_in_flight:
                self._stats["ticks_skipped"] += 1
                logger.debug("Skipping scheduled refresh: cycle still in flight")
                continue
            self._launch_cycle()

    async def _run_cycle(self) -> None:
        if self._stopped:
            return

        self._stats["cycles_started"] += 1
        self._publish(replace(self._state, loading=True, error=None, phase=PollPhase.LOADING))

        try:
            batch = await self._acquirer.acquire(list(self._assets))
            data = self._transform_batch(batch)
        except Exception as e:
            if self._stopped:
                self._stats["cycles_discarded"] += 1
                return
            message = str(e) or type(e).__name__
            logger.error(f"Refresh cycle failed: {message}")
            self._stats["cycles_errored"] += 1
            self._publish(replace(
                self._state,
                loading=False,
                error=message,
                phase=PollPhase.ERRORED,
            ))
            return

        if self._stopped:
            self._stats["cycles_discarded"] += 1
            logger.debug("Discarding cycle result: controller stopped")
            return

        self._last_batch = batch
        self._stats["cycles_completed"] += 1
        self._publish(PollState(
            data=tuple(data),
            loading=False,
            error=None,
            last_updated=self._clock(),
            phase=PollPhase.READY,
        ))
        logger.info(f"Refresh cycle complete: {len(data)}/{len(self._assets)} assets")

    def _transform_batch(self, batch: BatchResult) -> list[HeatmapAsset]:
        data: list[HeatmapAsset] = []
        for response in batch.responses:
            try:
                data.append(self._transform(response))
            except TransformError as e:
                self._stats["assets_dropped"] += 1
                logger.warning(f"[{response.asset}] Dropped from cycle: {e}")
        return data

    def _publish(self, state: PollState) -> None:
        if self._stopped:
            return
        self._state = state
        for callback in list(self._observers):
            self._notify(callback, state)

    @staticmethod
    def _notify(callback: StateCallback, state: PollState) -> None:
        try:
            callback(state)
        except Exception as e:
            logger.error(f"State observer failed: {e}")
