"""Sync Controller - periodic and manual re-evaluation of the balance.

State machine: idle -> syncing -> succeeded | failed -> idle. Every reported
result is immediately followed by idle, so subscribers see the outcome and
then the resting state. Failures are not sticky and nothing is retried.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from ..core.errors import EnergyLogError
from ..core.models import CalorieBalance, SyncStatus, utcnow
from ..core.observable import ObservableValue
from .tracker import BalanceTracker


logger = logging.getLogger(__name__)


class SyncController:
    """Drives BalanceTracker recomputes on a fixed interval or on demand."""

    def __init__(
        self,
        tracker: BalanceTracker,
        *,
        interval: float = 300.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the controller.

        Args:
            tracker: Tracker whose recompute path each tick runs
            interval: Seconds between ticks
            clock: Source of success timestamps
        """
        self._tracker = tracker
        self._interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self.status: ObservableValue[SyncStatus] = ObservableValue(SyncStatus.idle())
        self.last_result: Optional[SyncStatus] = None

    @property
    def is_running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def subscribe(self, callback: Callable[[SyncStatus], None]) -> Callable[[], None]:
        return self.status.subscribe(callback)

    def start(self) -> None:
        """Begin ticking on the running event loop. No-op if already running."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop_event))
        logger.info("Sync started, every %.0fs", self._interval)

    def stop(self) -> None:
        """Stop scheduling ticks. A tick already in flight runs to completion."""
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._task = None
        self.status.publish(SyncStatus.idle())
        logger.info("Sync stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    def _report(self, result: SyncStatus) -> None:
        self.last_result = result
        self.status.publish(result)
        self.status.publish(SyncStatus.idle())

    async def tick(self) -> SyncStatus:
        """Run one background recompute. Never raises.

        Feed failures are already replaced by the calculated fallback, so a
        failed tick means the balance itself could not be composed.
        """
        self.status.publish(SyncStatus.syncing())
        try:
            await self._tracker.recompute()
        except EnergyLogError as e:
            logger.warning("Sync tick failed: %s", e.message)
            result = SyncStatus.failed(e.message)
        except Exception as e:
            logger.exception("Sync tick crashed")
            result = SyncStatus.failed(str(e))
        else:
            result = SyncStatus.succeeded(self._clock())
        self._report(result)
        return result

    async def manual_refresh(self) -> CalorieBalance:
        """Refresh workouts and the balance, surfacing feed failures.

        Returns:
            The freshly published balance

        Raises:
            ExternalFeedFailure: If the health feed fails
            StorageFailure: If the day's nutrition cannot be loaded or saved
        """
        self.status.publish(SyncStatus.syncing())
        try:
            await self._tracker.sync_workouts()
            balance = await self._tracker.recompute(surface_failures=True)
        except EnergyLogError as e:
            logger.warning("Manual refresh failed: %s", e.message)
            self._report(SyncStatus.failed(e.message))
            raise
        self._report(SyncStatus.succeeded(self._clock()))
        return balance
