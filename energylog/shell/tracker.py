"""Balance Tracker - the continuously observable calorie balance.

Combines the tracked day's food total with the latest energy sample for the
same day. Food-entry changes recompose against the cached sample without any
I/O; sync ticks, manual refreshes and feed notifications fetch a new sample.
"""

import asyncio
import logging
from datetime import date
from typing import Callable, Optional

from ..core.energy import calculate_balance
from ..core.errors import EnergyLogError
from ..core.models import CalorieBalance, DailyNutrition, EnergySample
from ..core.observable import ObservableValue
from .arbiter import EnergySourceArbiter
from .health_feed import FeedChange, HealthFeed
from .nutrition_log import NutritionLog


logger = logging.getLogger(__name__)


class BalanceTracker:
    """Publishes the current CalorieBalance whenever an input changes."""

    def __init__(
        self,
        arbiter: EnergySourceArbiter,
        nutrition_log: NutritionLog,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the tracker.

        Args:
            arbiter: Source of the day's energy sample
            nutrition_log: Source of the day's food totals
            today: Clock used when no date is pinned
        """
        self._arbiter = arbiter
        self._nutrition_log = nutrition_log
        self._today = today
        self._pinned: Optional[date] = None
        self._sample: Optional[EnergySample] = None
        self._pending: set[asyncio.Task] = set()

        self.current: ObservableValue[Optional[CalorieBalance]] = ObservableValue(None)
        nutrition_log.changes.subscribe(self._on_nutrition_changed, replay=False)

    @property
    def tracked_date(self) -> date:
        """Pinned date, or today."""
        return self._pinned or self._today()

    def track(self, log_date: Optional[date]) -> None:
        """Pin the tracked date. None follows the calendar."""
        self._pinned = log_date

    def subscribe(self, callback: Callable[[Optional[CalorieBalance]], None]) -> Callable[[], None]:
        return self.current.subscribe(callback)

    def _consumed(self, log_date: date) -> float:
        return self._nutrition_log.for_date(log_date).nutrition.total_calories

    async def recompute(self, *, surface_failures: bool = False) -> CalorieBalance:
        """Fetch a fresh sample for the tracked date and publish the balance.

        Args:
            surface_failures: Raise feed failures instead of falling back

        Raises:
            ExternalFeedFailure: Only when surface_failures is set
            StorageFailure: If the day's nutrition cannot be loaded
        """
        log_date = self.tracked_date
        sample = await self._arbiter.sample_for(log_date, surface_failures=surface_failures)
        balance = calculate_balance(log_date, self._consumed(log_date), sample)

        # A sample for a day no longer tracked must not overwrite the current one
        if log_date == self.tracked_date:
            self._sample = sample
            self.current.publish(balance)
            logger.debug("Balance for %s: %.0f kcal", log_date, balance.balance)
        return balance

    async def get_balance_for_date(self, log_date: date) -> CalorieBalance:
        """One-shot balance for any day; the tracked balance is not touched."""
        sample = await self._arbiter.sample_for(log_date)
        return calculate_balance(log_date, self._consumed(log_date), sample)

    async def sync_workouts(self, log_date: Optional[date] = None) -> Optional[float]:
        """Record the feed's workout calories as the day's exercise calories.

        Returns:
            kcal recorded, or None if the feed had no workout data
        """
        log_date = log_date or self.tracked_date
        calories = await self._arbiter.workout_calories(log_date)
        if calories is None:
            return None
        self._nutrition_log.update_exercise_calories(log_date, calories)
        return calories

    def _on_nutrition_changed(self, nutrition: Optional[DailyNutrition]) -> None:
        if nutrition is None or nutrition.log_date != self.tracked_date:
            return

        sample = self._sample
        if sample is not None and sample.log_date == nutrition.log_date:
            self.current.publish(calculate_balance(nutrition.log_date, nutrition.total_calories, sample))
        else:
            self.schedule_recompute()

    def watch_feed(self, feed: HealthFeed) -> Callable[[], None]:
        """Recompute whenever the feed reports new data."""

        def on_change(kind: FeedChange) -> None:
            logger.debug("Recomputing after %s change", kind.value)
            self.schedule_recompute()

        return feed.subscribe(on_change)

    def schedule_recompute(self) -> Optional[asyncio.Task]:
        """Queue a background recompute on the running loop, if there is one."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; recompute left to the next tick")
            return None

        task = loop.create_task(self._recompute_in_background())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _recompute_in_background(self) -> None:
        try:
            await self.recompute()
        except EnergyLogError as e:
            logger.warning("Background recompute failed: %s", e.message)

    async def drain(self) -> None:
        """Wait for queued background recomputes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
