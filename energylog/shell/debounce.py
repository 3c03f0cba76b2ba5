"""Debounced goal edits.

A burst of edits to goal parameters (or, on a separate timer, to body weight)
is coalesced into one write after the edits stop for a fixed delay. A new
edit cancels the timer that has not fired yet. Commits run one at a time,
and a commit that a newer edit overtakes while it waits on the health feed
hands its fields back to the next batch instead of saving, so a superseded
batch is never written.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..core.errors import EnergyLogError
from ..core.models import Goal
from ..core.observable import ObservableValue
from ..core.targets import validate_weight
from .goals import GoalService, check_goal_fields


logger = logging.getLogger(__name__)


class Debouncer:
    """Cancellable delayed call of an async action."""

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._action = action
        self._timer: Optional[asyncio.Task] = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a scheduled call has not fired yet."""
        return self._timer is not None

    def schedule(self) -> None:
        """(Re)start the delay. Must be called from a running event loop."""
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._fire_later())
        self._timer = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def cancel(self) -> None:
        """Drop the scheduled call if it has not fired."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        # Past this point the call is no longer cancellable
        self._timer = None
        await self._action()

    async def flush(self) -> None:
        """Fire a pending call now, then wait for any call already firing."""
        if self._timer is not None:
            self.cancel()
            await self._action()
        firing = [t for t in self._running if not t.done()]
        if firing:
            await asyncio.gather(*firing, return_exceptions=True)


class GoalEditDebouncer:
    """Coalesces goal and weight edits into single persisted writes."""

    def __init__(self, goals: GoalService, *, delay: float = 0.5, weight_delay: float = 0.3) -> None:
        """Initialize the debouncer.

        Args:
            goals: Service that validates, re-derives and saves the goal
            delay: Quiescence window for goal parameter edits, in seconds
            weight_delay: Quiescence window for weight edits, in seconds
        """
        self._goals = goals
        self._changes: dict[str, Any] = {}
        self._weight: Optional[float] = None
        self._goal_generation = 0
        self._weight_generation = 0
        self._commit_lock = asyncio.Lock()
        self._goal_timer = Debouncer(delay, self._commit_goal)
        self._weight_timer = Debouncer(weight_delay, self._commit_weight)

        self.committed: ObservableValue[Optional[Goal]] = ObservableValue(None)
        self.last_error: ObservableValue[Optional[str]] = ObservableValue(None)

    @property
    def pending(self) -> bool:
        return self._goal_timer.pending or self._weight_timer.pending

    @property
    def pending_changes(self) -> dict[str, Any]:
        return dict(self._changes)

    def edit(self, **changes: Any) -> None:
        """Queue goal parameter edits. Later edits of a field replace earlier ones.

        Raises:
            ValidationError: A field that is not a goal parameter
        """
        check_goal_fields(changes)
        self._changes.update(changes)
        self._goal_generation += 1
        self._goal_timer.schedule()

    def edit_weight(self, weight: float) -> None:
        """Queue a body weight edit.

        Raises:
            InvalidBodyMetric: Weight out of range; nothing is queued
        """
        validate_weight(weight)
        self._weight = weight
        self._weight_generation += 1
        self._weight_timer.schedule()

    async def _commit_goal(self) -> None:
        async with self._commit_lock:
            changes, self._changes = self._changes, {}
            if not changes:
                return
            generation = self._goal_generation

            def superseded() -> bool:
                return self._goal_generation != generation

            logger.debug("Committing goal edits: %s", sorted(changes))
            try:
                goal = await self._goals.apply_edits(changes, superseded)
            except EnergyLogError as e:
                logger.warning("Goal edits not saved: %s", e.message)
                self.last_error.publish(e.message)
                return
            if goal is None:
                # Newer edits win field by field
                self._changes = {**changes, **self._changes}
                return
            self.last_error.publish(None)
            self.committed.publish(goal)

    async def _commit_weight(self) -> None:
        async with self._commit_lock:
            weight, self._weight = self._weight, None
            if weight is None:
                return
            generation = self._weight_generation

            def superseded() -> bool:
                return self._weight_generation != generation

            logger.debug("Committing weight edit: %.1f kg", weight)
            try:
                goal = await self._goals.update_weight(weight, superseded)
            except EnergyLogError as e:
                logger.warning("Weight edit not saved: %s", e.message)
                self.last_error.publish(e.message)
                return
            self.last_error.publish(None)
            if goal is not None:
                self.committed.publish(goal)

    async def flush(self) -> None:
        """Write any pending edits immediately."""
        await self._goal_timer.flush()
        await self._weight_timer.flush()

    def cancel(self) -> None:
        """Discard pending edits without writing them."""
        self._goal_timer.cancel()
        self._weight_timer.cancel()
        self._changes = {}
        self._weight = None
