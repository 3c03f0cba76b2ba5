"""Goal Service - create, update, reset and re-derive the active goal.

Every write re-derives the goal's daily targets from the stored profile and,
when the health feed can provide it, the measured total expenditure. Goal
parameters are checked against the safety bounds before anything is saved.
"""

import logging
from datetime import date
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.errors import GoalNotFound, UserNotFound, ValidationError
from ..core.models import Goal, GoalType, UserProfile, utcnow
from ..core.observable import ObservableValue
from ..core.targets import (
    DEFAULT_WATER_TARGET_ML,
    apply_targets,
    infer_goal_type,
    validate_body_metrics,
    validate_goal,
    weekly_change_for_target,
)
from .arbiter import EnergySourceArbiter
from .store import Store


logger = logging.getLogger(__name__)

# Goal parameters a user may edit
GOAL_FIELDS = (
    "goal_type",
    "target_weight",
    "target_date",
    "weekly_weight_change",
    "daily_water_target",
)


def check_goal_fields(changes: dict[str, Any]) -> None:
    """Reject edits to anything other than the editable goal parameters."""
    unknown = sorted(set(changes) - set(GOAL_FIELDS))
    if unknown:
        raise ValidationError(unknown[0], f"{unknown[0]} is not an editable goal field")


def _build_goal(**fields: Any) -> Goal:
    try:
        return Goal(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else "goal"
        raise ValidationError(field, f"Invalid {field}: {first['msg']}") from e


class GoalService:
    """Entry points for goal writes and weight updates."""

    def __init__(
        self,
        store: Store,
        arbiter: Optional[EnergySourceArbiter] = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._arbiter = arbiter
        self._today = today
        self.active: ObservableValue[Optional[Goal]] = ObservableValue(None)

    def _require_profile(self) -> UserProfile:
        profile = self._store.fetch_user()
        if profile is None:
            raise UserNotFound()
        return profile

    def _validate(self, goal: Goal) -> None:
        validate_goal(
            goal.goal_type,
            goal.weekly_weight_change,
            goal.target_weight,
            goal.target_date,
            today=self._today(),
        )

    async def _measured_expenditure(self) -> Optional[float]:
        if self._arbiter is None:
            return None
        return await self._arbiter.total_energy_expended(self._today())

    async def _derive_and_save(
        self,
        goal: Goal,
        profile: UserProfile,
        superseded: Optional[Callable[[], bool]] = None,
    ) -> Optional[Goal]:
        goal = apply_targets(goal, profile, await self._measured_expenditure())
        if superseded is not None and superseded():
            logger.debug("Skipping save of superseded goal %s", goal.id[:8])
            return None
        self._store.save_goal(goal)
        logger.info(
            "Saved %s goal: %.0f kcal, %.0f g protein",
            goal.goal_type.value,
            goal.daily_calorie_target,
            goal.daily_protein_target,
        )
        self.active.publish(goal)
        return goal

    def get_goal(self) -> Optional[Goal]:
        return self._store.fetch_active_goal()

    async def create_goal(
        self,
        goal_type: GoalType,
        *,
        weekly_weight_change: float = 0.0,
        target_weight: Optional[float] = None,
        target_date: Optional[date] = None,
        daily_water_target: float = DEFAULT_WATER_TARGET_ML,
        superseded: Optional[Callable[[], bool]] = None,
    ) -> Optional[Goal]:
        """Create and activate a goal, deactivating the previous one.

        Args:
            goal_type: Type of goal
            weekly_weight_change: kg/week, negative for loss
            target_weight: Optional target weight in kg
            target_date: Optional date the target should be reached by
            daily_water_target: Water target in ml
            superseded: Checked after the feed is read; when it returns True
                nothing is saved

        Returns:
            The saved goal with derived targets, or None if superseded

        Raises:
            ValidationError: Field of the wrong type or range
            UnsafeGoalParameter: Parameters outside the safety bounds
            UserNotFound: No profile to derive targets from
            StorageFailure: Goal not saved
        """
        goal = _build_goal(
            goal_type=goal_type,
            weekly_weight_change=weekly_weight_change,
            target_weight=target_weight,
            target_date=target_date,
            daily_water_target=daily_water_target,
        )
        self._validate(goal)
        profile = self._require_profile()
        return await self._derive_and_save(goal, profile, superseded)

    async def update_goal(
        self,
        *,
        superseded: Optional[Callable[[], bool]] = None,
        **changes: Any,
    ) -> Optional[Goal]:
        """Change parameters of the active goal and re-derive its targets.

        Raises:
            GoalNotFound: No active goal
            ValidationError, UnsafeGoalParameter, UserNotFound, StorageFailure
        """
        check_goal_fields(changes)
        current = self._store.fetch_active_goal()
        if current is None:
            raise GoalNotFound()

        fields = current.model_dump()
        fields.update(changes)
        goal = _build_goal(**fields)
        self._validate(goal)
        profile = self._require_profile()
        return await self._derive_and_save(goal, profile, superseded)

    async def apply_edits(
        self,
        changes: dict[str, Any],
        superseded: Optional[Callable[[], bool]] = None,
    ) -> Optional[Goal]:
        """Apply a batch of edits, creating a goal if none is active.

        A new goal without an explicit type is inferred from the target
        weight, and without an explicit rate the rate is planned from the
        target date.
        """
        check_goal_fields(changes)
        if self._store.fetch_active_goal() is not None:
            return await self.update_goal(superseded=superseded, **changes)

        profile = self._require_profile()
        target_weight = changes.get("target_weight")
        target_date = changes.get("target_date")

        goal_type = changes.get("goal_type")
        if goal_type is None:
            if target_weight is not None:
                goal_type = infer_goal_type(profile.weight, target_weight)
            else:
                goal_type = GoalType.MAINTAIN_WEIGHT

        weekly = changes.get("weekly_weight_change")
        if weekly is None:
            weekly = 0.0
            if target_weight is not None and target_date is not None:
                weekly = weekly_change_for_target(profile.weight, target_weight, target_date, self._today())

        return await self.create_goal(
            goal_type,
            weekly_weight_change=weekly,
            target_weight=target_weight,
            target_date=target_date,
            daily_water_target=changes.get("daily_water_target", DEFAULT_WATER_TARGET_ML),
            superseded=superseded,
        )

    def reset_goal(self) -> Optional[Goal]:
        """Deactivate the active goal without replacing it.

        Returns:
            The deactivated goal, or None if nothing was active
        """
        current = self._store.fetch_active_goal()
        if current is None:
            return None
        goal = current.model_copy(update={"is_active": False, "updated_at": utcnow()})
        self._store.save_goal(goal)
        logger.info("Deactivated goal %s", goal.id[:8])
        self.active.publish(None)
        return goal

    async def update_weight(
        self,
        weight: float,
        superseded: Optional[Callable[[], bool]] = None,
    ) -> Optional[Goal]:
        """Persist a new body weight and re-derive the active goal.

        Returns:
            The re-derived goal, or None if no goal is active or a newer
            weight superseded this one

        Raises:
            InvalidBodyMetric: Weight out of range
            UserNotFound: No profile to update
        """
        profile = self._require_profile()
        validate_body_metrics(profile.age, weight, profile.height)

        profile = profile.model_copy(update={"weight": weight, "updated_at": utcnow()})
        self._store.save_user(profile)
        logger.info("Weight updated to %.1f kg", weight)

        current = self._store.fetch_active_goal()
        if current is None:
            return None
        return await self._derive_and_save(current, profile, superseded)

    async def recalculate(self) -> Optional[Goal]:
        """Re-derive the active goal's targets from the current inputs."""
        current = self._store.fetch_active_goal()
        if current is None:
            return None
        return await self._derive_and_save(current, self._require_profile())
