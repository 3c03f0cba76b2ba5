"""Tests for GoalService."""

import asyncio
import pytest
from datetime import date

from energylog.core.errors import (
    GoalNotFound,
    InvalidBodyMetric,
    StorageFailure,
    UnsafeWeightChangeRate,
    UserNotFound,
    ValidationError,
)
from energylog.core.models import GoalType
from energylog.shell.arbiter import EnergySourceArbiter
from energylog.shell.goals import GoalService


DAY = date(2026, 3, 14)


@pytest.fixture
def goals(store):
    return GoalService(store, today=lambda: DAY)


class TestCreateGoal:
    """Tests for create_goal."""

    def test_derives_targets(self, goals, store):
        """Targets come from the stored profile."""
        goal = asyncio.run(goals.create_goal(GoalType.LOSE_WEIGHT, weekly_weight_change=-0.5))
        assert goal.daily_calorie_target == pytest.approx(2209)
        assert goal.daily_protein_target == pytest.approx(128)
        assert store.fetch_active_goal().id == goal.id

    def test_unsafe_rate_rejected(self, goals, store):
        """-2.0 kg/week is rejected and nothing is saved."""
        with pytest.raises(UnsafeWeightChangeRate):
            asyncio.run(goals.create_goal(GoalType.LOSE_WEIGHT, weekly_weight_change=-2.0))
        assert store.saved_goals == []

    def test_requires_profile(self, goals, store):
        """Without a profile there is nothing to derive from."""
        store.profile = None
        with pytest.raises(UserNotFound):
            asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))

    def test_deactivates_previous(self, goals, store):
        """Only the newest goal stays active."""
        first = asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        second = asyncio.run(goals.create_goal(GoalType.GAIN_MUSCLE, weekly_weight_change=0.25))
        assert store.goals[first.id].is_active is False
        assert store.goals[second.id].is_active is True
        assert sum(g.is_active for g in store.goals.values()) == 1

    def test_measured_expenditure_used(self, feed, store):
        """A feed-measured total replaces the activity formula."""
        goals = GoalService(store, EnergySourceArbiter(feed, store), today=lambda: DAY)
        goal = asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        assert goal.daily_calorie_target == 2200

    def test_feed_down_uses_formula(self, failing_feed, store):
        """Without feed data the formula is used."""
        goals = GoalService(store, EnergySourceArbiter(failing_feed, store), today=lambda: DAY)
        goal = asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        assert goal.daily_calorie_target == pytest.approx(2759)

    def test_negative_water_rejected(self, goals):
        """Invalid fields are reported as ValidationError."""
        with pytest.raises(ValidationError) as exc:
            asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT, daily_water_target=-5))
        assert exc.value.field == "daily_water_target"

    def test_storage_failure_propagates(self, goals, store):
        """Storage errors reach the caller."""
        store.fail = True
        with pytest.raises(StorageFailure):
            asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))


class TestUpdateGoal:
    """Tests for update_goal and apply_edits."""

    def test_update_rederives(self, goals):
        """Changing the rate re-derives the calorie target."""
        asyncio.run(goals.create_goal(GoalType.LOSE_WEIGHT, weekly_weight_change=-0.25))
        goal = asyncio.run(goals.update_goal(weekly_weight_change=-0.5))
        assert goal.daily_calorie_target == pytest.approx(2209)

    def test_update_without_goal(self, goals):
        """Updating with no active goal fails."""
        with pytest.raises(GoalNotFound):
            asyncio.run(goals.update_goal(weekly_weight_change=-0.5))

    def test_unknown_field_rejected(self, goals):
        """Only goal parameters may be edited."""
        with pytest.raises(ValidationError):
            asyncio.run(goals.update_goal(daily_calorie_target=100))

    def test_apply_edits_creates_inferred_goal(self, goals):
        """Edits with no active goal create one planned from the target."""
        goal = asyncio.run(goals.apply_edits({
            "target_weight": 75,
            "target_date": date(2026, 5, 23),
        }))
        assert goal.goal_type is GoalType.LOSE_WEIGHT
        assert goal.weekly_weight_change == pytest.approx(-0.5)

    def test_apply_edits_updates_existing(self, goals):
        """Edits with an active goal update it in place."""
        created = asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        goal = asyncio.run(goals.apply_edits({"daily_water_target": 2500}))
        assert goal.id == created.id
        assert goal.daily_water_target == 2500

    def test_superseded_edits_not_saved(self, goals, store):
        """Edits overtaken while targets are derived are dropped."""
        created = asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        goal = asyncio.run(goals.apply_edits({"daily_water_target": 2500}, lambda: True))
        assert goal is None
        assert store.saved_goals == [created]
        assert store.fetch_active_goal().daily_water_target == 2000


class TestResetGoal:
    """Tests for reset_goal."""

    def test_deactivates(self, goals, store):
        """Reset leaves no active goal."""
        asyncio.run(goals.create_goal(GoalType.MAINTAIN_WEIGHT))
        reset = goals.reset_goal()
        assert reset.is_active is False
        assert store.fetch_active_goal() is None
        assert goals.active.value is None

    def test_nothing_to_reset(self, goals):
        """Reset with no goal returns None."""
        assert goals.reset_goal() is None


class TestUpdateWeight:
    """Tests for update_weight."""

    def test_saves_weight_and_rederives(self, goals, store):
        """New weight is stored and protein follows it."""
        asyncio.run(goals.create_goal(GoalType.LOSE_WEIGHT, weekly_weight_change=-0.5))
        goal = asyncio.run(goals.update_weight(75))
        assert store.profile.weight == 75
        assert goal.daily_protein_target == pytest.approx(120)

    def test_without_goal(self, goals, store):
        """Weight is saved even with no goal."""
        assert asyncio.run(goals.update_weight(78)) is None
        assert store.profile.weight == 78

    def test_invalid_weight(self, goals, store):
        """Out-of-range weight is rejected before saving."""
        with pytest.raises(InvalidBodyMetric):
            asyncio.run(goals.update_weight(0))
        assert store.profile.weight == 80
