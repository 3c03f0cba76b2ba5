"""Unit tests for data models - validation and defaults."""

import pytest
from datetime import date, datetime, timezone
from pydantic import ValidationError

from energylog.core.models import (
    ActivityLevel,
    CalorieBalance,
    DailyNutrition,
    EnergySample,
    EnergySource,
    FoodEntry,
    Goal,
    GoalType,
    Sex,
    SyncState,
    SyncStatus,
    UserProfile,
    WorkoutRecord,
)


class TestUserProfile:
    """Tests for UserProfile model."""

    def test_valid_profile(self):
        """Valid profile is created with metric units by default."""
        profile = UserProfile(
            age=30, weight=80, height=180, sex=Sex.MALE,
            activity_level=ActivityLevel.SEDENTARY,
        )
        assert profile.preferred_units.value == "metric"
        assert profile.created_at.tzinfo is not None

    def test_age_out_of_range_rejected(self):
        """Age of 150 is rejected."""
        with pytest.raises(ValidationError):
            UserProfile(age=150, weight=80, height=180, sex="male", activity_level="sedentary")

    def test_zero_weight_rejected(self):
        """Zero weight is rejected."""
        with pytest.raises(ValidationError):
            UserProfile(age=30, weight=0, height=180, sex="male", activity_level="sedentary")

    def test_enum_values_accepted_as_strings(self):
        """String enum values are coerced."""
        profile = UserProfile(age=30, weight=80, height=180, sex="other", activity_level="very_active")
        assert profile.sex is Sex.OTHER
        assert profile.activity_level is ActivityLevel.VERY_ACTIVE


class TestActivityLevel:
    """Tests for activity multipliers."""

    def test_multipliers(self):
        """Each level carries its fixed multiplier."""
        assert ActivityLevel.SEDENTARY.multiplier == 1.2
        assert ActivityLevel.LIGHTLY_ACTIVE.multiplier == 1.375
        assert ActivityLevel.MODERATELY_ACTIVE.multiplier == 1.55
        assert ActivityLevel.VERY_ACTIVE.multiplier == 1.725
        assert ActivityLevel.EXTREMELY_ACTIVE.multiplier == 1.9


class TestGoal:
    """Tests for Goal model."""

    def test_defaults(self):
        """New goal is active with the default water target."""
        goal = Goal(goal_type=GoalType.MAINTAIN_WEIGHT)
        assert goal.is_active is True
        assert goal.daily_water_target == 2000
        assert goal.target_weight is None
        assert goal.id is not None  # Auto-generated UUID

    def test_negative_water_target_rejected(self):
        """Negative water target is rejected."""
        with pytest.raises(ValidationError):
            Goal(goal_type=GoalType.MAINTAIN_WEIGHT, daily_water_target=-1)


class TestFoodEntry:
    """Tests for FoodEntry model."""

    def test_valid_entry(self):
        """Valid entry leaves unrecorded nutrients as None."""
        entry = FoodEntry(calories=250, protein=12)
        assert entry.protein == 12
        assert entry.carbs is None
        assert entry.fats is None
        assert entry.meal_type is None

    def test_recorded_zero_is_not_none(self):
        """A recorded zero stays distinct from an unrecorded nutrient."""
        entry = FoodEntry(calories=10, fats=0)
        assert entry.fats == 0
        assert entry.saturated_fats is None

    def test_calories_over_limit_rejected(self):
        """Calories above 10000 are rejected."""
        with pytest.raises(ValidationError):
            FoodEntry(calories=10001)

    def test_negative_calories_rejected(self):
        """Negative calories are rejected."""
        with pytest.raises(ValidationError):
            FoodEntry(calories=-5)

    def test_fats_over_limit_rejected(self):
        """Fats above 500 g are rejected."""
        with pytest.raises(ValidationError):
            FoodEntry(calories=100, fats=501)

    def test_saturated_fats_above_fats_rejected(self):
        """Saturated fats may not exceed total fats."""
        with pytest.raises(ValidationError):
            FoodEntry(calories=100, fats=10, saturated_fats=12)

    def test_saturated_fats_without_fats_allowed(self):
        """Saturated fats alone are accepted when total fats are unknown."""
        entry = FoodEntry(calories=100, saturated_fats=3)
        assert entry.saturated_fats == 3

    def test_long_notes_rejected(self):
        """Notes longer than 500 characters are rejected."""
        with pytest.raises(ValidationError):
            FoodEntry(calories=100, notes="x" * 501)

    def test_unique_ids(self):
        """Each entry gets a unique ID."""
        assert FoodEntry(calories=1).id != FoodEntry(calories=1).id


class TestDailyNutrition:
    """Tests for DailyNutrition model."""

    def test_defaults(self):
        """Empty day has zero totals and default targets."""
        day = DailyNutrition(log_date=date(2026, 1, 5))
        assert day.entries == []
        assert day.total_calories == 0
        assert day.calorie_target == 2000
        assert day.protein_target == 100
        assert day.water_target == 2000


class TestEnergySample:
    """Tests for EnergySample model."""

    def test_is_external(self):
        """Source tag decides is_external."""
        sample = EnergySample(
            log_date=date(2026, 1, 5), resting_energy=1700, active_energy=400,
            source=EnergySource.EXTERNAL,
        )
        assert sample.is_external is True

    def test_frozen(self):
        """Samples cannot be mutated."""
        sample = EnergySample(
            log_date=date(2026, 1, 5), resting_energy=1700, active_energy=400,
            source=EnergySource.CALCULATED,
        )
        with pytest.raises(ValidationError):
            sample.resting_energy = 1


class TestCalorieBalance:
    """Tests for CalorieBalance description."""

    def _balance(self, value):
        return CalorieBalance(
            log_date=date(2026, 1, 5), calories_consumed=0, resting_energy_burned=0,
            active_energy_burned=0, total_energy_expended=0, balance=value,
            is_from_external_feed=False,
        )

    def test_surplus(self):
        """Positive balance is a surplus."""
        assert self._balance(120).description == "Caloric Surplus"

    def test_deficit(self):
        """Negative balance is a deficit."""
        assert self._balance(-120).description == "Caloric Deficit"

    def test_balanced(self):
        """Zero balance is balanced."""
        assert self._balance(0).description == "Balanced"


class TestSyncStatus:
    """Tests for SyncStatus constructors."""

    def test_succeeded_carries_timestamp(self):
        """Succeeded status keeps the given timestamp."""
        ts = datetime(2026, 1, 5, 12, tzinfo=timezone.utc)
        status = SyncStatus.succeeded(ts)
        assert status.state is SyncState.SUCCEEDED
        assert status.timestamp == ts

    def test_failed_carries_error(self):
        """Failed status keeps the error message."""
        status = SyncStatus.failed("boom")
        assert status.state is SyncState.FAILED
        assert status.error == "boom"


class TestWorkoutRecord:
    """Tests for WorkoutRecord model."""

    def test_duration(self):
        """Duration is end minus start in seconds."""
        workout = WorkoutRecord(
            workout_type="running",
            start=datetime(2026, 1, 5, 7, 0, tzinfo=timezone.utc),
            end=datetime(2026, 1, 5, 7, 45, tzinfo=timezone.utc),
            total_energy_burned=420,
        )
        assert workout.duration_seconds == 45 * 60
