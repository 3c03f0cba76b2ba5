"""Shared fixtures: in-memory store and scriptable health feed."""

import asyncio
from datetime import date
from typing import Callable, Optional

import pytest

from energylog.core.errors import ExternalFeedFailure, StorageFailure
from energylog.core.models import (
    ActivityLevel,
    CachedMeal,
    DailyNutrition,
    FoodEntry,
    Goal,
    Sex,
    UserProfile,
    WorkoutRecord,
)
from energylog.shell.health_feed import FeedNotifier


TODAY = date(2026, 3, 14)


class FakeStore:
    """Store kept in dictionaries. Set ``fail`` to make every call raise."""

    def __init__(self, profile: Optional[UserProfile] = None) -> None:
        self.profile = profile
        self.goals: dict[str, Goal] = {}
        self.entries: dict[date, dict[str, FoodEntry]] = {}
        self.days: dict[date, DailyNutrition] = {}
        self.meals: dict[str, CachedMeal] = {}
        self.fail = False
        self.saved_goals: list[Goal] = []

    def _check(self) -> None:
        if self.fail:
            raise StorageFailure("Storage is unavailable.")

    def fetch_user(self) -> Optional[UserProfile]:
        self._check()
        return self.profile

    def save_user(self, profile: UserProfile) -> None:
        self._check()
        self.profile = profile

    def fetch_active_goal(self) -> Optional[Goal]:
        self._check()
        return next((g for g in self.goals.values() if g.is_active), None)

    def save_goal(self, goal: Goal) -> None:
        self._check()
        if goal.is_active:
            for other in list(self.goals.values()):
                if other.id != goal.id and other.is_active:
                    self.goals[other.id] = other.model_copy(update={"is_active": False})
        self.goals[goal.id] = goal
        self.saved_goals.append(goal)

    def fetch_food_entries(self, log_date: date) -> list[FoodEntry]:
        self._check()
        return list(self.entries.get(log_date, {}).values())

    def save_food_entry(self, entry: FoodEntry, log_date: date) -> None:
        self._check()
        self.entries.setdefault(log_date, {})[entry.id] = entry

    def update_food_entry(self, entry: FoodEntry, log_date: date) -> None:
        self._check()
        self.entries.setdefault(log_date, {})[entry.id] = entry

    def delete_food_entry(self, entry_id: str, log_date: date) -> None:
        self._check()
        self.entries.get(log_date, {}).pop(entry_id, None)

    def fetch_daily_nutrition(self, log_date: date) -> Optional[DailyNutrition]:
        self._check()
        return self.days.get(log_date)

    def save_daily_nutrition(self, nutrition: DailyNutrition) -> None:
        self._check()
        self.days[nutrition.log_date] = nutrition

    def fetch_cached_meals(self) -> list[CachedMeal]:
        self._check()
        return sorted(self.meals.values(), key=lambda m: m.last_used, reverse=True)

    def save_cached_meal(self, meal: CachedMeal) -> None:
        self._check()
        self.meals[meal.id] = meal

    def delete_cached_meal(self, meal_id: str) -> None:
        self._check()
        self.meals.pop(meal_id, None)


class FakeFeed(FeedNotifier):
    """Health feed returning fixed values. Set ``error`` to make fetches raise.

    Each value queued in ``resting_delays`` delays one resting-energy fetch.
    """

    def __init__(
        self,
        resting: float = 1700.0,
        active: float = 500.0,
        weight: Optional[float] = 79.0,
        workouts: Optional[list[WorkoutRecord]] = None,
    ) -> None:
        super().__init__()
        self.resting = resting
        self.active = active
        self.weight = weight
        self.workouts = workouts or []
        self.error: Optional[Exception] = None
        self.authorize_calls = 0
        self.fetch_calls = 0
        self.resting_delays: list[float] = []

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def authorize(self) -> None:
        self.authorize_calls += 1
        self._check()

    async def fetch_active_energy(self, log_date: date) -> float:
        self.fetch_calls += 1
        self._check()
        return self.active

    async def fetch_resting_energy(self, log_date: date) -> float:
        if self.resting_delays:
            await asyncio.sleep(self.resting_delays.pop(0))
        self._check()
        return self.resting

    async def fetch_weight(self) -> Optional[float]:
        self._check()
        return self.weight

    async def fetch_workouts(self, log_date: date) -> list[WorkoutRecord]:
        self._check()
        return self.workouts


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        age=30,
        weight=80,
        height=180,
        sex=Sex.MALE,
        activity_level=ActivityLevel.MODERATELY_ACTIVE,
    )


@pytest.fixture
def store(profile) -> FakeStore:
    return FakeStore(profile)


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def failing_feed() -> FakeFeed:
    feed = FakeFeed()
    feed.error = ExternalFeedFailure("Could not reach your health data.")
    return feed


@pytest.fixture
def today() -> Callable[[], date]:
    return lambda: TODAY
