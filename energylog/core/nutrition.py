"""Nutrition Aggregator - totals, validation and grouping for a day's entries.

The module-level functions are pure. NutritionAggregator owns one day's
DailyNutrition and serializes mutations so that every published snapshot has
totals equal to a fresh fold over its entries.
"""

import threading
from datetime import date
from typing import Any, Callable, NamedTuple, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import (
    DailyNutrition,
    DailyNutritionSummary,
    FoodEntry,
    Goal,
    MealType,
    utcnow,
)
from .observable import ObservableValue


DEFAULT_CALORIE_TARGET = 2000.0
DEFAULT_PROTEIN_TARGET = 100.0
DEFAULT_WATER_TARGET = 2000.0

# Called with (previous, new) snapshot before the new one is published
Persist = Callable[[DailyNutrition, DailyNutrition], None]


class NutrientTotals(NamedTuple):
    calories: float
    protein: float
    carbs: float
    fats: float
    saturated_fats: float


def _amount(value: Optional[float]) -> float:
    """Contribution of an optional nutrient to a total."""
    return 0.0 if value is None else value


# ==================== Validation ====================


def _as_validation_error(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0]
    field = str(first["loc"][0]) if first["loc"] else "entry"
    return ValidationError(field, f"Invalid {field}: {first['msg']}")


def new_food_entry(**fields: Any) -> FoodEntry:
    """Build a FoodEntry, reporting the first offending field on failure.

    Raises:
        ValidationError: If any field is outside its bounds
    """
    try:
        return FoodEntry(**fields)
    except PydanticValidationError as e:
        raise _as_validation_error(e) from e


def check_entry(entry: FoodEntry) -> FoodEntry:
    """Re-validate an entry that may have been built without validation.

    Copies made with ``model_copy(update=...)`` or ``model_construct`` skip
    field checks, so every mutation path calls this first.

    Raises:
        ValidationError: If any field is outside its bounds
    """
    try:
        return FoodEntry.model_validate(entry.model_dump())
    except PydanticValidationError as e:
        raise _as_validation_error(e) from e


# ==================== Totals ====================


def calculate_totals(entries: list[FoodEntry]) -> NutrientTotals:
    """Sum every nutrient over ``entries``.

    Args:
        entries: Food entries for a day

    Returns:
        NutrientTotals, zero for an empty list
    """
    return NutrientTotals(
        calories=sum(e.calories for e in entries),
        protein=sum(_amount(e.protein) for e in entries),
        carbs=sum(_amount(e.carbs) for e in entries),
        fats=sum(_amount(e.fats) for e in entries),
        saturated_fats=sum(_amount(e.saturated_fats) for e in entries),
    )


def recalculate(nutrition: DailyNutrition) -> DailyNutrition:
    """Return a copy with every cached total refolded from the entries."""
    totals = calculate_totals(nutrition.entries)
    return nutrition.model_copy(update={
        "total_calories": totals.calories,
        "total_protein": totals.protein,
        "total_carbs": totals.carbs,
        "total_fats": totals.fats,
        "total_saturated_fats": totals.saturated_fats,
        "net_calories": totals.calories - nutrition.exercise_calories_burned,
    })


def new_daily_nutrition(
    log_date: date,
    goal: Optional[Goal] = None,
    entries: Optional[list[FoodEntry]] = None,
) -> DailyNutrition:
    """Create a day with targets copied from ``goal`` (defaults without one)."""
    if goal is not None:
        targets = {
            "calorie_target": goal.daily_calorie_target,
            "protein_target": goal.daily_protein_target,
            "water_target": goal.daily_water_target,
        }
    else:
        targets = {
            "calorie_target": DEFAULT_CALORIE_TARGET,
            "protein_target": DEFAULT_PROTEIN_TARGET,
            "water_target": DEFAULT_WATER_TARGET,
        }

    nutrition = DailyNutrition(log_date=log_date, entries=list(entries or []), **targets)
    return recalculate(nutrition)


# ==================== Grouping & Progress ====================


def entries_by_meal_type(entries: list[FoodEntry]) -> dict[MealType, list[FoodEntry]]:
    """Group entries by meal; untagged entries count as snacks."""
    grouped: dict[MealType, list[FoodEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.meal_type or MealType.SNACK, []).append(entry)
    return grouped


def calories_by_meal_type(entries: list[FoodEntry]) -> dict[MealType, float]:
    return {
        meal: sum(e.calories for e in group)
        for meal, group in entries_by_meal_type(entries).items()
    }


def protein_by_meal_type(entries: list[FoodEntry]) -> dict[MealType, float]:
    return {
        meal: sum(_amount(e.protein) for e in group)
        for meal, group in entries_by_meal_type(entries).items()
    }


def progress(consumed: float, target: float) -> float:
    """consumed / target, unclamped. 0 when there is no target."""
    if target <= 0:
        return 0.0
    return consumed / target


def display_progress(ratio: float) -> float:
    """Clamp a progress ratio to 0..1 for rendering only."""
    return min(max(ratio, 0.0), 1.0)


def summarize(nutrition: DailyNutrition) -> DailyNutritionSummary:
    """Build the display summary for a day."""
    return DailyNutritionSummary(
        log_date=nutrition.log_date,
        total_calories=nutrition.total_calories,
        total_protein=nutrition.total_protein,
        calorie_target=nutrition.calorie_target,
        protein_target=nutrition.protein_target,
        calories_remaining=nutrition.calorie_target - nutrition.total_calories,
        protein_remaining=nutrition.protein_target - nutrition.total_protein,
        exercise_calories_burned=nutrition.exercise_calories_burned,
        net_calories=nutrition.net_calories,
        water_consumed=nutrition.water_consumed,
        entry_count=len(nutrition.entries),
        calorie_progress=progress(nutrition.total_calories, nutrition.calorie_target),
        protein_progress=progress(nutrition.total_protein, nutrition.protein_target),
        calorie_target_met=nutrition.total_calories >= nutrition.calorie_target,
        protein_target_met=nutrition.total_protein >= nutrition.protein_target,
    )


# ==================== Aggregator ====================


class NutritionAggregator:
    """Serialized owner of one day's DailyNutrition.

    Each mutation builds a new snapshot with refolded totals and publishes it
    through ``state``; readers only ever see complete snapshots.

    Mutations take an optional ``persist`` hook called with the previous and
    the new snapshot while the day is locked. If it raises, the new snapshot
    is not published.
    """

    def __init__(self, nutrition: DailyNutrition) -> None:
        self._lock = threading.RLock()
        self.state: ObservableValue[DailyNutrition] = ObservableValue(recalculate(nutrition))

    @property
    def nutrition(self) -> DailyNutrition:
        return self.state.value

    @property
    def log_date(self) -> date:
        return self.state.value.log_date

    def subscribe(self, callback: Callable[[DailyNutrition], None]) -> Callable[[], None]:
        """Be notified after every completed mutation."""
        return self.state.subscribe(callback, replay=False)

    def _commit(
        self,
        current: DailyNutrition,
        changes: dict[str, Any],
        persist: Optional[Persist],
    ) -> DailyNutrition:
        snapshot = recalculate(current.model_copy(update={**changes, "updated_at": utcnow()}))
        if persist is not None:
            persist(current, snapshot)
        self.state.publish(snapshot)
        return snapshot

    def contains(self, entry_id: str) -> bool:
        return any(e.id == entry_id for e in self.nutrition.entries)

    def add_entry(self, entry: FoodEntry, *, persist: Optional[Persist] = None) -> FoodEntry:
        """Append a validated entry.

        Raises:
            ValidationError: Entry rejected; nothing changes
        """
        entry = check_entry(entry)
        with self._lock:
            current = self.nutrition
            self._commit(current, {"entries": [*current.entries, entry]}, persist)
        return entry

    def update_entry(self, entry: FoodEntry, *, persist: Optional[Persist] = None) -> bool:
        """Replace the entry with the same id.

        Returns:
            False (and no change) when the id is not present

        Raises:
            ValidationError: Entry rejected; nothing changes
        """
        entry = check_entry(entry)
        with self._lock:
            current = self.nutrition
            if not any(e.id == entry.id for e in current.entries):
                return False
            entries = [entry if e.id == entry.id else e for e in current.entries]
            self._commit(current, {"entries": entries}, persist)
        return True

    def remove_entry(self, entry_id: str, *, persist: Optional[Persist] = None) -> Optional[FoodEntry]:
        """Remove an entry by id. Returns the removed entry, or None."""
        with self._lock:
            current = self.nutrition
            removed = next((e for e in current.entries if e.id == entry_id), None)
            if removed is None:
                return None
            entries = [e for e in current.entries if e.id != entry_id]
            self._commit(current, {"entries": entries}, persist)
        return removed

    def update_exercise_calories(self, calories: float, *, persist: Optional[Persist] = None) -> DailyNutrition:
        """Set calories burned through exercise, clamped to >= 0."""
        calories = max(0.0, calories)
        with self._lock:
            current = self.nutrition
            if current.exercise_calories_burned == calories:
                return current
            return self._commit(current, {"exercise_calories_burned": calories}, persist)

    def add_water(self, milliliters: float, *, persist: Optional[Persist] = None) -> DailyNutrition:
        """Add (or with a negative amount, remove) water; never below 0."""
        with self._lock:
            current = self.nutrition
            water = max(0.0, current.water_consumed + milliliters)
            return self._commit(current, {"water_consumed": water}, persist)

    def summary(self) -> DailyNutritionSummary:
        return summarize(self.nutrition)
