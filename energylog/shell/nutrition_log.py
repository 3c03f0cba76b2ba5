"""Nutrition Log - per-day aggregators backed by the store.

Creates one NutritionAggregator per calendar day on first access and keeps
the store in step with every entry mutation. Entries are validated before
anything is written. Store writes happen under the day's lock before the
new snapshot is published, so a failed write leaves the day untouched.
"""

import logging
import threading
from datetime import date
from typing import Callable, Optional

from ..core.errors import StorageFailure
from ..core.models import DailyNutrition, FoodEntry
from ..core.nutrition import NutritionAggregator, Persist, check_entry, new_daily_nutrition
from ..core.observable import ObservableValue
from .store import Store


logger = logging.getLogger(__name__)

# Store write for one entry, given the day before the change
EntryWrite = Callable[[DailyNutrition], None]


class NutritionLog:
    """Food-entry CRUD entry points for any date."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._days: dict[date, NutritionAggregator] = {}
        self._lock = threading.Lock()
        # Latest snapshot of whichever day changed most recently
        self.changes: ObservableValue[Optional[DailyNutrition]] = ObservableValue(None)

    def for_date(self, log_date: date) -> NutritionAggregator:
        """Get the day's aggregator, loading or creating it on first access.

        Raises:
            StorageFailure: If the day cannot be loaded
        """
        with self._lock:
            aggregator = self._days.get(log_date)
            if aggregator is not None:
                return aggregator

            nutrition = self._store.fetch_daily_nutrition(log_date)
            if nutrition is None:
                logger.debug("Creating nutrition for %s", log_date)
                nutrition = new_daily_nutrition(
                    log_date,
                    goal=self._store.fetch_active_goal(),
                    entries=self._store.fetch_food_entries(log_date),
                )

            aggregator = NutritionAggregator(nutrition)
            aggregator.subscribe(self.changes.publish)
            self._days[log_date] = aggregator
            return aggregator

    def nutrition(self, log_date: date) -> DailyNutrition:
        return self.for_date(log_date).nutrition

    def _entry_writer(self, log_date: date, write: EntryWrite, undo: EntryWrite) -> Persist:
        """Persist hook that writes an entry change and then the day.

        When the day cannot be saved the entry write is reverted, so the
        store and the in-memory day both stay as they were.
        """
        def persist(previous: DailyNutrition, snapshot: DailyNutrition) -> None:
            write(previous)
            try:
                self._store.save_daily_nutrition(snapshot)
            except StorageFailure:
                logger.warning("Day %s not saved; reverting entry write", log_date)
                undo(previous)
                raise

        return persist

    def _save_day(self, previous: DailyNutrition, snapshot: DailyNutrition) -> None:
        self._store.save_daily_nutrition(snapshot)

    def add_entry(self, log_date: date, entry: FoodEntry) -> DailyNutrition:
        """Validate, persist and add an entry.

        Raises:
            ValidationError: Entry rejected before any write
            StorageFailure: Entry not saved; the day is unchanged
        """
        entry = check_entry(entry)
        aggregator = self.for_date(log_date)
        aggregator.add_entry(entry, persist=self._entry_writer(
            log_date,
            write=lambda previous: self._store.save_food_entry(entry, log_date),
            undo=lambda previous: self._store.delete_food_entry(entry.id, log_date),
        ))
        return aggregator.nutrition

    def update_entry(self, log_date: date, entry: FoodEntry) -> Optional[DailyNutrition]:
        """Validate and replace an entry by id.

        Returns:
            The updated day, or None if no entry has that id
        """
        entry = check_entry(entry)
        aggregator = self.for_date(log_date)
        updated = aggregator.update_entry(entry, persist=self._entry_writer(
            log_date,
            write=lambda previous: self._store.update_food_entry(entry, log_date),
            undo=lambda previous: self._store.update_food_entry(_find_entry(previous, entry.id), log_date),
        ))
        if not updated:
            logger.warning("Entry not found: %s", entry.id)
            return None
        return aggregator.nutrition

    def remove_entry(self, log_date: date, entry_id: str) -> Optional[DailyNutrition]:
        """Delete an entry by id.

        Returns:
            The updated day, or None if no entry has that id
        """
        aggregator = self.for_date(log_date)
        removed = aggregator.remove_entry(entry_id, persist=self._entry_writer(
            log_date,
            write=lambda previous: self._store.delete_food_entry(entry_id, log_date),
            undo=lambda previous: self._store.save_food_entry(_find_entry(previous, entry_id), log_date),
        ))
        if removed is None:
            logger.warning("Entry not found: %s", entry_id)
            return None
        return aggregator.nutrition

    def update_exercise_calories(self, log_date: date, calories: float) -> DailyNutrition:
        return self.for_date(log_date).update_exercise_calories(calories, persist=self._save_day)

    def add_water(self, log_date: date, milliliters: float) -> DailyNutrition:
        return self.for_date(log_date).add_water(milliliters, persist=self._save_day)


def _find_entry(nutrition: DailyNutrition, entry_id: str) -> FoodEntry:
    return next(e for e in nutrition.entries if e.id == entry_id)
