"""Meal Cache - recently used meals backed by the store.

Keeps up to MAX_CACHED_MEALS meals, most recently used first, so a meal
eaten again can be logged without re-entering its numbers.
"""

import logging
from typing import Optional

from ..core.meals import MAX_CACHED_MEALS, mark_used, remember_meal, search_meals, sort_recent
from ..core.models import CachedMeal
from .store import Store


logger = logging.getLogger(__name__)


class MealCache:
    """Search, remember and re-use cached meals."""

    def __init__(self, store: Store, *, max_size: int = MAX_CACHED_MEALS) -> None:
        self._store = store
        self.max_size = max_size

    def meals(self) -> list[CachedMeal]:
        return sort_recent(self._store.fetch_cached_meals())

    def search(self, query: str = "") -> list[CachedMeal]:
        """Meals whose name contains ``query``, ignoring case."""
        return search_meals(self._store.fetch_cached_meals(), query)

    def get(self, meal_id: str) -> Optional[CachedMeal]:
        return next((m for m in self._store.fetch_cached_meals() if m.id == meal_id), None)

    def remember(self, name: str, calories: float, protein: Optional[float] = None) -> CachedMeal:
        """Cache a meal, replacing any meal with the same name.

        Raises:
            ValidationError: Empty name or values out of range
            StorageFailure: If the store write fails
        """
        meal, evicted = remember_meal(
            self._store.fetch_cached_meals(),
            name,
            calories,
            protein,
            max_size=self.max_size,
        )
        self._store.save_cached_meal(meal)
        for old in evicted:
            logger.debug("Evicting cached meal %s", old.id[:8])
            self._store.delete_cached_meal(old.id)
        return meal

    def use(self, meal_id: str) -> Optional[CachedMeal]:
        """Mark a meal as just used. Returns None if it is not cached."""
        meal = self.get(meal_id)
        if meal is None:
            return None
        meal = mark_used(meal)
        self._store.save_cached_meal(meal)
        return meal

    def clear(self) -> None:
        for meal in self._store.fetch_cached_meals():
            self._store.delete_cached_meal(meal.id)
        logger.info("Meal cache cleared")
