"""Store - the persistence contract the core depends on.

Every method may raise StorageFailure. Components receive a Store at
construction; nothing reaches for a global client.
"""

from datetime import date
from typing import Optional, Protocol

from ..core.models import CachedMeal, DailyNutrition, FoodEntry, Goal, UserProfile


class Store(Protocol):
    def fetch_user(self) -> Optional[UserProfile]: ...

    def save_user(self, profile: UserProfile) -> None: ...

    def fetch_active_goal(self) -> Optional[Goal]: ...

    def save_goal(self, goal: Goal) -> None:
        """Persist a goal. Saving an active goal deactivates any other active goal."""
        ...

    def fetch_food_entries(self, log_date: date) -> list[FoodEntry]: ...

    def save_food_entry(self, entry: FoodEntry, log_date: date) -> None: ...

    def update_food_entry(self, entry: FoodEntry, log_date: date) -> None: ...

    def delete_food_entry(self, entry_id: str, log_date: date) -> None: ...

    def fetch_daily_nutrition(self, log_date: date) -> Optional[DailyNutrition]: ...

    def save_daily_nutrition(self, nutrition: DailyNutrition) -> None: ...

    def fetch_cached_meals(self) -> list[CachedMeal]:
        """Recently used meals, most recent first."""
        ...

    def save_cached_meal(self, meal: CachedMeal) -> None: ...

    def delete_cached_meal(self, meal_id: str) -> None: ...
