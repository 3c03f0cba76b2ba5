"""Firestore Client - Persistence for profile, goals, daily nutrition and cached meals.

This module handles all database I/O. Business logic is in the core module.
Failures are logged and re-raised as StorageFailure; nothing is retried.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from google.cloud import firestore

from ..core.errors import StorageFailure
from ..core.models import CachedMeal, DailyNutrition, FoodEntry, Goal, UserProfile


logger = logging.getLogger(__name__)

# Upper bound on cached meals read back; the cache itself holds fewer
MEAL_FETCH_LIMIT = 100


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        user_id: Document ID all records are stored under
    """

    project_id: str | None = None
    database: str | None = None
    user_id: str = "default"


class EnergyLogFirestoreClient:
    """Store implementation backed by Firestore.

    Document structure:
        users/{user_id}/
            profile/config: { age, weight, height, ... }
            goals/{goal_id}: { goal_type, is_active, ... }
            days/{YYYY-MM-DD}: { totals, targets, water, exercise, ... }
            days/{YYYY-MM-DD}/entries/{entry_id}: { calories, protein, ... }
            meals/{meal_id}: { name, calories, last_used, ... }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _user_ref(self) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(self.config.user_id)

    def _profile_ref(self) -> firestore.DocumentReference:
        return self._user_ref().collection("profile").document("config")

    def _goals_ref(self) -> firestore.CollectionReference:
        return self._user_ref().collection("goals")

    def _day_ref(self, log_date: date) -> firestore.DocumentReference:
        """Get reference to a day's nutrition document."""
        return self._user_ref().collection("days").document(log_date.isoformat())

    def _entries_ref(self, log_date: date) -> firestore.CollectionReference:
        return self._day_ref(log_date).collection("entries")

    def _meals_ref(self) -> firestore.CollectionReference:
        return self._user_ref().collection("meals")

    # ==================== Profile Operations ====================

    def fetch_user(self) -> UserProfile | None:
        """Fetch the user profile.

        Returns:
            UserProfile if found, None otherwise
        """
        logger.debug("Fetching profile for user: %s", self.config.user_id)
        try:
            doc = self._profile_ref().get()
            if not doc.exists:
                return None
            return UserProfile(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch profile: %s", str(e))
            raise StorageFailure("Could not load your profile.") from e

    def save_user(self, profile: UserProfile) -> None:
        """Save the user profile."""
        logger.info("Saving profile for user: %s", self.config.user_id)
        try:
            self._profile_ref().set(profile.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to save profile: %s", str(e))
            raise StorageFailure("Could not save your profile.") from e

    # ==================== Goal Operations ====================

    def fetch_active_goal(self) -> Goal | None:
        """Fetch the active goal, if any."""
        logger.debug("Fetching active goal for user: %s", self.config.user_id)
        try:
            query = self._goals_ref().where("is_active", "==", True).limit(1)
            for doc in query.stream():
                return Goal(**doc.to_dict())
            return None
        except Exception as e:
            logger.error("Failed to fetch active goal: %s", str(e))
            raise StorageFailure("Could not load your goal.") from e

    def save_goal(self, goal: Goal) -> None:
        """Save a goal, deactivating any other active goal in the same batch.

        Args:
            goal: The goal to save
        """
        logger.info("Saving goal %s (active=%s)", goal.id[:8], goal.is_active)
        try:
            batch = self.client.batch()
            if goal.is_active:
                for doc in self._goals_ref().where("is_active", "==", True).stream():
                    if doc.id != goal.id:
                        batch.update(doc.reference, {"is_active": False})
            batch.set(self._goals_ref().document(goal.id), goal.model_dump(mode="json"))
            batch.commit()
        except Exception as e:
            logger.error("Failed to save goal: %s", str(e))
            raise StorageFailure("Could not save your goal.") from e

    # ==================== Food Entry Operations ====================

    def fetch_food_entries(self, log_date: date) -> list[FoodEntry]:
        """Fetch a day's food entries ordered by timestamp."""
        logger.debug("Fetching entries for %s", log_date)
        try:
            query = self._entries_ref(log_date).order_by("timestamp")
            return [FoodEntry(**doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch entries: %s", str(e))
            raise StorageFailure("Could not load food entries.") from e

    def save_food_entry(self, entry: FoodEntry, log_date: date) -> None:
        logger.info("Saving entry %s on %s", entry.id[:8], log_date)
        try:
            self._entries_ref(log_date).document(entry.id).set(entry.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to save entry: %s", str(e))
            raise StorageFailure("Could not save the food entry.") from e

    def update_food_entry(self, entry: FoodEntry, log_date: date) -> None:
        logger.info("Updating entry %s on %s", entry.id[:8], log_date)
        try:
            self._entries_ref(log_date).document(entry.id).set(entry.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to update entry: %s", str(e))
            raise StorageFailure("Could not update the food entry.") from e

    def delete_food_entry(self, entry_id: str, log_date: date) -> None:
        logger.info("Deleting entry %s on %s", entry_id[:8], log_date)
        try:
            self._entries_ref(log_date).document(entry_id).delete()
        except Exception as e:
            logger.error("Failed to delete entry: %s", str(e))
            raise StorageFailure("Could not delete the food entry.") from e

    # ==================== Daily Nutrition Operations ====================

    def fetch_daily_nutrition(self, log_date: date) -> DailyNutrition | None:
        """Fetch a day's nutrition record with its entries.

        Cached totals are returned as stored; the aggregator refolds them.
        """
        logger.debug("Fetching nutrition for %s", log_date)
        try:
            doc = self._day_ref(log_date).get()
            if not doc.exists:
                return None
            data = doc.to_dict()
            data["entries"] = self.fetch_food_entries(log_date)
            return DailyNutrition(**data)
        except StorageFailure:
            raise
        except Exception as e:
            logger.error("Failed to fetch nutrition: %s", str(e))
            raise StorageFailure("Could not load the day's nutrition.") from e

    def save_daily_nutrition(self, nutrition: DailyNutrition) -> None:
        """Save a day's totals and targets. Entries are stored individually."""
        logger.info("Saving nutrition for %s", nutrition.log_date)
        try:
            data = nutrition.model_dump(mode="json", exclude={"entries"})
            self._day_ref(nutrition.log_date).set(data)
        except Exception as e:
            logger.error("Failed to save nutrition: %s", str(e))
            raise StorageFailure("Could not save the day's nutrition.") from e

    # ==================== Meal Cache Operations ====================

    def fetch_cached_meals(self) -> list[CachedMeal]:
        """Fetch cached meals, most recently used first."""
        logger.debug("Fetching cached meals")
        try:
            query = self._meals_ref().order_by(
                "last_used", direction=firestore.Query.DESCENDING
            ).limit(MEAL_FETCH_LIMIT)
            return [CachedMeal(**doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch cached meals: %s", str(e))
            raise StorageFailure("Could not load saved meals.") from e

    def save_cached_meal(self, meal: CachedMeal) -> None:
        logger.info("Caching meal %s", meal.id[:8])
        try:
            self._meals_ref().document(meal.id).set(meal.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to cache meal: %s", str(e))
            raise StorageFailure("Could not save the meal.") from e

    def delete_cached_meal(self, meal_id: str) -> None:
        logger.info("Removing cached meal %s", meal_id[:8])
        try:
            self._meals_ref().document(meal_id).delete()
        except Exception as e:
            logger.error("Failed to remove cached meal: %s", str(e))
            raise StorageFailure("Could not remove the meal.") from e
