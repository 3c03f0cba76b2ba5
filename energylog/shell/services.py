"""Service wiring - builds every component from Settings.

Components receive their collaborators here, once. Nothing else constructs
a store or a feed.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from .arbiter import EnergySourceArbiter
from .config import Settings
from .debounce import GoalEditDebouncer
from .firestore_client import EnergyLogFirestoreClient, FirestoreConfig
from .goals import GoalService
from .health_feed import HealthFeed, HttpHealthFeed, UnavailableHealthFeed
from .history import HistoryService
from .meal_cache import MealCache
from .nutrition_log import NutritionLog
from .store import Store
from .sync import SyncController
from .tracker import BalanceTracker


logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    store: Store
    feed: HealthFeed
    arbiter: EnergySourceArbiter
    nutrition: NutritionLog
    tracker: BalanceTracker
    sync: SyncController
    goals: GoalService
    debouncer: GoalEditDebouncer
    meals: MealCache
    history: HistoryService
    today: Callable[[], date] = date.today


def build_feed(settings: Settings) -> HealthFeed:
    if not settings.health_feed_url:
        logger.info("No health feed configured; using calculated energy only")
        return UnavailableHealthFeed()
    return HttpHealthFeed(
        settings.health_feed_url,
        token=settings.health_feed_token,
        timeout=settings.feed_timeout,
    )


def build_services(
    settings: Settings,
    *,
    store: Optional[Store] = None,
    feed: Optional[HealthFeed] = None,
    today: Callable[[], date] = date.today,
) -> AppServices:
    """Wire the components together.

    Args:
        settings: Runtime configuration
        store: Store override (defaults to Firestore)
        feed: Health feed override (defaults to the configured bridge)
        today: Clock shared by every component

    Returns:
        AppServices holding one instance of each component
    """
    if store is None:
        store = EnergyLogFirestoreClient(FirestoreConfig(
            project_id=settings.firestore_project,
            database=settings.firestore_database,
            user_id=settings.user_id,
        ))
    if feed is None:
        feed = build_feed(settings)

    arbiter = EnergySourceArbiter(feed, store, timeout=settings.feed_timeout)
    nutrition = NutritionLog(store)
    tracker = BalanceTracker(arbiter, nutrition, today=today)
    goals = GoalService(store, arbiter, today=today)

    return AppServices(
        settings=settings,
        store=store,
        feed=feed,
        arbiter=arbiter,
        nutrition=nutrition,
        tracker=tracker,
        sync=SyncController(tracker, interval=settings.sync_interval),
        goals=goals,
        debouncer=GoalEditDebouncer(
            goals,
            delay=settings.goal_debounce,
            weight_delay=settings.weight_debounce,
        ),
        meals=MealCache(store),
        history=HistoryService(tracker, nutrition, store, today=today),
        today=today,
    )
