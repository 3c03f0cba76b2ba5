"""History Service - per-day totals and goal progress over a date range."""

import asyncio
import logging
from datetime import date
from typing import Callable

from ..core.history import build_history, check_range, date_range, summarize_day
from ..core.models import DayHistory, HistoryReport
from .nutrition_log import NutritionLog
from .store import Store
from .tracker import BalanceTracker


logger = logging.getLogger(__name__)


class HistoryService:
    def __init__(
        self,
        tracker: BalanceTracker,
        nutrition_log: NutritionLog,
        store: Store,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._tracker = tracker
        self._nutrition_log = nutrition_log
        self._store = store
        self._today = today

    async def _day(self, log_date: date) -> DayHistory:
        nutrition = self._nutrition_log.nutrition(log_date)
        balance = await self._tracker.get_balance_for_date(log_date)
        return summarize_day(nutrition, balance)

    async def history(self, start: date, end: date) -> HistoryReport:
        """Summarize every day from start to end inclusive.

        Days after today are dropped from the range.

        Raises:
            ValidationError: Reversed, future or overlong range
            StorageFailure: If a day or the goal cannot be loaded
        """
        start, end = check_range(start, end, self._today())
        logger.debug("Building history %s..%s", start, end)
        days = await asyncio.gather(*(self._day(d) for d in date_range(start, end)))
        return build_history(start, end, list(days), self._store.fetch_active_goal())
