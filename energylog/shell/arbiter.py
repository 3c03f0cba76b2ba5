"""Energy Source Arbiter - resolves one EnergySample per day.

Fetches the health feed under a timeout and hands the result to the pure
decision rule in core.energy. Feed failures fall back to the calculated
sample unless the caller asks for them to be surfaced.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from ..core.energy import FALLBACK_ACTIVE_RATIO, choose_sample
from ..core.errors import ExternalFeedFailure
from ..core.models import EnergySample, FeedReading
from .health_feed import HealthFeed
from .store import Store


logger = logging.getLogger(__name__)


class EnergySourceArbiter:
    """Picks external or calculated energy data for a day, never a mix."""

    def __init__(
        self,
        feed: HealthFeed,
        store: Store,
        *,
        timeout: float = 10.0,
        fallback_active_ratio: float = FALLBACK_ACTIVE_RATIO,
    ) -> None:
        """Initialize the arbiter.

        Args:
            feed: External health feed
            store: Store used to load the profile for the fallback
            timeout: Seconds allowed for authorization plus one day's fetch
            fallback_active_ratio: Active energy share used by the fallback
        """
        self._feed = feed
        self._store = store
        self._timeout = timeout
        self._active_ratio = fallback_active_ratio
        self._authorized = False

    async def _ensure_authorized(self) -> None:
        if not self._authorized:
            await self._feed.authorize()
            self._authorized = True

    async def _fetch(self, log_date: date) -> FeedReading:
        await self._ensure_authorized()
        resting, active, weight = await asyncio.gather(
            self._feed.fetch_resting_energy(log_date),
            self._feed.fetch_active_energy(log_date),
            self._feed.fetch_weight(),
        )
        return FeedReading(resting_energy=resting, active_energy=active, weight=weight)

    async def fetch_reading(self, log_date: date) -> FeedReading:
        """Fetch the raw feed figures for a day.

        Raises:
            ExternalFeedFailure: On any feed error or timeout
        """
        try:
            return await asyncio.wait_for(self._fetch(log_date), timeout=self._timeout)
        except ExternalFeedFailure:
            raise
        except asyncio.TimeoutError as e:
            raise ExternalFeedFailure("Health data took too long to respond.", e) from e
        except Exception as e:
            raise ExternalFeedFailure(f"Health data request failed: {e}", e) from e

    async def sample_for(self, log_date: date, *, surface_failures: bool = False) -> EnergySample:
        """Resolve the energy sample for a day.

        Args:
            log_date: Day to resolve
            surface_failures: Raise feed failures instead of falling back

        Returns:
            EnergySample tagged external or calculated

        Raises:
            ExternalFeedFailure: Only when surface_failures is set
            StorageFailure: If the profile cannot be loaded
        """
        reading: Optional[FeedReading]
        try:
            reading = await self.fetch_reading(log_date)
        except ExternalFeedFailure as e:
            if surface_failures:
                raise
            logger.warning("Using calculated energy for %s: %s", log_date, e.message)
            reading = None

        profile = self._store.fetch_user()
        sample = choose_sample(log_date, profile, reading, self._active_ratio)
        logger.debug("Energy for %s from %s source", log_date, sample.source.value)
        return sample

    async def total_energy_expended(self, log_date: date) -> Optional[float]:
        """Measured resting + active energy for a day, or None if unavailable."""
        try:
            reading = await self.fetch_reading(log_date)
        except ExternalFeedFailure as e:
            logger.warning("No measured expenditure for %s: %s", log_date, e.message)
            return None
        if reading.resting_energy <= 0:
            return None
        return reading.resting_energy + reading.active_energy

    async def workout_calories(self, log_date: date) -> Optional[float]:
        """kcal burned in the day's workouts, or None if the feed is unavailable."""
        try:
            await self._ensure_authorized()
            workouts = await asyncio.wait_for(self._feed.fetch_workouts(log_date), timeout=self._timeout)
        except Exception as e:
            logger.warning("Could not fetch workouts for %s: %s", log_date, str(e))
            return None
        return sum(w.total_energy_burned or 0.0 for w in workouts)
