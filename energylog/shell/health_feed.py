"""Health Feed - client for the external wearable/health data bridge.

The bridge is an HTTP service that exposes the day's energy figures, the
latest weight and workouts from the user's wearable, and pushes change
notifications to this service's webhook.
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import httpx

from ..core.errors import ExternalFeedFailure
from ..core.models import WorkoutRecord
from ..core.observable import ObservableValue


logger = logging.getLogger(__name__)


class FeedChange(str, Enum):
    """Kind of data the bridge reports as changed."""

    ENERGY = "energy"
    WEIGHT = "weight"
    WORKOUT = "workout"


class HealthFeed(Protocol):
    async def authorize(self) -> None: ...

    async def fetch_active_energy(self, log_date: date) -> float: ...

    async def fetch_resting_energy(self, log_date: date) -> float: ...

    async def fetch_weight(self) -> Optional[float]: ...

    async def fetch_workouts(self, log_date: date) -> list[WorkoutRecord]: ...

    def subscribe(self, callback: Callable[[FeedChange], None]) -> Callable[[], None]: ...

    def notify_changed(self, kind: FeedChange) -> None: ...


class FeedNotifier:
    """Broadcasts change notifications received from the bridge."""

    def __init__(self) -> None:
        self.changes: ObservableValue[Optional[FeedChange]] = ObservableValue(None)

    def notify_changed(self, kind: FeedChange) -> None:
        logger.debug("Feed reported %s change", kind.value)
        self.changes.publish(kind)

    def subscribe(self, callback: Callable[[FeedChange], None]) -> Callable[[], None]:
        return self.changes.subscribe(callback, replay=False)


class HttpHealthFeed(FeedNotifier):
    """HealthFeed backed by the bridge's JSON API.

    Endpoints:
        POST /authorize -> {"authorized": bool}
        GET  /energy/active?date=YYYY-MM-DD -> {"kcal": float}
        GET  /energy/resting?date=YYYY-MM-DD -> {"kcal": float}
        GET  /weight/latest -> {"kg": float | null}
        GET  /workouts?date=YYYY-MM-DD -> {"workouts": [...]}
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the feed client.

        Args:
            base_url: Root URL of the bridge
            token: Bearer token sent with every request
            timeout: Per-request timeout in seconds
            transport: Optional transport override
        """
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, params: dict | None = None) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.warning("Health feed %s %s failed: %s", method, path, str(e))
            raise ExternalFeedFailure("Could not reach your health data.", e) from e
        except ValueError as e:
            logger.warning("Health feed %s %s returned invalid JSON", method, path)
            raise ExternalFeedFailure("Health data was unreadable.", e) from e

    async def authorize(self) -> None:
        """Ask the bridge for read access.

        Raises:
            ExternalFeedFailure: If the bridge is unreachable or access is denied
        """
        data = await self._request("POST", "/authorize")
        if not data.get("authorized"):
            raise ExternalFeedFailure("Access to health data was not granted.")
        logger.info("Health feed authorized")

    async def fetch_active_energy(self, log_date: date) -> float:
        data = await self._request("GET", "/energy/active", {"date": log_date.isoformat()})
        return float(data.get("kcal") or 0.0)

    async def fetch_resting_energy(self, log_date: date) -> float:
        data = await self._request("GET", "/energy/resting", {"date": log_date.isoformat()})
        return float(data.get("kcal") or 0.0)

    async def fetch_weight(self) -> Optional[float]:
        data = await self._request("GET", "/weight/latest")
        kg = data.get("kg")
        return None if kg is None else float(kg)

    async def fetch_workouts(self, log_date: date) -> list[WorkoutRecord]:
        data = await self._request("GET", "/workouts", {"date": log_date.isoformat()})
        return [WorkoutRecord(**w) for w in data.get("workouts", [])]


class UnavailableHealthFeed(FeedNotifier):
    """Stand-in used when no bridge is configured; every fetch fails."""

    def _fail(self) -> ExternalFeedFailure:
        return ExternalFeedFailure("No health data source is configured.")

    async def authorize(self) -> None:
        raise self._fail()

    async def fetch_active_energy(self, log_date: date) -> float:
        raise self._fail()

    async def fetch_resting_energy(self, log_date: date) -> float:
        raise self._fail()

    async def fetch_weight(self) -> Optional[float]:
        raise self._fail()

    async def fetch_workouts(self, log_date: date) -> list[WorkoutRecord]:
        raise self._fail()
