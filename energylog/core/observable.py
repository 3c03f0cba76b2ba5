"""Observable Value - single-writer broadcast of the latest value.

Subscribers are called synchronously on publish and are guaranteed to see the
latest value after each completed publish. Intermediate values may be skipped
by a subscriber that only reads ``value``; no queue is kept.
"""

import logging
import threading
from typing import Callable, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObservableValue(Generic[T]):
    """Holds one value and notifies subscribers whenever it is replaced."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def publish(self, value: T) -> None:
        """Replace the value and notify every subscriber.

        A failing subscriber is logged and does not prevent delivery to the
        others.
        """
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber %r failed", callback)

    def subscribe(self, callback: Callable[[T], None], *, replay: bool = True) -> Callable[[], None]:
        """Register ``callback``.

        Args:
            callback: Called with each published value
            replay: Also call immediately with the current value

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)
            current = self._value

        if replay:
            callback(current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
