"""Small time-based cache for values read from the database."""

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Holds a single value for ``ttl_seconds``.

    Args:
        ttl_seconds: How long a stored value stays fresh
        clock: Monotonic seconds source, injectable for tests
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._stored_at: Optional[float] = None

    def get(self) -> Optional[T]:
        """The cached value, or None when empty or stale."""
        if self._stored_at is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            self.invalidate()
            return None
        return self._value

    def set(self, value: T):
        self._value = value
        self._stored_at = self._clock()

    def invalidate(self):
        self._value = None
        self._stored_at = None
