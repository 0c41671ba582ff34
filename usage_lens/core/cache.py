"""
Single-slot TTL cache.

Holds one value with its capture time. Reads and writes take the slot's own
lock; the value is never computed while the lock is held.
"""

import threading
import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60.0


class TTLCache(Generic[T]):
    """One cached value, valid until it is `ttl` seconds old."""

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._fetched_at: Optional[float] = None

    def get(self) -> Optional[T]:
        """Return the cached value if still fresh, else None."""
        with self._lock:
            if self._fetched_at is None:
                return None
            if self._clock() - self._fetched_at >= self.ttl:
                return None
            return self._value

    def set(self, value: T) -> None:
        """Replace the cached value and restart its age."""
        with self._lock:
            self._value = value
            self._fetched_at = self._clock()

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._fetched_at = None
