"""Single-value in-memory cache with a time-to-live."""

import logging
import time
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoryCache(Generic[T]):
    """Holds one value until ``ttl_seconds`` have passed since it was set."""

    def __init__(self, ttl_seconds: float = 3600.0) -> None:
        self._ttl = ttl_seconds
        self._value: T | None = None
        self._stored_at: float | None = None

    def get(self) -> T | None:
        if not self.is_valid():
            return None
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._stored_at = time.monotonic()
        logger.debug("Cache updated (ttl=%ss)", self._ttl)

    def is_valid(self) -> bool:
        if self._stored_at is None:
            return False
        if time.monotonic() - self._stored_at > self._ttl:
            self.clear()
            return False
        return True

    def clear(self) -> None:
        self._value = None
        self._stored_at = None
