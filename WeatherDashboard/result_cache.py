"""Bounded, time-expiring cache for normalized weather records."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional

from weather_data import WeatherRecord

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_MAX_SIZE = 100


@dataclass(frozen=True)
class CacheEntry:
    record: WeatherRecord
    stored_at: float


class CacheStats(NamedTuple):
    size: int
    max_size: int


class ResultCache:
    """
    Key -> WeatherRecord store with lazy expiry and FIFO eviction.

    Entries older than the TTL are dropped when read. Once the cache holds
    ``max_size`` entries, inserting a new key evicts the oldest-inserted one
    (insertion order, not access order).
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: How long an entry stays valid after it is stored
            max_size: Maximum number of entries held at once
            clock: Monotonic time source in seconds (injectable for tests)
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1 (got {max_size})")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive (got {ttl_seconds})")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        # dicts preserve insertion order, which is the eviction order
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[WeatherRecord]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logging.debug(f"Cache miss: {key}")
                return None

            age = self._clock() - entry.stored_at
            if age > self.ttl_seconds:
                del self._entries[key]
                logging.debug(f"Cache entry expired: {key} (age: {age:.1f}s, TTL: {self.ttl_seconds}s)")
                return None

            logging.debug(f"Cache hit: {key} (age: {age:.1f}s)")
            return entry.record

    def set(self, key: str, record: WeatherRecord) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logging.debug(f"Cache full ({self.max_size}), evicted oldest entry: {oldest}")

            self._entries[key] = CacheEntry(record=record, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        return CacheStats(size=len(self._entries), max_size=self.max_size)
