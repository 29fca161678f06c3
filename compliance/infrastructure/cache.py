"""Fixed-capacity memoisation cache for engine outputs.

Entries leave the cache only by overwrite, eviction or an explicit ``clear``.
"""
from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

EvictionPolicy = Literal["lru", "fifo"]

_MISSING = object()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": self.hit_rate,
        }


class BoundedCache:
    """Thread-safe cache with LRU or FIFO eviction once ``capacity`` is reached."""

    def __init__(self, capacity: int = 64, policy: EvictionPolicy = "lru") -> None:
        if capacity < 1:
            raise ValueError("cache capacity must be at least 1")
        if policy not in ("lru", "fifo"):
            raise ValueError(f"unknown eviction policy: {policy}")
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.RLock()
        self._capacity = capacity
        self._policy = policy
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> str:
        return self._policy

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            value = self._entries.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return default
            if self._policy == "lru":
                self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                if self._policy == "lru":
                    self._entries.move_to_end(key)
                return
            self._entries[key] = value
            while len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("cache evicted %s (%s)", evicted, self._policy)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
            )
