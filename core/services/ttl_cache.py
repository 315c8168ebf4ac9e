# core/services/ttl_cache.py

from __future__ import annotations

import threading
from time import time
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Small process-local cache with a fixed time-to-live per entry.

    Entries are stored with their insertion time and considered stale once
    `ttl_seconds` elapsed. The clock is injectable so tests can move time.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[V]:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(key)
            if hit and (now - hit[0]) < self.ttl_seconds:
                return hit[1]
        return None

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def status(self) -> dict:
        now = self._clock()
        with self._lock:
            items = list(self._entries.items())
        entries = [
            {
                "key": key if isinstance(key, str) else ":".join(str(k) for k in key),
                "age_seconds": round(now - stored_at, 3),
                "valid": (now - stored_at) < self.ttl_seconds,
            }
            for key, (stored_at, _) in items
        ]
        return {"size": len(items), "ttl_seconds": self.ttl_seconds, "entries": entries}
