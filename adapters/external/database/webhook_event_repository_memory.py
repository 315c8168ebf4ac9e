from __future__ import annotations

import threading
import time
from typing import Callable, Dict

from core.domain.repositories.webhook_event_repository_interface import WebhookEventRepository


class WebhookEventRepositoryMemory(WebhookEventRepository):
    def __init__(self, *, max_entries: int = 10_000, clock: Callable[[], float] = time.time) -> None:
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._lock = threading.Lock()
        # event_key -> expiry (unix seconds), insertion ordered
        self._seen: Dict[str, float] = {}

    def ensure_indexes(self) -> None:
        return None

    def mark_seen(self, event_key: str, *, ttl_seconds: int, type: str = "", resource_id: str = "") -> bool:
        with self._lock:
            now = self._clock()
            for k in [k for k, exp in self._seen.items() if exp <= now]:
                del self._seen[k]
            if event_key in self._seen:
                return False
            self._seen[event_key] = now + ttl_seconds
            while len(self._seen) > self._max_entries:
                del self._seen[next(iter(self._seen))]
            return True
