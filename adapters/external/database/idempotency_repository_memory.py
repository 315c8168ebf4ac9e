from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from core.domain.entities.idempotency_record_entity import IdempotencyRecordEntity
from core.domain.enums.idempotency_enums import IdempotencyStatus
from core.domain.repositories.idempotency_repository_interface import IdempotencyRepository


class IdempotencyRepositoryMemory(IdempotencyRepository):
    """
    Process-local store, bounded by TTL and entry count.

    When full, the oldest completed records are evicted. In-progress claims
    are never evicted; they leave through `complete`, `release` or expiry, so
    the store may briefly hold more than `max_entries` claims.
    """

    def __init__(self, *, max_entries: int = 10_000, clock: Callable[[], float] = time.time) -> None:
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._lock = threading.Lock()
        self._records: "OrderedDict[str, IdempotencyRecordEntity]" = OrderedDict()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _purge_expired(self, now_ms: int) -> None:
        for k in [k for k, r in self._records.items() if r.is_expired(now_ms)]:
            del self._records[k]

    def _evict_overflow(self) -> None:
        while len(self._records) > self._max_entries:
            victim = next(
                (k for k, r in self._records.items() if r.status == IdempotencyStatus.COMPLETED),
                None,
            )
            if victim is None:
                return
            del self._records[victim]

    def ensure_indexes(self) -> None:
        return None

    def claim(self, key: str, *, ttl_seconds: int) -> bool:
        with self._lock:
            now_ms = self._now_ms()
            self._purge_expired(now_ms)
            if key in self._records:
                return False
            rec = IdempotencyRecordEntity(key=key, expires_at=now_ms + int(ttl_seconds) * 1000)
            self._records[key] = rec.touch_for_insert()
            self._evict_overflow()
            return True

    def complete(self, key: str, *, response_body: str, status_code: int) -> None:
        with self._lock:
            rec = self._records.get(key)
            if rec is None or rec.status == IdempotencyStatus.COMPLETED:
                return
            rec.status = IdempotencyStatus.COMPLETED
            rec.response_body = response_body
            rec.status_code = int(status_code)
            rec.touch_for_update()

    def release(self, key: str) -> None:
        with self._lock:
            rec = self._records.get(key)
            if rec is not None and rec.status == IdempotencyStatus.IN_PROGRESS:
                del self._records[key]

    def get(self, key: str) -> Optional[IdempotencyRecordEntity]:
        with self._lock:
            rec = self._records.get(key)
            if rec is None or rec.is_expired(self._now_ms()):
                return None
            return rec.model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
