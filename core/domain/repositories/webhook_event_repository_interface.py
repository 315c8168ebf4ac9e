from __future__ import annotations

from abc import ABC, abstractmethod


class WebhookEventRepository(ABC):
    @abstractmethod
    def mark_seen(self, event_key: str, *, ttl_seconds: int, type: str = "", resource_id: str = "") -> bool:
        """
        Record `event_key`. Returns False when it was already recorded and not expired.
        """
        raise NotImplementedError

    @abstractmethod
    def ensure_indexes(self) -> None:
        raise NotImplementedError
