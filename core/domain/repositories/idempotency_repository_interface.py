from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from core.domain.entities.idempotency_record_entity import IdempotencyRecordEntity


class IdempotencyRepository(ABC):
    """
    Key/value store behind the idempotency layer.

    `claim` must be atomic: of N concurrent callers for the same key exactly
    one gets True.
    """

    @abstractmethod
    def claim(self, key: str, *, ttl_seconds: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def complete(self, key: str, *, response_body: str, status_code: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def release(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> Optional[IdempotencyRecordEntity]:
        raise NotImplementedError

    @abstractmethod
    def ensure_indexes(self) -> None:
        raise NotImplementedError
