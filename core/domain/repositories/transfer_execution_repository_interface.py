from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from core.domain.entities.transfer_execution_entity import TransferExecutionEntity


class TransferExecutionRepository(ABC):
    @abstractmethod
    def insert(self, entity: TransferExecutionEntity) -> TransferExecutionEntity:
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, execution_id: str) -> Optional[TransferExecutionEntity]:
        raise NotImplementedError

    @abstractmethod
    def get_by_transfer_id(self, transfer_id: str) -> Optional[TransferExecutionEntity]:
        raise NotImplementedError

    @abstractmethod
    def update_status_if_open(self, transfer_id: str, updates: Dict[str, Any]) -> Optional[TransferExecutionEntity]:
        """
        Apply `updates` only while the execution is not terminal.
        Returns the updated entity, or None when nothing changed.
        """
        raise NotImplementedError

    @abstractmethod
    def list_by_user(self, user_id: str, *, limit: int = 50) -> Sequence[TransferExecutionEntity]:
        raise NotImplementedError

    @abstractmethod
    def ensure_indexes(self) -> None:
        raise NotImplementedError
