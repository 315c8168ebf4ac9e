from __future__ import annotations

import threading
import uuid
from typing import Any, Dict, Optional, Sequence

from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository


class TransferExecutionRepositoryMemory(TransferExecutionRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: Dict[str, TransferExecutionEntity] = {}
        self._by_transfer: Dict[str, str] = {}

    def ensure_indexes(self) -> None:
        return None

    def insert(self, entity: TransferExecutionEntity) -> TransferExecutionEntity:
        with self._lock:
            if entity.transfer_id in self._by_transfer:
                return self._rows[self._by_transfer[entity.transfer_id]].model_copy(deep=True)
            row = entity.model_copy(deep=True)
            row.id = row.id or uuid.uuid4().hex
            row.touch_for_insert()
            self._rows[row.id] = row
            self._by_transfer[row.transfer_id] = row.id
            return row.model_copy(deep=True)

    def get_by_id(self, execution_id: str) -> Optional[TransferExecutionEntity]:
        with self._lock:
            row = self._rows.get(execution_id)
            return row.model_copy(deep=True) if row else None

    def get_by_transfer_id(self, transfer_id: str) -> Optional[TransferExecutionEntity]:
        with self._lock:
            row_id = self._by_transfer.get(transfer_id)
            return self._rows[row_id].model_copy(deep=True) if row_id else None

    def update_status_if_open(self, transfer_id: str, updates: Dict[str, Any]) -> Optional[TransferExecutionEntity]:
        with self._lock:
            row_id = self._by_transfer.get(transfer_id)
            if row_id is None:
                return None
            row = self._rows[row_id]
            if TransferStatus(row.status).is_terminal:
                return None
            updated = row.model_copy(update=updates)
            updated.touch_for_update()
            self._rows[row_id] = updated
            return updated.model_copy(deep=True)

    def list_by_user(self, user_id: str, *, limit: int = 50) -> Sequence[TransferExecutionEntity]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.user_id == user_id]
        rows.sort(key=lambda r: r.created_at or 0, reverse=True)
        return [r.model_copy(deep=True) for r in rows[: int(limit)]]
