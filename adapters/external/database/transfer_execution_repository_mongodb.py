from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db
from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository

OPEN_STATUSES = [TransferStatus.PENDING.value, TransferStatus.RUNNING.value]


class TransferExecutionRepositoryMongoDB(TransferExecutionRepository):
    """
    Collection: transfer_executions
    """

    COLLECTION_NAME = "transfer_executions"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index([("transfer_id", 1)], unique=True, name="ux_transfer_executions_transfer_id")
        self._collection.create_index(
            [("user_id", 1), ("created_at", -1)], name="ix_transfer_executions_user_created_at_desc"
        )
        self._collection.create_index([("rule_id", 1)], name="ix_transfer_executions_rule_id")
        self._collection.create_index([("status", 1)], name="ix_transfer_executions_status")

    def insert(self, entity: TransferExecutionEntity) -> TransferExecutionEntity:
        entity = entity.touch_for_insert()
        doc = sanitize_for_mongo(entity.to_mongo())
        try:
            res = self._collection.insert_one(doc)
        except DuplicateKeyError:
            existing = self.get_by_transfer_id(entity.transfer_id)
            if existing is None:
                raise
            return existing
        entity.id = str(res.inserted_id)
        return entity

    def get_by_id(self, execution_id: str) -> Optional[TransferExecutionEntity]:
        try:
            oid = ObjectId(execution_id)
        except (InvalidId, TypeError):
            return None
        return TransferExecutionEntity.from_mongo(self._collection.find_one({"_id": oid}))

    def get_by_transfer_id(self, transfer_id: str) -> Optional[TransferExecutionEntity]:
        return TransferExecutionEntity.from_mongo(self._collection.find_one({"transfer_id": transfer_id}))

    def update_status_if_open(self, transfer_id: str, updates: Dict[str, Any]) -> Optional[TransferExecutionEntity]:
        doc = self._collection.find_one_and_update(
            {"transfer_id": transfer_id, "status": {"$in": OPEN_STATUSES}},
            {
                "$set": {
                    **sanitize_for_mongo(dict(updates)),
                    "updated_at": TransferExecutionEntity.now_ms(),
                    "updated_at_iso": TransferExecutionEntity.now_iso(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return TransferExecutionEntity.from_mongo(doc)

    def list_by_user(self, user_id: str, *, limit: int = 50) -> Sequence[TransferExecutionEntity]:
        cursor = self._collection.find({"user_id": user_id}, sort=[("created_at", -1)]).limit(int(limit))
        return [TransferExecutionEntity.from_mongo(d) for d in cursor if d]
