from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db
from core.domain.entities.base_entity import MongoEntity
from core.domain.entities.idempotency_record_entity import IdempotencyRecordEntity
from core.domain.enums.idempotency_enums import IdempotencyStatus
from core.domain.repositories.idempotency_repository_interface import IdempotencyRepository


def _expiry_date(expires_at_ms: int) -> datetime:
    return datetime.fromtimestamp(expires_at_ms / 1000, tz=timezone.utc)


class IdempotencyRepositoryMongoDB(IdempotencyRepository):
    """
    Collection: idempotency_records

    The unique index on `key` makes `claim` atomic across processes. Mongo's
    TTL monitor removes expired records eventually; reads also filter on
    `expires_at` so an expired record is never served.
    """

    COLLECTION_NAME = "idempotency_records"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index([("key", 1)], unique=True, name="ux_idempotency_records_key")
        self._collection.create_index(
            [("expires_at_date", 1)], expireAfterSeconds=0, name="ttl_idempotency_records_expires_at"
        )

    def claim(self, key: str, *, ttl_seconds: int) -> bool:
        now_ms = MongoEntity.now_ms()
        # the TTL monitor is lazy; drop an expired holder before claiming
        self._collection.delete_one({"key": key, "expires_at": {"$lte": now_ms}})

        entity = IdempotencyRecordEntity(key=key, expires_at=now_ms + int(ttl_seconds) * 1000).touch_for_insert()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc["expires_at_date"] = _expiry_date(entity.expires_at)
        try:
            self._collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        return True

    def complete(self, key: str, *, response_body: str, status_code: int) -> None:
        now = IdempotencyRecordEntity.now_ms()
        self._collection.update_one(
            {"key": key, "status": IdempotencyStatus.IN_PROGRESS.value},
            {
                "$set": {
                    "status": IdempotencyStatus.COMPLETED.value,
                    "response_body": response_body,
                    "status_code": int(status_code),
                    "updated_at": now,
                    "updated_at_iso": IdempotencyRecordEntity.now_iso(),
                }
            },
        )

    def release(self, key: str) -> None:
        self._collection.delete_one({"key": key, "status": IdempotencyStatus.IN_PROGRESS.value})

    def get(self, key: str) -> Optional[IdempotencyRecordEntity]:
        doc = self._collection.find_one({"key": key, "expires_at": {"$gt": MongoEntity.now_ms()}})
        return IdempotencyRecordEntity.from_mongo(doc)
