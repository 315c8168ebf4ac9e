from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db
from core.domain.entities.webhook_event_entity import WebhookEventEntity
from core.domain.repositories.webhook_event_repository_interface import WebhookEventRepository


class WebhookEventRepositoryMongoDB(WebhookEventRepository):
    """
    Collection: webhook_events
    """

    COLLECTION_NAME = "webhook_events"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    def ensure_indexes(self) -> None:
        self._collection.create_index([("event_key", 1)], unique=True, name="ux_webhook_events_event_key")
        self._collection.create_index(
            [("expires_at_date", 1)], expireAfterSeconds=0, name="ttl_webhook_events_expires_at"
        )

    def mark_seen(self, event_key: str, *, ttl_seconds: int, type: str = "", resource_id: str = "") -> bool:
        now_ms = WebhookEventEntity.now_ms()
        self._collection.delete_one({"event_key": event_key, "expires_at": {"$lte": now_ms}})

        entity = WebhookEventEntity(
            event_key=event_key,
            type=type,
            resource_id=resource_id,
            expires_at=now_ms + int(ttl_seconds) * 1000,
        ).touch_for_insert()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc["expires_at_date"] = datetime.fromtimestamp(entity.expires_at / 1000, tz=timezone.utc)
        try:
            self._collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        return True
