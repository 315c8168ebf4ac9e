from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from unittest.mock import MagicMock

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.idempotency_repository_mongodb import IdempotencyRepositoryMongoDB
from adapters.external.database.transfer_execution_repository_mongodb import TransferExecutionRepositoryMongoDB
from adapters.external.database.webhook_event_repository_mongodb import WebhookEventRepositoryMongoDB
from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from tests.helpers import DEST


def fake_db():
    collection = MagicMock()
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db, collection


class Color(Enum):
    RED = "red"


class TestSanitizeForMongo:
    def test_values(self):
        doc = {
            "amount": Decimal("1.50"),
            "color": Color.RED,
            "big": 2**70,
            "small": 5,
            "flag": True,
            "nested": [{"x": Decimal("2")}, (Color.RED,)],
            "none": None,
        }
        assert sanitize_for_mongo(doc) == {
            "amount": "1.50",
            "color": "red",
            "big": str(2**70),
            "small": 5,
            "flag": True,
            "nested": [{"x": "2"}, ["red"]],
            "none": None,
        }


class TestIdempotencyRepositoryMongoDB:
    def test_claim_inserts_placeholder(self):
        db, col = fake_db()
        repo = IdempotencyRepositoryMongoDB(db=db)
        assert repo.claim("k1", ttl_seconds=60) is True

        doc = col.insert_one.call_args.args[0]
        assert doc["key"] == "k1"
        assert doc["status"] == "in_progress"
        assert isinstance(doc["expires_at_date"], datetime)
        col.delete_one.assert_called_once()

    def test_claim_lost_on_duplicate(self):
        db, col = fake_db()
        col.insert_one.side_effect = DuplicateKeyError("dup")
        assert IdempotencyRepositoryMongoDB(db=db).claim("k1", ttl_seconds=60) is False

    def test_complete_only_touches_in_progress(self):
        db, col = fake_db()
        IdempotencyRepositoryMongoDB(db=db).complete("k1", response_body="{}", status_code=201)
        flt, update = col.update_one.call_args.args
        assert flt == {"key": "k1", "status": "in_progress"}
        assert update["$set"]["status"] == "completed"
        assert update["$set"]["status_code"] == 201

    def test_get_maps_document(self):
        db, col = fake_db()
        col.find_one.return_value = {"_id": ObjectId(), "key": "k1", "status": "completed", "expires_at": 1, "response_body": "{}"}
        rec = IdempotencyRepositoryMongoDB(db=db).get("k1")
        assert rec.key == "k1"
        assert rec.response_body == "{}"

    def test_indexes(self):
        db, col = fake_db()
        IdempotencyRepositoryMongoDB(db=db).ensure_indexes()
        names = {c.kwargs["name"] for c in col.create_index.call_args_list}
        assert names == {"ux_idempotency_records_key", "ttl_idempotency_records_expires_at"}


class TestWebhookEventRepositoryMongoDB:
    def test_mark_seen(self):
        db, col = fake_db()
        repo = WebhookEventRepositoryMongoDB(db=db)
        assert repo.mark_seen("notification:n-1", ttl_seconds=600, type="transfers") is True
        col.insert_one.side_effect = DuplicateKeyError("dup")
        assert repo.mark_seen("notification:n-1", ttl_seconds=600) is False


class TestTransferExecutionRepositoryMongoDB:
    def _entity(self):
        return TransferExecutionEntity(
            user_id="u",
            idempotency_key="k",
            transfer_id="tr_1",
            wallet_id="w",
            chain="base",
            destination_address=DEST,
            asset="USDC",
            amount="1.000000",
        )

    def test_insert_sets_id(self):
        db, col = fake_db()
        oid = ObjectId()
        col.insert_one.return_value.inserted_id = oid
        row = TransferExecutionRepositoryMongoDB(db=db).insert(self._entity())
        assert row.id == str(oid)
        assert "_id" not in col.insert_one.call_args.args[0]

    def test_insert_duplicate_returns_existing(self):
        db, col = fake_db()
        col.insert_one.side_effect = DuplicateKeyError("dup")
        existing = self._entity().to_mongo()
        existing["_id"] = ObjectId()
        col.find_one.return_value = existing
        row = TransferExecutionRepositoryMongoDB(db=db).insert(self._entity())
        assert row.id == str(existing["_id"])

    def test_update_filters_open_statuses(self):
        db, col = fake_db()
        col.find_one_and_update.return_value = None
        assert TransferExecutionRepositoryMongoDB(db=db).update_status_if_open("tr_1", {"status": "failed"}) is None
        flt = col.find_one_and_update.call_args.args[0]
        assert flt == {"transfer_id": "tr_1", "status": {"$in": ["pending", "running"]}}

    def test_get_by_bad_id(self):
        db, col = fake_db()
        assert TransferExecutionRepositoryMongoDB(db=db).get_by_id("not-an-object-id") is None
        col.find_one.assert_not_called()
