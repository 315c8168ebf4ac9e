from __future__ import annotations

import pytest

from adapters.external.database.transfer_execution_repository_memory import TransferExecutionRepositoryMemory
from adapters.external.database.webhook_event_repository_memory import WebhookEventRepositoryMemory
from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from tests.helpers import DEST, FakeClock


def execution(transfer_id="tr_1", user_id="user_1", **kwargs):
    return TransferExecutionEntity(
        user_id=user_id,
        idempotency_key=f"key-{transfer_id}",
        transfer_id=transfer_id,
        wallet_id="w_1",
        chain="base",
        destination_address=DEST,
        asset="USDC",
        amount="10.000000",
        **kwargs,
    )


class TestTransferExecutionRepositoryMemory:
    def test_insert_assigns_id_and_timestamps(self):
        repo = TransferExecutionRepositoryMemory()
        row = repo.insert(execution())
        assert row.id
        assert row.created_at is not None
        assert repo.get_by_id(row.id).transfer_id == "tr_1"

    def test_insert_is_idempotent_per_transfer(self):
        repo = TransferExecutionRepositoryMemory()
        a = repo.insert(execution())
        b = repo.insert(execution(rule_id="other"))
        assert a.id == b.id
        assert b.rule_id is None

    def test_terminal_rows_are_frozen(self):
        repo = TransferExecutionRepositoryMemory()
        repo.insert(execution())
        assert repo.update_status_if_open("tr_1", {"status": "running"}).status == "running"
        assert repo.update_status_if_open("tr_1", {"status": "complete", "transaction_hash": "0x1"}) is not None
        assert repo.update_status_if_open("tr_1", {"status": "failed"}) is None
        assert repo.get_by_transfer_id("tr_1").status == "complete"

    def test_update_unknown_transfer(self):
        assert TransferExecutionRepositoryMemory().update_status_if_open("nope", {"status": "failed"}) is None

    def test_list_by_user(self):
        repo = TransferExecutionRepositoryMemory()
        repo.insert(execution("tr_1", created_at=1))
        repo.insert(execution("tr_2", created_at=2))
        repo.insert(execution("tr_3", user_id="someone_else"))

        rows = repo.list_by_user("user_1")
        assert [r.transfer_id for r in rows] == ["tr_2", "tr_1"]
        assert len(repo.list_by_user("user_1", limit=1)) == 1


class TestWebhookEventRepositoryMemory:
    def test_mark_seen_once(self):
        repo = WebhookEventRepositoryMemory()
        assert repo.mark_seen("n-1", ttl_seconds=60) is True
        assert repo.mark_seen("n-1", ttl_seconds=60) is False
        assert repo.mark_seen("n-2", ttl_seconds=60) is True

    def test_expired_entries_are_forgotten(self):
        clock = FakeClock()
        repo = WebhookEventRepositoryMemory(clock=clock)
        repo.mark_seen("n-1", ttl_seconds=60)
        clock.advance(61)
        assert repo.mark_seen("n-1", ttl_seconds=60) is True

    @pytest.mark.parametrize("max_entries", [1, 2])
    def test_bounded(self, max_entries):
        repo = WebhookEventRepositoryMemory(max_entries=max_entries)
        for i in range(5):
            repo.mark_seen(f"n-{i}", ttl_seconds=60)
        assert repo.mark_seen("n-0", ttl_seconds=60) is True
