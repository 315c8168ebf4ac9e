from __future__ import annotations

import asyncio
import threading

import pytest

from adapters.external.database.idempotency_repository_memory import IdempotencyRepositoryMemory
from core.services.exceptions import IdempotencyInProgress, ValidationError
from core.services.idempotency_service import IdempotencyService, validate_idempotency_key
from tests.helpers import FakeClock


@pytest.fixture
def repo():
    return IdempotencyRepositoryMemory()


@pytest.fixture
def service(repo):
    return IdempotencyService(repo=repo, wait_seconds=2.0, poll_interval=0.01)


class CountingHandler:
    def __init__(self, body='{"ok":true}', status_code=200, delay=0.0, error=None):
        self.calls = 0
        self.body = body
        self.status_code = status_code
        self.delay = delay
        self.error = error

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.body, self.status_code


class TestKeyValidation:
    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_blank(self, key):
        with pytest.raises(ValidationError):
            validate_idempotency_key(key)

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_idempotency_key("k" * 256)

    def test_stripped(self):
        assert validate_idempotency_key("  abc ") == "abc"


class TestMemoryRepository:
    def test_claim_is_exclusive(self, repo):
        assert repo.claim("a", ttl_seconds=60) is True
        assert repo.claim("a", ttl_seconds=60) is False

    def test_complete_is_write_once(self, repo):
        repo.claim("a", ttl_seconds=60)
        repo.complete("a", response_body="first", status_code=201)
        repo.complete("a", response_body="second", status_code=200)
        rec = repo.get("a")
        assert rec.status == "completed"
        assert rec.response_body == "first"
        assert rec.status_code == 201

    def test_release_only_drops_in_progress(self, repo):
        repo.claim("a", ttl_seconds=60)
        repo.release("a")
        assert repo.get("a") is None

        repo.claim("b", ttl_seconds=60)
        repo.complete("b", response_body="x", status_code=200)
        repo.release("b")
        assert repo.get("b") is not None

    def test_expired_key_can_be_claimed_again(self):
        clock = FakeClock()
        repo = IdempotencyRepositoryMemory(clock=clock)
        repo.claim("a", ttl_seconds=10)
        repo.complete("a", response_body="x", status_code=200)
        clock.advance(11)
        assert repo.get("a") is None
        assert repo.claim("a", ttl_seconds=10) is True

    def test_eviction_prefers_completed_records(self):
        repo = IdempotencyRepositoryMemory(max_entries=2)
        repo.claim("running", ttl_seconds=60)
        repo.claim("done", ttl_seconds=60)
        repo.complete("done", response_body="x", status_code=200)
        repo.claim("new", ttl_seconds=60)

        assert len(repo) == 2
        assert repo.get("done") is None
        assert repo.get("running") is not None

    def test_eviction_never_drops_in_progress_claims(self):
        repo = IdempotencyRepositoryMemory(max_entries=1)
        assert repo.claim("a", ttl_seconds=60) is True
        assert repo.claim("b", ttl_seconds=60) is True

        assert repo.get("a") is not None
        assert repo.claim("a", ttl_seconds=60) is False
        assert len(repo) == 2

    def test_overflow_shrinks_once_claims_complete(self):
        repo = IdempotencyRepositoryMemory(max_entries=1)
        repo.claim("a", ttl_seconds=60)
        repo.claim("b", ttl_seconds=60)
        repo.complete("a", response_body="x", status_code=200)
        repo.claim("c", ttl_seconds=60)

        assert repo.get("a") is None
        assert repo.get("b") is not None
        assert repo.get("c") is not None

    def test_get_returns_a_copy(self, repo):
        repo.claim("a", ttl_seconds=60)
        repo.get("a").response_body = "tampered"
        assert repo.get("a").response_body is None


class TestIdempotencyService:
    @pytest.mark.asyncio
    async def test_replay_returns_stored_response(self, service):
        handler = CountingHandler(body='{"id":1}', status_code=201)
        first = await service.execute("key-1", handler)
        second = await service.execute("key-1", handler)

        assert handler.calls == 1
        assert first.replayed is False
        assert second.replayed is True
        assert second.body == first.body
        assert second.status_code == 201

    @pytest.mark.asyncio
    async def test_concurrent_same_key_runs_once(self, service):
        handler = CountingHandler(delay=0.05)
        a, b = await asyncio.gather(service.execute("same", handler), service.execute("same", handler))

        assert handler.calls == 1
        assert a.body == b.body
        assert sorted([a.replayed, b.replayed]) == [False, True]

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self, service):
        handler = CountingHandler(delay=0.01)
        await asyncio.gather(service.execute("one", handler), service.execute("two", handler))
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_blank_key_never_runs_handler(self, service):
        handler = CountingHandler()
        with pytest.raises(ValidationError):
            await service.execute("  ", handler)
        assert handler.calls == 0

    @pytest.mark.asyncio
    async def test_failure_releases_claim(self, service, repo):
        failing = CountingHandler(error=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            await service.execute("retry-me", failing)
        assert repo.get("retry-me") is None

        ok = CountingHandler()
        result = await service.execute("retry-me", ok)
        assert ok.calls == 1
        assert result.replayed is False

    @pytest.mark.asyncio
    async def test_non_2xx_is_not_stored(self, service, repo):
        handler = CountingHandler(body='{"detail":"bad"}', status_code=400)
        await service.execute("k", handler)
        await service.execute("k", handler)
        assert handler.calls == 2
        assert repo.get("k") is None

    @pytest.mark.asyncio
    async def test_waiter_gives_up_while_in_progress(self, repo):
        repo.claim("stuck", ttl_seconds=60)
        service = IdempotencyService(repo=repo, wait_seconds=0.05, poll_interval=0.01)
        handler = CountingHandler()
        with pytest.raises(IdempotencyInProgress):
            await service.execute("stuck", handler)
        assert handler.calls == 0

    @pytest.mark.asyncio
    async def test_full_store_keeps_running_claim(self):
        repo = IdempotencyRepositoryMemory(max_entries=1)
        service = IdempotencyService(repo=repo, wait_seconds=2.0, poll_interval=0.01)
        slow = CountingHandler(body='{"id":"a"}', delay=0.1)
        other = CountingHandler(body='{"id":"b"}')

        async def then_other_and_duplicate():
            await asyncio.sleep(0.02)
            await service.execute("B", other)
            return await service.execute("A", slow)

        first, dup = await asyncio.gather(service.execute("A", slow), then_other_and_duplicate())

        assert slow.calls == 1
        assert first.replayed is False
        assert dup.replayed is True
        assert dup.body == '{"id":"a"}'

    @pytest.mark.asyncio
    async def test_repository_calls_leave_the_event_loop_thread(self):
        loop_thread = threading.get_ident()
        seen = []

        class RecordingRepo(IdempotencyRepositoryMemory):
            def claim(self, key, *, ttl_seconds):
                seen.append(threading.get_ident())
                return super().claim(key, ttl_seconds=ttl_seconds)

        service = IdempotencyService(repo=RecordingRepo(), wait_seconds=1.0, poll_interval=0.01)
        await service.execute("k", CountingHandler())

        assert seen and loop_thread not in seen
