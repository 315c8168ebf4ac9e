"""
At-most-once execution keyed by a client-supplied idempotency key.

Claim-then-execute:
  1. atomically claim the key (in-progress placeholder);
  2. the claimant runs the operation once and stores its 2xx response;
  3. anyone else waits for the stored response and gets it verbatim.

A failed operation (exception or non-2xx) releases the claim so the client
can retry with the same key. Repository calls are blocking and run in the
threadpool.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import monotonic
from typing import Awaitable, Callable, Tuple

from fastapi.concurrency import run_in_threadpool

from core.domain.enums.idempotency_enums import IdempotencyStatus
from core.domain.repositories.idempotency_repository_interface import IdempotencyRepository
from core.services.exceptions import IdempotencyInProgress, ValidationError

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 255
DEFAULT_TTL_SEC = 24 * 60 * 60
DEFAULT_WAIT_SEC = 10.0
POLL_INTERVAL_SEC = 0.05

# (response_body, status_code)
Handler = Callable[[], Awaitable[Tuple[str, int]]]


@dataclass(frozen=True)
class IdempotentResult:
    body: str
    status_code: int
    replayed: bool


def validate_idempotency_key(key: str | None) -> str:
    k = (key or "").strip()
    if not k:
        raise ValidationError("Missing Idempotency-Key header")
    if len(k) > MAX_KEY_LENGTH:
        raise ValidationError(f"Idempotency-Key must be at most {MAX_KEY_LENGTH} characters")
    return k


@dataclass
class IdempotencyService:
    repo: IdempotencyRepository
    ttl_seconds: int = DEFAULT_TTL_SEC
    wait_seconds: float = DEFAULT_WAIT_SEC
    poll_interval: float = POLL_INTERVAL_SEC

    async def _await_stored(self, key: str) -> IdempotentResult | None:
        deadline = monotonic() + self.wait_seconds
        while True:
            rec = await run_in_threadpool(self.repo.get, key)
            if rec is None:
                # claimant failed and released; caller may try to claim again
                return None
            if rec.status == IdempotencyStatus.COMPLETED:
                logger.info("Idempotency replay for key=%s", key)
                return IdempotentResult(body=rec.response_body or "", status_code=int(rec.status_code or 200), replayed=True)
            if monotonic() >= deadline:
                raise IdempotencyInProgress(key)
            await asyncio.sleep(self.poll_interval)

    async def execute(self, key: str | None, handler: Handler) -> IdempotentResult:
        key = validate_idempotency_key(key)

        while True:
            if await run_in_threadpool(self.repo.claim, key, ttl_seconds=self.ttl_seconds):
                break
            stored = await self._await_stored(key)
            if stored is not None:
                return stored

        try:
            body, status_code = await handler()
        except BaseException:
            await run_in_threadpool(self.repo.release, key)
            raise

        if 200 <= int(status_code) < 300:
            await run_in_threadpool(self.repo.complete, key, response_body=body, status_code=int(status_code))
        else:
            await run_in_threadpool(self.repo.release, key)
        return IdempotentResult(body=body, status_code=int(status_code), replayed=False)
