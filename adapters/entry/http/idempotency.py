from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Optional

from fastapi import Response
from fastapi.encoders import jsonable_encoder

from core.services.idempotency_service import IdempotencyService

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotent"


async def run_idempotent(
    service: IdempotencyService,
    idempotency_key: Optional[str],
    action: Callable[[], Awaitable[Any]],
    *,
    status_code: int = 200,
) -> Response:
    """
    Run `action` at most once per key and answer with its stored JSON body.

    Replays carry the first response byte for byte plus `X-Idempotent: true`.
    """

    async def handler():
        payload = await action()
        body = json.dumps(jsonable_encoder(payload), separators=(",", ":"))
        return body, status_code

    result = await service.execute(idempotency_key, handler)
    headers = {REPLAY_HEADER: "true"} if result.replayed else {}
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type="application/json",
        headers=headers,
    )
