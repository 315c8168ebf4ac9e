from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from adapters.entry.http.views.errors import http_error
from core.use_cases.webhook_usecase import WebhookUseCase


router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_use_case() -> WebhookUseCase:
    return WebhookUseCase.from_settings()


@router.post("/circle")
async def circle_webhook(
    request: Request,
    signature: Optional[str] = Header(default=None, alias="X-Circle-Signature"),
    timestamp: Optional[str] = Header(default=None, alias="X-Circle-Timestamp"),
    use_case: WebhookUseCase = Depends(get_use_case),
):
    # the signature covers the raw bytes, so the body is never re-serialized
    body = await request.body()
    try:
        return use_case.handle(body=body, signature=signature, timestamp=timestamp)
    except Exception as exc:
        raise http_error(exc, "process webhook") from exc
