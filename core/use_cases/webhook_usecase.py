from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository
from core.domain.repositories.webhook_event_repository_interface import WebhookEventRepository
from core.domain.schemas.webhook_types import WebhookEvent
from core.services.exceptions import ValidationError
from core.services.execution_status import RuleEngineNotifier, apply_transfer_update
from core.services.webhook_verifier import DEFAULT_TOLERANCE_SEC, verify_webhook_signature

logger = logging.getLogger(__name__)

# provider wording -> transfer lifecycle
WEBHOOK_STATUSES = {
    "pending": TransferStatus.PENDING,
    "running": TransferStatus.RUNNING,
    "complete": TransferStatus.COMPLETE,
    "completed": TransferStatus.COMPLETE,
    "confirmed": TransferStatus.COMPLETE,
    "failed": TransferStatus.FAILED,
}


@dataclass
class WebhookUseCase:
    """
    Inbound provider notifications.

    Order: authenticate -> parse -> replay check -> dispatch. Anything that
    fails before dispatch leaves no trace.
    """

    secret: str
    event_repo: WebhookEventRepository
    execution_repo: TransferExecutionRepository
    notifier: Optional[RuleEngineNotifier] = None
    tolerance_seconds: int = DEFAULT_TOLERANCE_SEC
    replay_ttl_seconds: int = 600
    clock: Callable[[], float] = field(default=time.time)

    @classmethod
    def from_settings(cls) -> "WebhookUseCase":
        from adapters.external.runtime import (
            get_execution_repo,
            get_notifier,
            get_runtime_settings,
            get_webhook_event_repo,
        )

        st = get_runtime_settings()
        return cls(
            secret=st.CIRCLE_WEBHOOK_SECRET,
            event_repo=get_webhook_event_repo(),
            execution_repo=get_execution_repo(),
            notifier=get_notifier(),
            tolerance_seconds=st.WEBHOOK_TOLERANCE_SEC,
            replay_ttl_seconds=st.WEBHOOK_REPLAY_TTL_SEC,
        )

    @staticmethod
    def _parse(body: bytes) -> WebhookEvent:
        try:
            return WebhookEvent.model_validate(json.loads(body))
        except ValueError as exc:
            raise ValidationError(f"Malformed webhook payload: {exc}") from exc

    @staticmethod
    def _event_key(event: WebhookEvent, signature: str) -> str:
        if event.notification_id:
            return f"notification:{event.notification_id}"
        return f"signature:{signature.strip()}"

    def _handle_transfer(self, event: WebhookEvent) -> dict:
        raw = (event.data.status or "").strip().lower()
        status = WEBHOOK_STATUSES.get(raw)
        if status is None:
            logger.info("Transfer webhook %s with unknown status %r ignored", event.data.id, event.data.status)
            return {"handled": False, "execution_id": None}

        updated = apply_transfer_update(
            self.execution_repo,
            transfer_id=event.data.id,
            status=status,
            transaction_hash=event.data.transaction_hash,
            error_code=event.data.error_code,
            notifier=self.notifier,
        )
        return {"handled": True, "execution_id": updated.id if updated else None}

    def handle(self, *, body: bytes, signature: Optional[str], timestamp: Optional[str]) -> dict:
        verify_webhook_signature(
            body,
            signature,
            timestamp,
            self.secret,
            now=self.clock(),
            tolerance_seconds=self.tolerance_seconds,
        )
        event = self._parse(body)

        first_seen = self.event_repo.mark_seen(
            self._event_key(event, signature or ""),
            ttl_seconds=self.replay_ttl_seconds,
            type=event.type,
            resource_id=event.data.id,
        )
        data = {"type": event.type, "resource_id": event.data.id, "duplicate": not first_seen}
        if not first_seen:
            logger.info("Webhook replay ignored: type=%s resource=%s", event.type, event.data.id)
            return {"ok": True, "message": "Duplicate webhook ignored", "data": {**data, "handled": False}}

        kind = event.type.strip().lower()
        if kind == "transfers":
            data.update(self._handle_transfer(event))
        elif kind in ("payments", "payouts"):
            logger.info("Webhook %s for %s acknowledged (status=%s)", kind, event.data.id, event.data.status)
            data["handled"] = True
        else:
            logger.info("Unhandled webhook type %s for %s", event.type, event.data.id)
            data["handled"] = False

        return {"ok": True, "message": "Webhook processed", "data": data}
