from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict

from core.domain.entities.base_entity import MongoEntity
from core.domain.enums.idempotency_enums import IdempotencyStatus


class IdempotencyRecordEntity(MongoEntity):
    """
    Mongo document (collection: idempotency_records).
    One record per client-supplied key.

    Written as an IN_PROGRESS placeholder when the key is claimed and turned
    into COMPLETED exactly once, carrying the verbatim response body.
    """

    key: str
    status: IdempotencyStatus = IdempotencyStatus.IN_PROGRESS

    response_body: Optional[str] = None
    status_code: Optional[int] = None

    # unix ms; past this instant the record may be evicted
    expires_at: int

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= int(self.expires_at)
