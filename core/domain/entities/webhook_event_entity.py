from __future__ import annotations

from pydantic import ConfigDict

from core.domain.entities.base_entity import MongoEntity


class WebhookEventEntity(MongoEntity):
    """
    Mongo document (collection: webhook_events).

    Replay marker for an authenticated provider notification. Only the key is
    needed; type/resource are kept for troubleshooting.
    """

    event_key: str
    type: str = ""
    resource_id: str = ""

    # unix ms; markers only need to outlive the signature timestamp window
    expires_at: int

    model_config = ConfigDict(extra="allow")
