from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class WebhookEventData(BaseModel):
    id: str
    status: Optional[str] = None
    amount: Optional[Dict[str, Any]] = None
    create_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("createDate", "create_date"))
    update_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("updateDate", "update_date"))
    transaction_hash: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("transactionHash", "transaction_hash")
    )
    error_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("errorCode", "error_code"))

    model_config = ConfigDict(extra="allow")


class WebhookEvent(BaseModel):
    """
    Provider notification as received on the wire (camelCase keys accepted).
    """

    type: str
    data: WebhookEventData
    notification_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("notificationId", "notification_id")
    )

    model_config = ConfigDict(extra="allow")
