from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from core.domain.schemas.routing_types import TransferRule


class ExecuteRuleRequest(BaseModel):
    rule: TransferRule
    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "userId"))
    rule_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("rule_id", "ruleId"))
    confirmed: bool = Field(default=False, description="Explicit user confirmation for large transfers")
    triggered_by: str = Field(default="manual", validation_alias=AliasChoices("triggered_by", "triggeredBy"))

    @field_validator("user_id")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Field is required.")
        return v

    @field_validator("triggered_by")
    @classmethod
    def _trigger(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in ("manual", "schedule", "condition"):
            raise ValueError('triggered_by must be "manual", "schedule" or "condition".')
        return v
