from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field

from core.domain.entities.base_entity import MongoEntity
from core.domain.enums.transfer_enums import TransferStatus


class TransferExecutionEntity(MongoEntity):
    """
    Mongo document (collection: transfer_executions).

    The rule engine's view of one rule execution. Mirrors the provider
    transfer status as reported by webhooks; never leaves a terminal status.
    """

    rule_id: Optional[str] = None
    user_id: str
    idempotency_key: str

    transfer_id: str
    wallet_id: str
    chain: str
    destination_address: str

    asset: str
    amount: str  # decimal string, asset units
    amount_usd: str = Field(default="0")
    fee_estimate_usd: str = Field(default="0")

    status: TransferStatus = TransferStatus.PENDING
    transaction_hash: Optional[str] = None
    error_code: Optional[str] = None

    triggered_by: str = "manual"

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    @property
    def amount_decimal(self) -> Decimal:
        return Decimal(self.amount)
