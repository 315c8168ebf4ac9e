from __future__ import annotations

from decimal import Decimal
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.domain.enums.chain_enums import Chain
from core.domain.enums.transfer_enums import TransferStatus, WalletState


class ProviderUser(BaseModel):
    id: str
    email: str
    created_at: str

    model_config = ConfigDict(use_enum_values=True)


class ProviderWallet(BaseModel):
    """
    Custodial wallet held at the provider.

    Balances are keyed by asset symbol and only move through transfer settlement.
    """

    id: str
    user_id: str
    blockchain: Chain
    address: str
    state: WalletState = WalletState.LIVE
    balances: Dict[str, Decimal] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)


class TransferSource(BaseModel):
    type: Literal["wallet"] = "wallet"
    id: str


class TransferDestination(BaseModel):
    type: Literal["blockchain"] = "blockchain"
    address: str
    chain: Chain

    model_config = ConfigDict(use_enum_values=True)


class Money(BaseModel):
    currency: str
    amount: Decimal


class ProviderTransfer(BaseModel):
    """
    Transfer owned by the provider engine.

    `transaction_hash` is present iff `status == complete`.
    """

    id: str
    source: TransferSource
    destination: TransferDestination
    amount: Money
    status: TransferStatus = TransferStatus.PENDING
    transaction_hash: Optional[str] = None
    create_date: str
    update_date: str

    idempotency_key: Optional[str] = None
    cross_chain: bool = False

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    gas_used: Optional[str] = None
    block_number: Optional[int] = None
    confirmations: Optional[int] = None

    model_config = ConfigDict(use_enum_values=True)


class TransferTimeEstimate(BaseModel):
    """Settlement time window in minutes."""

    min: float
    max: float
    typical: float
