from __future__ import annotations

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from web3 import Web3

from core.domain.enums.chain_enums import Chain


ZERO = "0x0000000000000000000000000000000000000000"


def _validate_addr(v: str) -> str:
    v = (v or "").strip()
    if not Web3.is_address(v):
        raise ValueError("Invalid address (expected 0x...).")
    v = Web3.to_checksum_address(v)
    if v.lower() == ZERO:
        raise ValueError("Address cannot be zero.")
    return v


class CreateUserRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email.")
        return v


class CreateWalletRequest(BaseModel):
    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "userId"))
    chain: Chain = Field(..., validation_alias=AliasChoices("chain", "blockchain"))

    @field_validator("user_id")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Field is required.")
        return v


class CreateTransferRequest(BaseModel):
    wallet_id: str = Field(..., validation_alias=AliasChoices("wallet_id", "walletId"))
    destination_address: str = Field(
        ..., validation_alias=AliasChoices("destination_address", "destinationAddress")
    )
    amount: Decimal = Field(..., gt=0)
    chain: Chain = Field(..., description="Destination chain; differs from the wallet chain for CCTP")

    @field_validator("wallet_id")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Field is required.")
        return v

    @field_validator("destination_address")
    @classmethod
    def _addr_destination(cls, v: str) -> str:
        return _validate_addr(v)
