from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from core.domain.enums.chain_enums import Chain
from core.domain.schemas.provider_types import (
    ProviderTransfer,
    ProviderUser,
    ProviderWallet,
    TransferTimeEstimate,
)


class ProviderClient(ABC):
    """
    Capability interface of the custodial payment provider.

    Variants: MockProvider (in-process simulation) and LiveProvider (REST).
    The variant is chosen once at construction.
    """

    @abstractmethod
    async def create_user(self, email: str) -> ProviderUser:
        raise NotImplementedError

    @abstractmethod
    async def get_user(self, user_id: str) -> ProviderUser:
        raise NotImplementedError

    @abstractmethod
    async def create_wallet(self, user_id: str, chain: Chain) -> ProviderWallet:
        raise NotImplementedError

    @abstractmethod
    async def list_wallets(self, user_id: str) -> List[ProviderWallet]:
        raise NotImplementedError

    @abstractmethod
    async def get_wallet(self, wallet_id: str) -> ProviderWallet:
        raise NotImplementedError

    @abstractmethod
    async def transfer_usdc(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        chain: Chain,
        idempotency_key: str,
        currency: str = "USDC",
    ) -> ProviderTransfer:
        raise NotImplementedError

    @abstractmethod
    async def transfer_cctp(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        destination_chain: Chain,
        idempotency_key: str,
    ) -> ProviderTransfer:
        raise NotImplementedError

    @abstractmethod
    async def get_transfer(self, transfer_id: str) -> ProviderTransfer:
        raise NotImplementedError

    @abstractmethod
    async def cancel_transfer(self, transfer_id: str) -> ProviderTransfer:
        raise NotImplementedError

    @abstractmethod
    def estimate_transfer_time(self, chain: Chain, destination_chain: Optional[Chain] = None) -> TransferTimeEstimate:
        raise NotImplementedError

    @abstractmethod
    def validate_address(self, address: str, chain: Chain) -> bool:
        raise NotImplementedError

    async def initiate_transfer(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        chain: Chain,
        idempotency_key: str,
        currency: str = "USDC",
    ) -> ProviderTransfer:
        """
        Same-chain transfer when `chain` matches the source wallet, CCTP otherwise.
        """
        wallet = await self.get_wallet(wallet_id)
        if Chain(wallet.blockchain) == Chain(chain):
            return await self.transfer_usdc(
                wallet_id=wallet_id,
                destination_address=destination_address,
                amount=amount,
                chain=Chain(chain),
                idempotency_key=idempotency_key,
                currency=currency,
            )
        return await self.transfer_cctp(
            wallet_id=wallet_id,
            destination_address=destination_address,
            amount=amount,
            destination_chain=Chain(chain),
            idempotency_key=idempotency_key,
        )
