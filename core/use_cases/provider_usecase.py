from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.domain.enums.chain_enums import Chain
from core.domain.repositories.provider_client_interface import ProviderClient
from core.services.chain_registry import explorer_tx_url


def _transfer_data(t) -> dict:
    data = t.model_dump(mode="json")
    data["explorer_url"] = explorer_tx_url(t.destination.chain, t.transaction_hash) if t.transaction_hash else None
    return data


@dataclass
class ProviderUseCase:
    provider: ProviderClient

    @classmethod
    def from_settings(cls) -> "ProviderUseCase":
        from adapters.external.runtime import get_provider

        return cls(provider=get_provider())

    async def create_user(self, *, email: str) -> dict:
        user = await self.provider.create_user(email)
        return {"ok": True, "message": "User created", "data": user.model_dump(mode="json")}

    async def get_user(self, *, user_id: str) -> dict:
        user = await self.provider.get_user(user_id)
        return {"ok": True, "message": "OK", "data": user.model_dump(mode="json")}

    async def create_wallet(self, *, user_id: str, chain: Chain) -> dict:
        wallet = await self.provider.create_wallet(user_id, chain)
        return {"ok": True, "message": "Wallet created", "data": wallet.model_dump(mode="json")}

    async def list_wallets(self, *, user_id: str) -> dict:
        wallets = await self.provider.list_wallets(user_id)
        return {"ok": True, "message": "OK", "data": [w.model_dump(mode="json") for w in wallets]}

    async def get_wallet(self, *, wallet_id: str) -> dict:
        wallet = await self.provider.get_wallet(wallet_id)
        return {"ok": True, "message": "OK", "data": wallet.model_dump(mode="json")}

    async def initiate_transfer(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        chain: Chain,
        idempotency_key: str,
    ) -> dict:
        transfer = await self.provider.initiate_transfer(
            wallet_id=wallet_id,
            destination_address=destination_address,
            amount=amount,
            chain=chain,
            idempotency_key=idempotency_key,
        )
        return {"ok": True, "message": "Transfer created", "data": _transfer_data(transfer)}

    async def get_transfer(self, *, transfer_id: str) -> dict:
        transfer = await self.provider.get_transfer(transfer_id)
        return {"ok": True, "message": "OK", "data": _transfer_data(transfer)}

    async def cancel_transfer(self, *, transfer_id: str) -> dict:
        transfer = await self.provider.cancel_transfer(transfer_id)
        return {"ok": True, "message": "Transfer cancelled", "data": _transfer_data(transfer)}

    def estimate_transfer_time(self, *, chain: Chain, destination_chain: Optional[Chain] = None) -> dict:
        est = self.provider.estimate_transfer_time(chain, destination_chain)
        return {"ok": True, "message": "OK", "data": est.model_dump(mode="json")}
