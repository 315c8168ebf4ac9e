from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from config import get_settings
from core.domain.enums.chain_enums import Asset, Chain
from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.provider_client_interface import ProviderClient
from core.domain.schemas.provider_types import (
    Money,
    ProviderTransfer,
    ProviderUser,
    ProviderWallet,
    TransferDestination,
    TransferSource,
    TransferTimeEstimate,
)
from core.services.chain_registry import estimate_transfer_time, get_chain_config, is_evm_address
from core.services.exceptions import NotFoundError, ProviderUnavailable, ValidationError

logger = logging.getLogger(__name__)

# Circle blockchain codes are the registry short names
CODE_CHAINS: Dict[str, Chain] = {get_chain_config(c).short_name: c for c in Chain}

STATUS_MAP: Dict[str, TransferStatus] = {
    "pending": TransferStatus.PENDING,
    "queued": TransferStatus.PENDING,
    "running": TransferStatus.RUNNING,
    "sent": TransferStatus.RUNNING,
    "complete": TransferStatus.COMPLETE,
    "confirmed": TransferStatus.COMPLETE,
    "failed": TransferStatus.FAILED,
    "cancelled": TransferStatus.FAILED,
}


def _chain_from_code(code: Optional[str]) -> Chain:
    raw = (code or "").strip()
    if raw.upper() in CODE_CHAINS:
        return CODE_CHAINS[raw.upper()]
    return Chain(raw.lower())


def map_transfer_status(raw: Optional[str]) -> TransferStatus:
    status = STATUS_MAP.get((raw or "").strip().lower())
    if status is None:
        raise ProviderUnavailable("circle", f"unknown transfer status {raw!r}")
    return status


def _map_user(d: Dict[str, Any]) -> ProviderUser:
    return ProviderUser(id=str(d["id"]), email=d.get("email") or "", created_at=d.get("createDate") or "")


def _map_wallet(d: Dict[str, Any]) -> ProviderWallet:
    balances = {
        str(b.get("currency")): Decimal(str(b.get("amount") or "0"))
        for b in (d.get("balances") or [])
        if b.get("currency")
    }
    return ProviderWallet(
        id=str(d.get("walletId") or d["id"]),
        user_id=str(d.get("userId") or ""),
        blockchain=_chain_from_code(d.get("blockchain") or d.get("chain")),
        address=d.get("address") or "",
        state=(d.get("state") or "LIVE").upper(),
        balances=balances,
    )


def _map_transfer(d: Dict[str, Any]) -> ProviderTransfer:
    status = map_transfer_status(d.get("status"))
    source = d.get("source") or {}
    dest = d.get("destination") or {}
    amount = d.get("amount") or {}
    return ProviderTransfer(
        id=str(d["id"]),
        source=TransferSource(id=str(source.get("id") or "")),
        destination=TransferDestination(address=dest.get("address") or "", chain=_chain_from_code(dest.get("chain"))),
        amount=Money(currency=amount.get("currency") or Asset.USDC.value, amount=Decimal(str(amount.get("amount") or "0"))),
        status=status,
        # the hash may be announced before completion; only a complete transfer carries one
        transaction_hash=d.get("transactionHash") if status == TransferStatus.COMPLETE else None,
        create_date=d.get("createDate") or "",
        update_date=d.get("updateDate") or d.get("createDate") or "",
        idempotency_key=d.get("idempotencyKey"),
        cross_chain=bool(d.get("crossChain", False)),
        error_code=d.get("errorCode"),
        error_message=d.get("errorMessage"),
    )


@dataclass
class LiveProvider(ProviderClient):
    """
    Circle-style REST client.

    Every response body is wrapped as {"data": ...}. 400/422 become
    ValidationError, 404 NotFoundError, anything else (or a transport error)
    ProviderUnavailable. Nothing is retried here.
    """

    base_url: str
    api_key: str
    timeout: float = 15.0
    enable_cctp: bool = False
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, *, enable_cctp: bool = False) -> "LiveProvider":
        st = get_settings()
        return cls(
            base_url=(st.CIRCLE_API_BASE_URL or "").rstrip("/"),
            api_key=st.CIRCLE_API_KEY,
            enable_cctp=enable_cctp,
        )

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, headers=headers, transport=self.transport)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        kind: str,
        ref: str = "",
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with self._client() as cli:
                res = await cli.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Circle %s %s failed: %s", method, path, exc)
            raise ProviderUnavailable("circle", str(exc) or type(exc).__name__) from exc

        try:
            data = res.json() if res.content else {}
        except ValueError:
            data = None
        info = data if isinstance(data, dict) else {}

        if res.status_code == 404:
            raise NotFoundError(kind, ref or path)
        if res.status_code in (400, 422):
            raise ValidationError(info.get("message") or f"circle_error_{res.status_code}")
        if res.status_code >= 400:
            logger.warning("Circle %s %s returned %s", method, path, res.status_code)
            raise ProviderUnavailable("circle", info.get("message") or f"circle_error_{res.status_code}")
        if data is None:
            logger.warning("Circle %s %s returned a non-JSON body", method, path)
            raise ProviderUnavailable("circle", "malformed_response")
        return info.get("data", data)

    # ---------- users / wallets ----------

    async def create_user(self, email: str) -> ProviderUser:
        body = {"idempotencyKey": str(uuid.uuid4()), "email": email}
        return _map_user(await self._request("POST", "/users", kind="User", json=body))

    async def get_user(self, user_id: str) -> ProviderUser:
        return _map_user(await self._request("GET", f"/users/{user_id}", kind="User", ref=user_id))

    async def create_wallet(self, user_id: str, chain: Chain) -> ProviderWallet:
        body = {
            "idempotencyKey": str(uuid.uuid4()),
            "userId": user_id,
            "blockchain": get_chain_config(chain).short_name,
        }
        return _map_wallet(await self._request("POST", "/wallets", kind="Wallet", json=body))

    async def list_wallets(self, user_id: str) -> List[ProviderWallet]:
        rows = await self._request("GET", "/wallets", kind="User", ref=user_id, params={"userId": user_id})
        return [_map_wallet(r) for r in (rows or [])]

    async def get_wallet(self, wallet_id: str) -> ProviderWallet:
        return _map_wallet(await self._request("GET", f"/wallets/{wallet_id}", kind="Wallet", ref=wallet_id))

    # ---------- transfers ----------

    def _transfer_body(
        self, *, wallet_id: str, address: str, amount: Decimal, chain: Chain, idempotency_key: str, currency: str
    ) -> Dict[str, Any]:
        if Decimal(str(amount)) <= 0:
            raise ValidationError("Amount must be a positive decimal")
        if not self.validate_address(address, chain):
            raise ValidationError(f"Invalid destination address: {address}")
        return {
            "idempotencyKey": idempotency_key,
            "source": {"type": "wallet", "id": wallet_id},
            "destination": {"type": "blockchain", "address": address, "chain": get_chain_config(chain).short_name},
            "amount": {"amount": str(amount), "currency": currency},
        }

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
        body = self._transfer_body(
            wallet_id=wallet_id,
            address=destination_address,
            amount=amount,
            chain=chain,
            idempotency_key=idempotency_key,
            currency=currency,
        )
        transfer = _map_transfer(await self._request("POST", "/transfers", kind="Wallet", ref=wallet_id, json=body))
        logger.info("Circle transfer %s created (%s)", transfer.id, transfer.status)
        return transfer

    async def transfer_cctp(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        destination_chain: Chain,
        idempotency_key: str,
    ) -> ProviderTransfer:
        if not self.enable_cctp:
            raise ValidationError("Cross-chain transfers are disabled (ENABLE_CCTP=false)")
        body = self._transfer_body(
            wallet_id=wallet_id,
            address=destination_address,
            amount=amount,
            chain=destination_chain,
            idempotency_key=idempotency_key,
            currency=Asset.USDC.value,
        )
        data = await self._request("POST", "/transfers", kind="Wallet", ref=wallet_id, json=body)
        data.setdefault("crossChain", True)
        transfer = _map_transfer(data)
        logger.info("Circle CCTP transfer %s created (%s)", transfer.id, transfer.status)
        return transfer

    async def get_transfer(self, transfer_id: str) -> ProviderTransfer:
        return _map_transfer(await self._request("GET", f"/transfers/{transfer_id}", kind="Transfer", ref=transfer_id))

    async def cancel_transfer(self, transfer_id: str) -> ProviderTransfer:
        data = await self._request("POST", f"/transfers/{transfer_id}/cancel", kind="Transfer", ref=transfer_id)
        return _map_transfer(data)

    def estimate_transfer_time(self, chain: Chain, destination_chain: Optional[Chain] = None) -> TransferTimeEstimate:
        return estimate_transfer_time(chain, destination_chain)

    def validate_address(self, address: str, chain: Chain) -> bool:
        return is_evm_address(address)
