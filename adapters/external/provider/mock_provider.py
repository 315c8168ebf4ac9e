"""
In-process simulation of the custodial payment provider.

Transfers are created `pending` and a single completion task is scheduled
per transfer (same-chain vs. CCTP delay). When it fires the transfer settles
to `complete` (hash, gas, block, confirmations, source balance debited) or
`failed` (random failure rate, or insufficient balance). A settled transfer
never changes again; cancellation marks it failed and cancels its token.

Locking order: transfer lock, then the store lock.
"""

from __future__ import annotations

import logging
import random
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional

from eth_account import Account
from web3 import Web3

from core.domain.enums.chain_enums import Asset, Chain
from core.domain.enums.transfer_enums import (
    RANDOM_FAILURE_CODES,
    TRANSFER_ERROR_MESSAGES,
    TransferErrorCode,
    TransferStatus,
)
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
from core.services.chain_registry import estimate_transfer_time, is_evm_address
from core.services.exceptions import NotFoundError, TransferStateError, ValidationError
from core.services.scheduler import CancellationToken, TaskScheduler

logger = logging.getLogger(__name__)

DEMO_BALANCES: Dict[str, Decimal] = {
    Asset.USDC.value: Decimal("1000.00"),
    Asset.EURC.value: Decimal("750.00"),
}

SAME_CHAIN_DELAY_SEC = 2.0
CROSS_CHAIN_DELAY_SEC = 10.0
DEFAULT_FAILURE_RATE = 0.02

SAME_CHAIN_CONFIRMATIONS = 6
CROSS_CHAIN_CONFIRMATIONS = 12

SettlementListener = Callable[[ProviderTransfer], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:20]}"


def _parse_amount(amount: Decimal | str | float) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive decimal")
    return value


class _TransferSlot:
    """
    Mutable transfer state plus the lock and token that guard it.
    """

    __slots__ = ("transfer", "lock", "token")

    def __init__(self, transfer: ProviderTransfer) -> None:
        self.transfer = transfer
        self.lock = threading.Lock()
        self.token = CancellationToken()


class MockProvider(ProviderClient):
    def __init__(
        self,
        *,
        scheduler: TaskScheduler,
        rng: Optional[random.Random] = None,
        failure_rate: float = DEFAULT_FAILURE_RATE,
        same_chain_delay: float = SAME_CHAIN_DELAY_SEC,
        cross_chain_delay: float = CROSS_CHAIN_DELAY_SEC,
        enable_cctp: bool = False,
    ) -> None:
        self._scheduler = scheduler
        self._rng = rng or random.Random()
        self._failure_rate = float(failure_rate)
        self._same_chain_delay = float(same_chain_delay)
        self._cross_chain_delay = float(cross_chain_delay)
        self._enable_cctp = bool(enable_cctp)

        self._lock = threading.RLock()
        self._users: Dict[str, ProviderUser] = {}
        self._wallets: Dict[str, ProviderWallet] = {}
        self._transfers: Dict[str, _TransferSlot] = {}
        self._by_idempotency_key: Dict[str, str] = {}
        self._listeners: List[SettlementListener] = []

    # ---------- listeners ----------

    def subscribe(self, listener: SettlementListener) -> None:
        """
        Called with a snapshot every time a transfer reaches a terminal status.
        """
        with self._lock:
            self._listeners.append(listener)

    def _emit(self, snapshot: ProviderTransfer) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Settlement listener failed for transfer %s", snapshot.id)

    # ---------- users / wallets ----------

    async def create_user(self, email: str) -> ProviderUser:
        email = (email or "").strip()
        if "@" not in email:
            raise ValidationError("A valid email is required")
        user = ProviderUser(id=_short_id("user"), email=email, created_at=_now_iso())
        with self._lock:
            self._users[user.id] = user
        logger.info("Mock provider created user %s", user.id)
        return user.model_copy(deep=True)

    def _require_user(self, user_id: str) -> ProviderUser:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_user(self, user_id: str) -> ProviderUser:
        with self._lock:
            return self._require_user(user_id).model_copy(deep=True)

    async def create_wallet(self, user_id: str, chain: Chain) -> ProviderWallet:
        chain = Chain(chain)
        with self._lock:
            self._require_user(user_id)
            wallet = ProviderWallet(
                id=_short_id("wallet"),
                user_id=user_id,
                blockchain=chain,
                address=Account.create().address,
                balances=dict(DEMO_BALANCES),
            )
            self._wallets[wallet.id] = wallet
        logger.info("Mock provider created wallet %s on %s for user %s", wallet.id, chain.value, user_id)
        return wallet.model_copy(deep=True)

    async def list_wallets(self, user_id: str) -> List[ProviderWallet]:
        with self._lock:
            self._require_user(user_id)
            return [w.model_copy(deep=True) for w in self._wallets.values() if w.user_id == user_id]

    def _require_wallet(self, wallet_id: str) -> ProviderWallet:
        wallet = self._wallets.get(wallet_id)
        if wallet is None:
            raise NotFoundError("Wallet", wallet_id)
        return wallet

    async def get_wallet(self, wallet_id: str) -> ProviderWallet:
        with self._lock:
            return self._require_wallet(wallet_id).model_copy(deep=True)

    # ---------- transfers ----------

    def _create_transfer(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal | str,
        chain: Chain,
        idempotency_key: str,
        currency: str,
        cross_chain: bool,
    ) -> ProviderTransfer:
        value = _parse_amount(amount)
        if not self.validate_address(destination_address, chain):
            raise ValidationError(f"Invalid destination address: {destination_address}")
        key = (idempotency_key or "").strip()
        if not key:
            raise ValidationError("idempotency_key is required")

        with self._lock:
            existing_id = self._by_idempotency_key.get(key)
            existing = self._transfers[existing_id] if existing_id is not None else None
            if existing is None:
                wallet = self._require_wallet(wallet_id)
                if not cross_chain and Chain(wallet.blockchain) != chain:
                    raise ValidationError(
                        f"Wallet {wallet_id} is on {wallet.blockchain}; use a cross-chain transfer for {chain.value}"
                    )

                now = _now_iso()
                transfer = ProviderTransfer(
                    id=_short_id("transfer"),
                    source=TransferSource(id=wallet_id),
                    destination=TransferDestination(address=destination_address, chain=chain),
                    amount=Money(currency=currency, amount=value),
                    status=TransferStatus.PENDING,
                    create_date=now,
                    update_date=now,
                    idempotency_key=key,
                    cross_chain=cross_chain,
                )
                slot = _TransferSlot(transfer)
                self._transfers[transfer.id] = slot
                self._by_idempotency_key[key] = transfer.id

        if existing is not None:
            logger.info("Mock provider returning existing transfer %s for key %s", existing_id, key)
            with existing.lock:
                return existing.transfer.model_copy(deep=True)

        delay = self._cross_chain_delay if cross_chain else self._same_chain_delay
        self._scheduler.schedule(
            delay,
            lambda: self._settle(transfer.id),
            token=slot.token,
            name=f"settle:{transfer.id}",
        )
        logger.info(
            "Mock provider created %s transfer %s: %s %s to %s on %s",
            "CCTP" if cross_chain else "same-chain",
            transfer.id,
            value,
            currency,
            destination_address,
            chain.value,
        )
        with slot.lock:
            return slot.transfer.model_copy(deep=True)

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
        return self._create_transfer(
            wallet_id=wallet_id,
            destination_address=destination_address,
            amount=amount,
            chain=Chain(chain),
            idempotency_key=idempotency_key,
            currency=currency,
            cross_chain=False,
        )

    async def transfer_cctp(
        self,
        *,
        wallet_id: str,
        destination_address: str,
        amount: Decimal,
        destination_chain: Chain,
        idempotency_key: str,
    ) -> ProviderTransfer:
        if not self._enable_cctp:
            raise ValidationError("Cross-chain transfers are disabled (ENABLE_CCTP=false)")
        destination_chain = Chain(destination_chain)
        with self._lock:
            wallet = self._require_wallet(wallet_id)
        if Chain(wallet.blockchain) == destination_chain:
            raise ValidationError("CCTP destination chain must differ from the source wallet chain")
        return self._create_transfer(
            wallet_id=wallet_id,
            destination_address=destination_address,
            amount=amount,
            chain=destination_chain,
            idempotency_key=idempotency_key,
            currency=Asset.USDC.value,
            cross_chain=True,
        )

    def _slot(self, transfer_id: str) -> _TransferSlot:
        with self._lock:
            slot = self._transfers.get(transfer_id)
        if slot is None:
            raise NotFoundError("Transfer", transfer_id)
        return slot

    async def get_transfer(self, transfer_id: str) -> ProviderTransfer:
        slot = self._slot(transfer_id)
        with slot.lock:
            return slot.transfer.model_copy(deep=True)

    async def cancel_transfer(self, transfer_id: str) -> ProviderTransfer:
        slot = self._slot(transfer_id)
        with slot.lock:
            t = slot.transfer
            if TransferStatus(t.status).is_terminal:
                raise TransferStateError(f"Transfer {transfer_id} is already {t.status}")
            slot.token.cancel()
            self._fail(t, TransferErrorCode.USER_CANCELLED)
            snapshot = t.model_copy(deep=True)
        logger.info("Mock provider cancelled transfer %s", transfer_id)
        self._emit(snapshot)
        return snapshot

    # ---------- settlement ----------

    @staticmethod
    def _fail(t: ProviderTransfer, code: TransferErrorCode) -> None:
        t.status = TransferStatus.FAILED
        t.error_code = code.value
        t.error_message = TRANSFER_ERROR_MESSAGES[code]
        t.update_date = _now_iso()

    def _debit(self, t: ProviderTransfer) -> bool:
        with self._lock:
            wallet = self._wallets.get(t.source.id)
            if wallet is None:
                return False
            currency = t.amount.currency
            balance = wallet.balances.get(currency, Decimal("0"))
            if balance < t.amount.amount:
                return False
            wallet.balances[currency] = balance - t.amount.amount
            return True

    def _settle(self, transfer_id: str) -> None:
        slot = self._slot(transfer_id)
        with slot.lock:
            t = slot.transfer
            if TransferStatus(t.status).is_terminal:
                return

            if self._rng.random() < self._failure_rate:
                self._fail(t, self._rng.choice(RANDOM_FAILURE_CODES))
            elif not self._debit(t):
                self._fail(t, TransferErrorCode.INSUFFICIENT_FUNDS)
            else:
                t.status = TransferStatus.COMPLETE
                t.transaction_hash = Web3.to_hex(self._rng.randbytes(32))
                t.gas_used = str(self._rng.randint(21_000, 120_000))
                t.block_number = 18_000_000 + self._rng.randint(0, 1_000_000)
                t.confirmations = CROSS_CHAIN_CONFIRMATIONS if t.cross_chain else SAME_CHAIN_CONFIRMATIONS
                t.update_date = _now_iso()
            snapshot = t.model_copy(deep=True)

        logger.info(
            "Mock provider settled transfer %s: status=%s error=%s tx=%s",
            snapshot.id,
            snapshot.status,
            snapshot.error_code,
            snapshot.transaction_hash,
        )
        self._emit(snapshot)

    # ---------- helpers ----------

    def estimate_transfer_time(self, chain: Chain, destination_chain: Optional[Chain] = None) -> TransferTimeEstimate:
        return estimate_transfer_time(chain, destination_chain)

    def validate_address(self, address: str, chain: Chain) -> bool:
        return is_evm_address(address)
