from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from core.domain.enums.chain_enums import ASSET_FIAT, Asset, Chain
from core.domain.enums.routing_enums import DestinationType
from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.provider_client_interface import ProviderClient
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository
from core.domain.schemas.provider_types import ProviderWallet
from core.domain.schemas.routing_types import TransferRule
from core.services.chain_registry import is_evm_address
from core.services.exceptions import NotFoundError, ValidationError
from core.services.fx_oracle import FXOracle
from core.services.idempotency_service import validate_idempotency_key
from core.services.quote_router import QuoteRouter

logger = logging.getLogger(__name__)

ASSET_QUANTUM = Decimal("0.000001")
USD_QUANTUM = Decimal("0.01")


def _start_of_utc_day_ms(now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(start.timestamp() * 1000)


@dataclass
class ExecuteRuleUseCase:
    """
    Runs one rule execution: limits -> route -> wallet -> provider transfer
    -> execution record.

    The provider transfer is keyed by `<idempotency_key>-transfer`, so a retry
    with the same key never creates a second transfer.
    """

    router: QuoteRouter
    provider: ProviderClient
    fx_oracle: FXOracle
    execution_repo: TransferExecutionRepository

    @classmethod
    def from_settings(cls) -> "ExecuteRuleUseCase":
        from adapters.external.runtime import get_execution_repo, get_fx_oracle, get_provider, get_quote_router

        return cls(
            router=get_quote_router(),
            provider=get_provider(),
            fx_oracle=get_fx_oracle(),
            execution_repo=get_execution_repo(),
        )

    # ---------- internal helpers ----------

    async def _convert(self, value: Decimal, src: str, dst: str) -> Decimal:
        conv = await self.fx_oracle.convert_currency(value, src, dst)
        return conv.converted_amount

    def _spent_today_usd(self, user_id: str) -> Decimal:
        since = _start_of_utc_day_ms()
        total = Decimal("0")
        for e in self.execution_repo.list_by_user(user_id, limit=1000):
            if (e.created_at or 0) < since or e.status == TransferStatus.FAILED:
                continue
            total += Decimal(e.amount_usd or "0")
        return total

    def _check_limits(self, rule: TransferRule, *, user_id: str, amount_usd: Decimal, confirmed: bool) -> None:
        limits = rule.limits
        spent = self._spent_today_usd(user_id)
        if spent + amount_usd > limits.daily_max_usd:
            raise ValidationError(
                f"Daily limit exceeded: {spent + amount_usd:.2f} USD > {limits.daily_max_usd} USD"
            )
        if amount_usd > limits.require_confirm_over_usd and not confirmed:
            raise ValidationError(
                f"Transfer of {amount_usd:.2f} USD requires confirmation "
                f"(threshold {limits.require_confirm_over_usd} USD)"
            )

    @staticmethod
    def _destination_address(rule: TransferRule) -> str:
        dest = rule.destination
        if dest.type == DestinationType.CONTACT:
            raise ValidationError("Contact destinations must be resolved to an address before execution")
        address = dest.value.strip()
        if not is_evm_address(address):
            raise ValidationError(f"Invalid destination address: {address}")
        return address

    async def _wallet_on(self, user_id: str, chain: Chain) -> ProviderWallet:
        for w in await self.provider.list_wallets(user_id):
            if Chain(w.blockchain) == chain:
                return w
        logger.info("Provisioning %s wallet for user %s", chain.value, user_id)
        return await self.provider.create_wallet(user_id, chain)

    # ---------- public API ----------

    async def execute(
        self,
        *,
        rule: TransferRule,
        user_id: str,
        idempotency_key: str,
        rule_id: Optional[str] = None,
        confirmed: bool = False,
        triggered_by: str = "manual",
    ) -> dict:
        key = validate_idempotency_key(idempotency_key)
        address = self._destination_address(rule)

        asset = Asset(rule.asset)
        value = Decimal(str(rule.amount.value))
        amount_asset = (await self._convert(value, rule.amount.currency, ASSET_FIAT[asset])).quantize(ASSET_QUANTUM)
        amount_usd = (await self._convert(value, rule.amount.currency, "USD")).quantize(USD_QUANTUM)

        self._check_limits(rule, user_id=user_id, amount_usd=amount_usd, confirmed=confirmed)

        quote = await self.router.select_route(rule)
        chain = Chain(quote.chain)
        wallet = await self._wallet_on(user_id, chain)

        transfer = await self.provider.transfer_usdc(
            wallet_id=wallet.id,
            destination_address=address,
            amount=amount_asset,
            chain=chain,
            idempotency_key=f"{key}-transfer",
            currency=asset.value,
        )

        execution = self.execution_repo.insert(
            TransferExecutionEntity(
                rule_id=rule_id,
                user_id=user_id,
                idempotency_key=key,
                transfer_id=transfer.id,
                wallet_id=wallet.id,
                chain=chain.value,
                destination_address=address,
                asset=asset.value,
                amount=str(amount_asset),
                amount_usd=str(amount_usd),
                fee_estimate_usd=str(quote.fee_estimate_usd),
                status=transfer.status,
                transaction_hash=transfer.transaction_hash,
                triggered_by=triggered_by,
            )
        )
        logger.info(
            "Rule %s executed for user %s: transfer=%s chain=%s amount=%s %s",
            rule_id or "-",
            user_id,
            transfer.id,
            chain.value,
            amount_asset,
            asset.value,
        )

        data = {
            "execution": execution.model_dump(mode="json"),
            "quote": quote.model_dump(mode="json"),
            "transfer": transfer.model_dump(mode="json"),
        }
        return {"ok": True, "message": "Transfer initiated", "data": data}

    def get_execution(self, *, execution_id: str) -> dict:
        row = self.execution_repo.get_by_id(execution_id)
        if row is None:
            raise NotFoundError("Execution", execution_id)
        return {"ok": True, "message": "OK", "data": row.model_dump(mode="json")}

    def list_executions(self, *, user_id: str, limit: int = 50) -> dict:
        rows = self.execution_repo.list_by_user(user_id, limit=limit)
        return {"ok": True, "message": "OK", "data": [r.model_dump(mode="json") for r in rows]}
