from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from core.domain.enums.chain_enums import Asset, Chain
from core.services.exceptions import ValidationError
from core.services.fx_oracle import FXOracle
from core.services.gas_oracle import GasOracle

HOUR_MS = 60 * 60 * 1000


def _decimal(name: str, value: str | Decimal) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a decimal number") from None
    if not d.is_finite():
        raise ValidationError(f"{name} must be a decimal number")
    return d


@dataclass
class OraclesUseCase:
    gas_oracle: GasOracle
    fx_oracle: FXOracle

    @classmethod
    def from_settings(cls) -> "OraclesUseCase":
        from adapters.external.runtime import get_fx_oracle, get_gas_oracle

        return cls(gas_oracle=get_gas_oracle(), fx_oracle=get_fx_oracle())

    # ---------- gas ----------

    async def estimate_gas(self, *, chain: Chain, asset: Asset = Asset.USDC) -> dict:
        est = await self.gas_oracle.estimate_gas(chain, asset)
        return {"ok": True, "message": "OK", "data": est.model_dump(mode="json")}

    async def estimate_gas_all(self, *, asset: Asset = Asset.USDC) -> dict:
        data = [(await self.gas_oracle.estimate_gas(c, asset)).model_dump(mode="json") for c in Chain]
        return {"ok": True, "message": "OK", "data": data}

    def gas_cache_status(self) -> dict:
        return {"ok": True, "message": "OK", "data": self.gas_oracle.cache_status()}

    def clear_gas_cache(self) -> dict:
        self.gas_oracle.clear_cache()
        return {"ok": True, "message": "Gas cache cleared", "data": None}

    # ---------- fx ----------

    def supported_pairs(self) -> dict:
        return {"ok": True, "message": "OK", "data": self.fx_oracle.supported_pairs()}

    async def get_fx_rate(self, *, pair: str) -> dict:
        rate = await self.fx_oracle.get_fx_rate(pair)
        return {"ok": True, "message": "OK", "data": rate.model_dump(mode="json")}

    async def get_fx_rates(self, *, pairs: Optional[List[str]] = None) -> dict:
        rates = await self.fx_oracle.get_multiple_rates(pairs or self.fx_oracle.supported_pairs())
        data = {p: r.model_dump(mode="json") for p, r in rates.items()}
        return {"ok": True, "message": "OK", "data": data}

    async def convert(self, *, amount: str, from_currency: str, to_currency: str) -> dict:
        value = _decimal("amount", amount)
        if value < 0:
            raise ValidationError("amount must not be negative")
        conv = await self.fx_oracle.convert_currency(value, from_currency, to_currency)
        return {"ok": True, "message": "OK", "data": conv.model_dump(mode="json")}

    async def check_movement(self, *, pair: str, threshold_percent: str, window_hours: int = 24) -> dict:
        threshold = _decimal("threshold", threshold_percent)
        if threshold < 0:
            raise ValidationError("threshold must not be negative")
        if window_hours <= 0:
            raise ValidationError("window_hours must be positive")
        mv = await self.fx_oracle.check_rate_movement(pair, threshold, window_ms=window_hours * HOUR_MS)
        return {"ok": True, "message": "OK", "data": mv.model_dump(mode="json")}

    async def get_volatility(self, *, pair: str) -> dict:
        vol = await self.fx_oracle.get_volatility(pair)
        return {"ok": True, "message": "OK", "data": vol.model_dump(mode="json")}

    def fx_cache_status(self) -> dict:
        return {"ok": True, "message": "OK", "data": self.fx_oracle.cache_status()}
