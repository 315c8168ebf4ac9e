"""
Multi-chain quote router.

Queries the gas oracle for every chain a rule allows (concurrently, each
call bounded by a timeout), drops chains whose estimate failed and ranks the
rest.

Ranking keys:
  cheapest  -> (fee, eta, registry order)
  fastest   -> (eta, fee, registry order)
  balanced  -> (0.5 * normalized fee + 0.5 * normalized eta, registry order)
  fixed     -> first allowed chain (rule order) that could be quoted
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from core.domain.enums.chain_enums import Chain
from core.domain.enums.routing_enums import RoutingMode
from core.domain.schemas.routing_types import GasEstimate, RouteQuote, TransferRule
from core.services.chain_registry import registry_index
from core.services.exceptions import NoRouteAvailable, PairNotSupported
from core.services.fx_oracle import FXOracle
from core.services.gas_oracle import GasOracle

logger = logging.getLogger(__name__)

HIGH_FEE_RATIO = Decimal("0.02")
DEFAULT_ORACLE_TIMEOUT_SEC = 5.0

FEE_WEIGHT = 0.5
SPEED_WEIGHT = 0.5


def _cheapest_key(e: GasEstimate) -> Tuple[Decimal, int, int]:
    return (e.fee_usd, e.eta_seconds, registry_index(e.chain))


def _fastest_key(e: GasEstimate) -> Tuple[int, Decimal, int]:
    return (e.eta_seconds, e.fee_usd, registry_index(e.chain))


def _normalize(value: float, lo: float, hi: float) -> float:
    if hi <= lo:
        return 0.0
    return (value - lo) / (hi - lo)


class QuoteRouter:
    def __init__(
        self,
        gas_oracle: GasOracle,
        *,
        fx_oracle: Optional[FXOracle] = None,
        timeout_seconds: float = DEFAULT_ORACLE_TIMEOUT_SEC,
        high_fee_ratio: Decimal = HIGH_FEE_RATIO,
    ) -> None:
        self._gas = gas_oracle
        self._fx = fx_oracle
        self._timeout = float(timeout_seconds)
        self._high_fee_ratio = high_fee_ratio

    # ---------- internal helpers ----------

    async def _estimate(self, chain: Chain, asset: str) -> GasEstimate:
        return await asyncio.wait_for(self._gas.estimate_gas(chain, asset), timeout=self._timeout)

    async def _collect(self, rule: TransferRule) -> List[GasEstimate]:
        chains = [Chain(c) for c in rule.routing.allowed_chains]
        results = await asyncio.gather(
            *(self._estimate(c, rule.asset) for c in chains),
            return_exceptions=True,
        )

        estimates: List[GasEstimate] = []
        failures: Dict[str, str] = {}
        for chain, res in zip(chains, results):
            if isinstance(res, asyncio.TimeoutError):
                failures[chain.value] = "timeout"
                logger.warning("Gas estimate timed out for %s; excluding chain", chain.value)
            elif isinstance(res, Exception):
                failures[chain.value] = str(res) or type(res).__name__
                logger.warning("Gas estimate failed for %s; excluding chain: %s", chain.value, res)
            elif isinstance(res, BaseException):
                raise res
            else:
                estimates.append(res)

        if not estimates:
            raise NoRouteAvailable(chains, failures)
        return estimates

    async def _amount_usd(self, rule: TransferRule) -> Decimal:
        value = Decimal(str(rule.amount.value))
        currency = str(rule.amount.currency)
        if currency == "USD" or self._fx is None:
            return value
        try:
            conv = await self._fx.convert_currency(value, currency, "USD")
        except PairNotSupported:
            return value
        return conv.converted_amount

    def _is_high_fee(self, fee: Decimal, amount_usd: Decimal) -> bool:
        if amount_usd <= 0:
            return True
        return (fee / amount_usd) > self._high_fee_ratio

    def _to_quote(self, e: GasEstimate, *, recommended: bool, amount_usd: Decimal) -> RouteQuote:
        return RouteQuote(
            chain=e.chain,
            fee_estimate_usd=e.fee_usd,
            eta_seconds=e.eta_seconds,
            explanation=e.explanation,
            recommended=recommended,
            is_high_fee=self._is_high_fee(e.fee_usd, amount_usd),
        )

    @staticmethod
    def _pick(estimates: List[GasEstimate], mode: RoutingMode, allowed: List[Chain]) -> GasEstimate:
        if mode == RoutingMode.FASTEST:
            return min(estimates, key=_fastest_key)

        if mode == RoutingMode.BALANCED:
            fees = [float(e.fee_usd) for e in estimates]
            etas = [float(e.eta_seconds) for e in estimates]
            f_lo, f_hi, t_lo, t_hi = min(fees), max(fees), min(etas), max(etas)

            def score(e: GasEstimate) -> Tuple[float, int]:
                s = FEE_WEIGHT * _normalize(float(e.fee_usd), f_lo, f_hi) + SPEED_WEIGHT * _normalize(
                    float(e.eta_seconds), t_lo, t_hi
                )
                return (round(s, 9), registry_index(e.chain))

            return min(estimates, key=score)

        if mode == RoutingMode.FIXED:
            by_chain = {Chain(e.chain): e for e in estimates}
            for chain in allowed:
                if chain in by_chain:
                    return by_chain[chain]

        return min(estimates, key=_cheapest_key)

    # ---------- public API ----------

    async def get_all_quotes(self, rule: TransferRule) -> List[RouteQuote]:
        """
        Quotes for every quotable allowed chain, ascending by fee. Only the
        `quote_cheapest` pick is flagged `recommended`.
        """
        estimates = await self._collect(rule)
        amount_usd = await self._amount_usd(rule)

        ordered = sorted(estimates, key=_cheapest_key)
        best = ordered[0]
        return [self._to_quote(e, recommended=(e is best), amount_usd=amount_usd) for e in ordered]

    async def quote_cheapest(self, rule: TransferRule) -> RouteQuote:
        estimates = await self._collect(rule)
        amount_usd = await self._amount_usd(rule)
        best = min(estimates, key=_cheapest_key)
        return self._to_quote(best, recommended=True, amount_usd=amount_usd)

    async def select_route(self, rule: TransferRule) -> RouteQuote:
        """
        Route chosen under the rule's own routing mode.
        """
        estimates = await self._collect(rule)
        amount_usd = await self._amount_usd(rule)

        mode = RoutingMode(rule.routing.mode)
        allowed = [Chain(c) for c in rule.routing.allowed_chains]
        chosen = self._pick(estimates, mode, allowed)
        cheapest = min(estimates, key=_cheapest_key)

        logger.info(
            "Route selected: chain=%s mode=%s fee=%s eta=%ss (candidates=%d)",
            chosen.chain,
            mode.value,
            chosen.fee_usd,
            chosen.eta_seconds,
            len(estimates),
        )
        return self._to_quote(chosen, recommended=(chosen is cheapest), amount_usd=amount_usd)
