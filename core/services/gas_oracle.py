"""
Gas oracle.

Estimates the USD fee and ETA of a stablecoin transfer per chain:

    fee = base_fee[chain] * multiplier
    eta = max(1, round(block_time * CONFIRMATIONS_REQUIRED))

The multiplier is simulated (`MockGasOracle`) or read from a live price feed
(`LiveGasOracle`). Both variants cache estimates per (chain, asset) for a
fixed TTL (30 seconds by default).
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Protocol

from core.domain.enums.chain_enums import Asset, Chain
from core.domain.schemas.routing_types import GasEstimate
from core.services.chain_registry import get_chain_config
from core.services.circuit_breaker import CircuitBreaker
from core.services.exceptions import ProviderUnavailable
from core.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

CONFIRMATIONS_REQUIRED = 3
DEFAULT_CACHE_TTL_SEC = 30
FEED_FAILURE_THRESHOLD = 3
FEED_RECOVERY_SEC = 30.0

FEE_QUANTUM = Decimal("0.001")
MIN_FEE_USD = FEE_QUANTUM

BASE_FEES_USD: Dict[Chain, Decimal] = {
    Chain.ETHEREUM: Decimal("15.0"),
    Chain.BASE: Decimal("0.05"),
    Chain.ARBITRUM: Decimal("0.5"),
    Chain.POLYGON: Decimal("0.1"),
}

# typical share of block space in use
NETWORK_UTILIZATION: Dict[Chain, float] = {
    Chain.ETHEREUM: 0.85,
    Chain.BASE: 0.45,
    Chain.ARBITRUM: 0.55,
    Chain.POLYGON: 0.65,
}

# bounds of the simulated network variance
VARIANCE_RANGE = (0.9, 1.1)

_CHAIN_BLURB: Dict[Chain, str] = {
    Chain.ETHEREUM: "Most secure option",
    Chain.BASE: "Coinbase L2, excellent for USDC",
    Chain.ARBITRUM: "Optimistic rollup, fast & cheap",
    Chain.POLYGON: "PoS sidechain, good DeFi ecosystem",
}


def eta_seconds_for(chain: Chain) -> int:
    block_time = get_chain_config(chain).block_time
    return max(1, round(block_time * CONFIRMATIONS_REQUIRED))


def _quantize_fee(value: Decimal) -> Decimal:
    fee = value.quantize(FEE_QUANTUM, rounding=ROUND_HALF_UP)
    return fee if fee > 0 else MIN_FEE_USD


def _explain(chain: Chain, fee: Decimal, eta: int, asset: Asset, utilization: float) -> str:
    cfg = get_chain_config(chain)
    eta_str = f"{eta}s" if eta < 60 else f"{round(eta / 60)}min"
    if utilization > 0.8:
        activity = "High network activity"
    elif utilization > 0.6:
        activity = "Moderate activity"
    else:
        activity = "Low activity"
    return f"{cfg.name}: ${fee} fee for {asset}. {_CHAIN_BLURB[chain]}. {activity}. ETA: {eta_str}"


class GasOracle(ABC):
    """
    Fee/ETA estimator with an explicit TTL cache.
    """

    def __init__(self, *, cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SEC, cache: Optional[TTLCache] = None) -> None:
        self._cache: TTLCache[GasEstimate] = cache or TTLCache(cache_ttl_seconds)

    @abstractmethod
    async def _multiplier(self, chain: Chain) -> float:
        raise NotImplementedError

    async def estimate_gas(self, chain: Chain | str, asset: Asset | str = Asset.USDC) -> GasEstimate:
        chain = Chain(chain)
        asset = Asset(asset)

        cached = self._cache.get((chain, asset))
        if cached is not None:
            return cached

        multiplier = await self._multiplier(chain)
        fee = _quantize_fee(BASE_FEES_USD[chain] * Decimal(str(multiplier)))
        eta = eta_seconds_for(chain)

        estimate = GasEstimate(
            chain=chain,
            fee_usd=fee,
            eta_seconds=eta,
            explanation=_explain(chain, fee, eta, asset, NETWORK_UTILIZATION[chain]),
        )
        self._cache.set((chain, asset), estimate)
        return estimate

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_status(self) -> dict:
        return self._cache.status()


class MockGasOracle(GasOracle):
    """
    Simulated network variance. Pass a seeded `random.Random` for reproducible fees.
    """

    def __init__(self, *, rng: Optional[random.Random] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._rng = rng or random.Random()

    async def _multiplier(self, chain: Chain) -> float:
        utilization = 1 + NETWORK_UTILIZATION[chain] * 0.5
        return utilization * self._rng.uniform(*VARIANCE_RANGE)


class GasMultiplierFeed(Protocol):
    async def get_gas_multiplier(self, chain: str) -> float:
        ...


class LiveGasOracle(GasOracle):
    """
    Multiplier sourced from a live price feed, called through a circuit
    breaker. Feed errors and an open circuit surface as `ProviderUnavailable`;
    the router drops that chain from the candidates.
    """

    def __init__(self, feed: GasMultiplierFeed, *, breaker: Optional[CircuitBreaker] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._feed = feed
        self.breaker = breaker or CircuitBreaker(
            "gas_feed",
            failure_threshold=FEED_FAILURE_THRESHOLD,
            recovery_timeout=FEED_RECOVERY_SEC,
        )

    async def _read_feed(self, chain: Chain) -> float:
        value = float(await self._feed.get_gas_multiplier(chain.value))
        if value <= 0:
            raise ProviderUnavailable("gas_feed", f"{chain.value}: non-positive multiplier {value}")
        return value

    async def _multiplier(self, chain: Chain) -> float:
        try:
            return await self.breaker.call(self._read_feed, chain)
        except ProviderUnavailable:
            raise
        except Exception as exc:
            raise ProviderUnavailable("gas_feed", f"{chain.value}: {exc}") from exc
