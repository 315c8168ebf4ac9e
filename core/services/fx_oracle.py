"""
FX oracle.

Serves fiat exchange rates for the pairs the rule engine cares about
(EUR/USD for EURC transfers and EURUSD conditions), with a TTL cache and a
short in-process history of observed rates used for movement/volatility.
"""

from __future__ import annotations

import logging
import random
import statistics
import threading
from abc import ABC, abstractmethod
from collections import deque
from decimal import ROUND_HALF_UP, Decimal
from time import time
from typing import Callable, Deque, Dict, Iterable, List, Optional, Protocol, Tuple

from core.domain.schemas.fx_types import FXConversion, FXMovement, FXRate, FXVolatility
from core.services.circuit_breaker import CircuitBreaker
from core.services.exceptions import CircuitOpenError, PairNotSupported, ProviderUnavailable
from core.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SEC = 60
DEFAULT_WINDOW_MS = 24 * 60 * 60 * 1000
HISTORY_SIZE = 500

RATE_QUANTUM = Decimal("0.0001")
PCT_QUANTUM = Decimal("0.0001")

REFERENCE_RATES: Dict[str, Decimal] = {
    "EURUSD": Decimal("1.0850"),
    "GBPUSD": Decimal("1.2650"),
    "USDJPY": Decimal("150.25"),
}

# half-spread applied around the mid rate
_HALF_SPREAD: Dict[str, Decimal] = {
    "EURUSD": Decimal("0.0001"),
    "GBPUSD": Decimal("0.0001"),
    "USDJPY": Decimal("0.01"),
}

# max relative move per mock fetch (+/- 0.1%)
MOCK_MAX_MOVE = 0.001

FEED_FAILURE_THRESHOLD = 2
FEED_RECOVERY_SEC = 60.0


def normalize_pair(pair: str) -> str:
    return (pair or "").replace("/", "").replace("-", "").strip().upper()


def _q(value: Decimal, quantum: Decimal = RATE_QUANTUM) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


class FXRateFeed(Protocol):
    async def get_fx_rate(self, pair: str) -> float:
        ...


class FXOracle(ABC):
    def __init__(
        self,
        *,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time,
    ) -> None:
        self._clock = clock
        self._cache: TTLCache[FXRate] = TTLCache(cache_ttl_seconds, clock=clock)
        self._history: Dict[str, Deque[Tuple[float, Decimal]]] = {}
        self._history_lock = threading.Lock()

    @abstractmethod
    async def _fetch_mid(self, pair: str) -> Tuple[Decimal, str, int]:
        """
        Return (mid_rate, source, confidence) for a supported pair.
        """
        raise NotImplementedError

    def supported_pairs(self) -> List[str]:
        return list(REFERENCE_RATES)

    def _require_supported(self, pair: str) -> str:
        p = normalize_pair(pair)
        if p not in REFERENCE_RATES:
            raise PairNotSupported(p or pair)
        return p

    def _record(self, pair: str, at: float, rate: Decimal) -> None:
        with self._history_lock:
            hist = self._history.setdefault(pair, deque(maxlen=HISTORY_SIZE))
            hist.append((at, rate))

    def _samples(self, pair: str, since: float) -> List[Tuple[float, Decimal]]:
        with self._history_lock:
            return [(t, r) for (t, r) in self._history.get(pair, ()) if t >= since]

    async def get_fx_rate(self, pair: str) -> FXRate:
        p = self._require_supported(pair)

        cached = self._cache.get(p)
        if cached is not None:
            return cached

        mid, source, confidence = await self._fetch_mid(p)
        mid = _q(mid)
        half = _HALF_SPREAD[p]
        reference = REFERENCE_RATES[p]
        now = self._clock()

        fx = FXRate(
            pair=p,
            rate=mid,
            bid=mid - half,
            ask=mid + half,
            spread=half * 2,
            change_24h=_q((mid / reference - 1) * 100, PCT_QUANTUM),
            last_updated=now,
            source=source,
            confidence=confidence,
        )
        self._record(p, now, mid)
        self._cache.set(p, fx)
        return fx

    async def get_multiple_rates(self, pairs: Iterable[str]) -> Dict[str, FXRate]:
        out: Dict[str, FXRate] = {}
        for pair in pairs:
            try:
                fx = await self.get_fx_rate(pair)
            except PairNotSupported:
                logger.info("Skipping unsupported FX pair %s", pair)
                continue
            out[fx.pair] = fx
        return out

    async def convert_currency(self, amount: Decimal, from_currency: str, to_currency: str) -> FXConversion:
        src = (from_currency or "").strip().upper()
        dst = (to_currency or "").strip().upper()
        amount = Decimal(str(amount))

        if src == dst:
            return FXConversion(
                original_amount=amount,
                converted_amount=amount,
                rate=Decimal("1"),
                pair=f"{src}{dst}",
                confidence=100,
                timestamp=self._clock(),
            )

        direct = f"{src}{dst}"
        if direct in REFERENCE_RATES:
            fx = await self.get_fx_rate(direct)
            rate = fx.rate
        else:
            reverse = f"{dst}{src}"
            if reverse not in REFERENCE_RATES:
                raise PairNotSupported(direct)
            fx = await self.get_fx_rate(reverse)
            rate = Decimal("1") / fx.rate

        return FXConversion(
            original_amount=amount,
            converted_amount=amount * rate,
            rate=rate,
            pair=direct,
            confidence=fx.confidence,
            timestamp=fx.last_updated,
        )

    async def check_rate_movement(
        self,
        pair: str,
        threshold_percent: Decimal | float,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> FXMovement:
        current = await self.get_fx_rate(pair)
        since = current.last_updated - (int(window_ms) / 1000.0)
        samples = self._samples(current.pair, since)

        if len(samples) >= 2:
            previous = samples[0][1]
        else:
            # no history inside the window, derive from the 24h change
            previous = _q(current.rate / (1 + current.change_24h / 100))

        change = _q((current.rate - previous) / previous * 100, PCT_QUANTUM)
        if change > Decimal("0.1"):
            direction = "up"
        elif change < Decimal("-0.1"):
            direction = "down"
        else:
            direction = "stable"

        return FXMovement(
            pair=current.pair,
            current_rate=current.rate,
            previous_rate=previous,
            change_percent=change,
            threshold_met=abs(change) > Decimal(str(threshold_percent)),
            direction=direction,
        )

    async def get_volatility(self, pair: str) -> FXVolatility:
        current = await self.get_fx_rate(pair)
        samples = self._samples(current.pair, 0.0)
        changes = [
            float((b - a) / a * 100)
            for (_, a), (_, b) in zip(samples, samples[1:])
        ]
        if len(changes) >= 2:
            vol = Decimal(str(statistics.pstdev(changes)))
        else:
            vol = abs(current.change_24h) * Decimal("0.1")
        vol = _q(vol, PCT_QUANTUM)

        if vol < Decimal("0.3"):
            level = "low"
        elif vol < Decimal("0.7"):
            level = "medium"
        else:
            level = "high"
        return FXVolatility(pair=current.pair, volatility=vol, level=level, confidence=current.confidence)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_status(self) -> dict:
        return self._cache.status()


class MockFXOracle(FXOracle):
    def __init__(self, *, rng: Optional[random.Random] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._rng = rng or random.Random()

    async def _fetch_mid(self, pair: str) -> Tuple[Decimal, str, int]:
        move = Decimal(str(self._rng.uniform(-MOCK_MAX_MOVE, MOCK_MAX_MOVE)))
        return REFERENCE_RATES[pair] * (1 + move), "mock-api", 85


class LiveFXOracle(FXOracle):
    """
    Rates from a live feed called through a circuit breaker. A failed call
    serves the reference rate with reduced confidence; while the circuit is
    open the feed is not called and confidence drops further.
    """

    def __init__(self, feed: FXRateFeed, *, breaker: Optional[CircuitBreaker] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._feed = feed
        self.breaker = breaker or CircuitBreaker(
            "fx_feed",
            failure_threshold=FEED_FAILURE_THRESHOLD,
            recovery_timeout=FEED_RECOVERY_SEC,
            clock=self._clock,
        )

    async def _read_feed(self, pair: str) -> Decimal:
        value = Decimal(str(await self._feed.get_fx_rate(pair)))
        if value <= 0:
            raise ProviderUnavailable("fx_feed", f"{pair}: non-positive rate {value}")
        return value

    async def _fetch_mid(self, pair: str) -> Tuple[Decimal, str, int]:
        try:
            return await self.breaker.call(self._read_feed, pair), "live", 95
        except CircuitOpenError:
            logger.info("FX feed circuit open, using reference rate for %s", pair)
            return REFERENCE_RATES[pair], "circuit-open", 50
        except Exception as exc:
            logger.warning("FX feed failed for %s, using reference rate: %s", pair, exc)
            return REFERENCE_RATES[pair], "fallback", 70
