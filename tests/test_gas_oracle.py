from __future__ import annotations

import random
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from core.domain.enums.chain_enums import Chain
from core.services.circuit_breaker import CircuitBreaker, CircuitState
from core.services.exceptions import CircuitOpenError, ProviderUnavailable
from core.services.gas_oracle import BASE_FEES_USD, LiveGasOracle, MockGasOracle, eta_seconds_for
from core.services.ttl_cache import TTLCache
from tests.helpers import FakeClock


class TestEta:
    def test_eta_is_three_blocks(self):
        assert eta_seconds_for(Chain.ETHEREUM) == 36
        assert eta_seconds_for(Chain.BASE) == 6
        assert eta_seconds_for(Chain.POLYGON) == 6

    def test_eta_never_below_one_second(self):
        # 0.3s blocks * 3 rounds to 1
        assert eta_seconds_for(Chain.ARBITRUM) == 1


class TestMockGasOracle:
    @pytest.mark.asyncio
    async def test_fee_within_variance_bounds(self):
        oracle = MockGasOracle(rng=random.Random(1))
        for chain in Chain:
            est = await oracle.estimate_gas(chain)
            base = BASE_FEES_USD[chain]
            assert est.fee_usd > 0
            assert base * Decimal("1.0") <= est.fee_usd <= base * Decimal("1.7")
            assert est.eta_seconds >= 1
            assert est.chain == chain.value

    @pytest.mark.asyncio
    async def test_same_seed_same_fees(self):
        a = MockGasOracle(rng=random.Random(99))
        b = MockGasOracle(rng=random.Random(99))
        assert (await a.estimate_gas("base")).fee_usd == (await b.estimate_gas("base")).fee_usd

    @pytest.mark.asyncio
    async def test_explanation_mentions_chain_and_eta(self):
        est = await MockGasOracle(rng=random.Random(3)).estimate_gas("ethereum", "USDC")
        assert est.explanation.startswith("Ethereum: $")
        assert "High network activity" in est.explanation
        assert "ETA: 36s" in est.explanation


class TestGasCache:
    @pytest.mark.asyncio
    async def test_cached_within_ttl_and_refreshed_after(self):
        clock = FakeClock()
        oracle = MockGasOracle(rng=random.Random(5), cache=TTLCache(30, clock=clock))
        first = await oracle.estimate_gas("polygon")
        clock.advance(29)
        assert (await oracle.estimate_gas("polygon")) is first
        clock.advance(2)
        assert (await oracle.estimate_gas("polygon")) is not first

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_chain_and_asset(self):
        oracle = MockGasOracle(rng=random.Random(5))
        await oracle.estimate_gas("base", "USDC")
        await oracle.estimate_gas("base", "EURC")
        status = oracle.cache_status()
        assert status["size"] == 2
        assert status["ttl_seconds"] == 30
        assert {e["key"] for e in status["entries"]} == {"base:USDC", "base:EURC"}
        assert all(e["valid"] for e in status["entries"])

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        oracle = MockGasOracle(rng=random.Random(5))
        await oracle.estimate_gas("base")
        oracle.clear_cache()
        assert oracle.cache_status()["size"] == 0


class TestLiveGasOracle:
    @pytest.mark.asyncio
    async def test_uses_feed_multiplier(self):
        feed = AsyncMock()
        feed.get_gas_multiplier.return_value = 1.2
        est = await LiveGasOracle(feed).estimate_gas("base")
        assert est.fee_usd == Decimal("0.060")
        feed.get_gas_multiplier.assert_awaited_once_with("base")

    @pytest.mark.asyncio
    async def test_feed_error_becomes_provider_unavailable(self):
        feed = AsyncMock()
        feed.get_gas_multiplier.side_effect = RuntimeError("feed down")
        with pytest.raises(ProviderUnavailable):
            await LiveGasOracle(feed).estimate_gas("ethereum")

    @pytest.mark.asyncio
    async def test_non_positive_multiplier_is_rejected(self):
        feed = AsyncMock()
        feed.get_gas_multiplier.return_value = 0
        with pytest.raises(ProviderUnavailable):
            await LiveGasOracle(feed).estimate_gas("ethereum")

    @pytest.mark.asyncio
    async def test_open_circuit_stops_calling_feed(self):
        clock = FakeClock()
        feed = AsyncMock()
        feed.get_gas_multiplier.side_effect = [RuntimeError("down")] * 3 + [1.0]
        cb = CircuitBreaker("gas_feed", failure_threshold=3, recovery_timeout=30, clock=clock)
        oracle = LiveGasOracle(feed, breaker=cb)

        for chain in ("ethereum", "base", "arbitrum"):
            with pytest.raises(ProviderUnavailable):
                await oracle.estimate_gas(chain)
        with pytest.raises(CircuitOpenError):
            await oracle.estimate_gas("polygon")
        assert feed.get_gas_multiplier.await_count == 3

        clock.advance(30)
        est = await oracle.estimate_gas("polygon")
        assert est.fee_usd == Decimal("0.100")
        assert oracle.breaker.state == CircuitState.CLOSED
