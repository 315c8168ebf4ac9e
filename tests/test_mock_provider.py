from __future__ import annotations

import random
from decimal import Decimal

import pytest
from web3 import Web3

from adapters.external.provider.mock_provider import MockProvider
from core.domain.enums.chain_enums import Chain
from core.domain.enums.transfer_enums import RANDOM_FAILURE_CODES
from core.services.exceptions import NotFoundError, TransferStateError, ValidationError
from core.services.scheduler import VirtualScheduler
from tests.helpers import DEST


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def provider(scheduler):
    return MockProvider(scheduler=scheduler, rng=random.Random(11), failure_rate=0.0, enable_cctp=True)


async def funded_wallet(provider, chain=Chain.BASE):
    user = await provider.create_user("alice@example.com")
    return await provider.create_wallet(user.id, chain)


async def send(provider, wallet, amount="25", key="k-1", chain=None, **kwargs):
    return await provider.transfer_usdc(
        wallet_id=wallet.id,
        destination_address=DEST,
        amount=Decimal(amount),
        chain=chain or wallet.blockchain,
        idempotency_key=key,
        **kwargs,
    )


class TestUsersAndWallets:
    @pytest.mark.asyncio
    async def test_create_user_requires_email(self, provider):
        with pytest.raises(ValidationError):
            await provider.create_user("not-an-email")

    @pytest.mark.asyncio
    async def test_wallet_has_demo_balances(self, provider):
        wallet = await funded_wallet(provider)
        assert wallet.blockchain == "base"
        assert Web3.is_address(wallet.address)
        assert wallet.balances == {"USDC": Decimal("1000.00"), "EURC": Decimal("750.00")}

    @pytest.mark.asyncio
    async def test_list_wallets_only_for_user(self, provider):
        w1 = await funded_wallet(provider)
        await funded_wallet(provider, Chain.POLYGON)
        assert [w.id for w in await provider.list_wallets(w1.user_id)] == [w1.id]

    @pytest.mark.asyncio
    async def test_unknown_ids(self, provider):
        with pytest.raises(NotFoundError):
            await provider.get_user("user_missing")
        with pytest.raises(NotFoundError):
            await provider.create_wallet("user_missing", Chain.BASE)
        with pytest.raises(NotFoundError):
            await provider.get_wallet("wallet_missing")
        with pytest.raises(NotFoundError):
            await provider.get_transfer("transfer_missing")


class TestTransferLifecycle:
    @pytest.mark.asyncio
    async def test_completes_after_same_chain_delay(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        assert t.status == "pending"
        assert t.transaction_hash is None

        scheduler.advance(1.9)
        assert (await provider.get_transfer(t.id)).status == "pending"

        scheduler.advance(0.1)
        done = await provider.get_transfer(t.id)
        assert done.status == "complete"
        assert done.transaction_hash.startswith("0x")
        assert len(done.transaction_hash) == 66
        assert done.confirmations == 6
        assert 21_000 <= int(done.gas_used) <= 120_000
        assert (await provider.get_wallet(wallet.id)).balances["USDC"] == Decimal("975.00")

    @pytest.mark.asyncio
    async def test_eurc_transfer_debits_eurc(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        await send(provider, wallet, amount="50", currency="EURC")
        scheduler.run_all()
        balances = (await provider.get_wallet(wallet.id)).balances
        assert balances["EURC"] == Decimal("700.00")
        assert balances["USDC"] == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_random_failure(self, scheduler):
        provider = MockProvider(scheduler=scheduler, rng=random.Random(1), failure_rate=1.0)
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        scheduler.run_all()

        failed = await provider.get_transfer(t.id)
        assert failed.status == "failed"
        assert failed.error_code in {c.value for c in RANDOM_FAILURE_CODES}
        assert failed.error_message
        assert failed.transaction_hash is None
        assert (await provider.get_wallet(wallet.id)).balances["USDC"] == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet, amount="5000")
        scheduler.run_all()
        failed = await provider.get_transfer(t.id)
        assert failed.status == "failed"
        assert failed.error_code == "INSUFFICIENT_FUNDS"

    @pytest.mark.asyncio
    async def test_settles_at_most_once(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        scheduler.run_all()
        first = await provider.get_transfer(t.id)

        provider._settle(t.id)
        again = await provider.get_transfer(t.id)
        assert again == first
        assert (await provider.get_wallet(wallet.id)).balances["USDC"] == Decimal("975.00")

    @pytest.mark.asyncio
    async def test_snapshots_are_detached(self, provider):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        t.status = "complete"
        assert (await provider.get_transfer(t.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_listener_receives_terminal_snapshot(self, provider, scheduler):
        seen = []
        provider.subscribe(seen.append)
        provider.subscribe(lambda _t: 1 / 0)

        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        scheduler.run_all()
        assert [(s.id, s.status) for s in seen] == [(t.id, "complete")]


class TestIdempotentCreation:
    @pytest.mark.asyncio
    async def test_same_key_returns_same_transfer(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        a = await send(provider, wallet, key="same")
        b = await send(provider, wallet, key="same")
        assert a.id == b.id
        assert scheduler.pending == 1

    @pytest.mark.asyncio
    async def test_different_keys_create_distinct_transfers(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        a = await send(provider, wallet, key="one")
        b = await send(provider, wallet, key="two")
        assert a.id != b.id
        assert scheduler.pending == 2


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-1", "NaN"])
    async def test_bad_amount(self, provider, amount):
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await send(provider, wallet, amount=amount)

    @pytest.mark.asyncio
    async def test_bad_address(self, provider):
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await provider.transfer_usdc(
                wallet_id=wallet.id,
                destination_address="0x1234",
                amount=Decimal("1"),
                chain=Chain.BASE,
                idempotency_key="k",
            )

    @pytest.mark.asyncio
    async def test_blank_key(self, provider):
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await send(provider, wallet, key="  ")

    @pytest.mark.asyncio
    async def test_same_chain_transfer_on_other_chain(self, provider):
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await send(provider, wallet, chain=Chain.POLYGON)


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_pending(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)

        cancelled = await provider.cancel_transfer(t.id)
        assert cancelled.status == "failed"
        assert cancelled.error_code == "USER_CANCELLED"

        scheduler.advance(30)
        after = await provider.get_transfer(t.id)
        assert after.status == "failed"
        assert after.transaction_hash is None
        assert (await provider.get_wallet(wallet.id)).balances["USDC"] == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_cancel_terminal_transfer(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await send(provider, wallet)
        scheduler.run_all()
        with pytest.raises(TransferStateError):
            await provider.cancel_transfer(t.id)
        assert (await provider.get_transfer(t.id)).status == "complete"


class TestCrossChain:
    @pytest.mark.asyncio
    async def test_cctp_uses_longer_delay(self, provider, scheduler):
        wallet = await funded_wallet(provider)
        t = await provider.transfer_cctp(
            wallet_id=wallet.id,
            destination_address=DEST,
            amount=Decimal("10"),
            destination_chain=Chain.POLYGON,
            idempotency_key="cctp-1",
        )
        assert t.cross_chain is True
        assert t.destination.chain == "polygon"

        scheduler.advance(2)
        assert (await provider.get_transfer(t.id)).status == "pending"
        scheduler.advance(8)
        done = await provider.get_transfer(t.id)
        assert done.status == "complete"
        assert done.confirmations == 12

    @pytest.mark.asyncio
    async def test_cctp_disabled(self, scheduler):
        provider = MockProvider(scheduler=scheduler, failure_rate=0.0)
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await provider.transfer_cctp(
                wallet_id=wallet.id,
                destination_address=DEST,
                amount=Decimal("10"),
                destination_chain=Chain.POLYGON,
                idempotency_key="cctp-1",
            )

    @pytest.mark.asyncio
    async def test_cctp_to_same_chain_rejected(self, provider):
        wallet = await funded_wallet(provider)
        with pytest.raises(ValidationError):
            await provider.transfer_cctp(
                wallet_id=wallet.id,
                destination_address=DEST,
                amount=Decimal("10"),
                destination_chain=Chain.BASE,
                idempotency_key="cctp-1",
            )

    @pytest.mark.asyncio
    async def test_initiate_transfer_dispatch(self, provider):
        wallet = await funded_wallet(provider)
        same = await provider.initiate_transfer(
            wallet_id=wallet.id, destination_address=DEST, amount=Decimal("1"), chain=Chain.BASE, idempotency_key="a"
        )
        cross = await provider.initiate_transfer(
            wallet_id=wallet.id, destination_address=DEST, amount=Decimal("1"), chain=Chain.POLYGON, idempotency_key="b"
        )
        assert same.cross_chain is False
        assert cross.cross_chain is True


class TestHelpers:
    def test_estimate_and_validate(self, provider):
        assert provider.estimate_transfer_time(Chain.ETHEREUM).typical == 3
        assert provider.estimate_transfer_time(Chain.ETHEREUM, Chain.BASE).typical == 15
        assert provider.validate_address(DEST, Chain.BASE)
        assert not provider.validate_address("bob.eth", Chain.BASE)
