from __future__ import annotations

import pytest

from core.domain.enums.chain_enums import Chain
from core.services.chain_registry import (
    estimate_transfer_time,
    explorer_tx_url,
    get_all_chains,
    get_chain_config,
    is_evm_address,
    registry_index,
)
from tests.helpers import DEST


class TestChainRegistry:
    def test_all_chains_in_registry_order(self):
        assert get_all_chains() == [Chain.ETHEREUM, Chain.BASE, Chain.ARBITRUM, Chain.POLYGON]

    @pytest.mark.parametrize(
        "chain, chain_id, block_time, explorer",
        [
            ("ethereum", 1, 12, "https://etherscan.io"),
            ("base", 8453, 2, "https://basescan.org"),
            ("arbitrum", 42161, 0.3, "https://arbiscan.io"),
            ("polygon", 137, 2, "https://polygonscan.com"),
        ],
    )
    def test_chain_parameters(self, chain, chain_id, block_time, explorer):
        cfg = get_chain_config(chain)
        assert cfg.chain_id == chain_id
        assert cfg.block_time == block_time
        assert cfg.explorer_url == explorer

    def test_unknown_chain_is_rejected(self):
        with pytest.raises(ValueError):
            get_chain_config("solana")

    def test_registry_index(self):
        assert registry_index("ethereum") == 0
        assert registry_index(Chain.POLYGON) == 3

    def test_explorer_tx_url(self):
        assert explorer_tx_url("base", "0xabc") == "https://basescan.org/tx/0xabc"


class TestTransferHelpers:
    def test_same_chain_time(self):
        est = estimate_transfer_time(Chain.BASE)
        assert (est.min, est.max, est.typical) == (0.3, 1.5, 0.8)

    def test_cross_chain_time(self):
        est = estimate_transfer_time(Chain.BASE, Chain.POLYGON)
        assert (est.min, est.max, est.typical) == (8, 25, 15)

    def test_same_destination_is_not_cross_chain(self):
        assert estimate_transfer_time("ethereum", "ethereum").typical == 3

    def test_evm_address(self):
        assert is_evm_address(DEST)
        assert is_evm_address(DEST.lower())
        assert not is_evm_address("0x1234")
        assert not is_evm_address("")
        assert not is_evm_address(None)
