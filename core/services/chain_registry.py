"""
Static catalog of supported chains.

Registry order (the order of `Chain`) is the deterministic tie-break order
used by the quote router.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from web3 import Web3

from core.domain.enums.chain_enums import Chain
from core.domain.schemas.provider_types import TransferTimeEstimate


@dataclass(frozen=True)
class ChainConfig:
    name: str
    short_name: str
    chain_id: int
    block_time: float  # seconds
    explorer_url: str


CHAIN_CONFIG: Dict[Chain, ChainConfig] = {
    Chain.ETHEREUM: ChainConfig(
        name="Ethereum",
        short_name="ETH",
        chain_id=1,
        block_time=12,
        explorer_url="https://etherscan.io",
    ),
    Chain.BASE: ChainConfig(
        name="Base",
        short_name="BASE",
        chain_id=8453,
        block_time=2,
        explorer_url="https://basescan.org",
    ),
    Chain.ARBITRUM: ChainConfig(
        name="Arbitrum One",
        short_name="ARB",
        chain_id=42161,
        block_time=0.3,
        explorer_url="https://arbiscan.io",
    ),
    Chain.POLYGON: ChainConfig(
        name="Polygon",
        short_name="MATIC",
        chain_id=137,
        block_time=2,
        explorer_url="https://polygonscan.com",
    ),
}


def get_chain_config(chain: Chain | str) -> ChainConfig:
    return CHAIN_CONFIG[Chain(chain)]


def get_all_chains() -> List[Chain]:
    return list(Chain)


def registry_index(chain: Chain | str) -> int:
    return get_all_chains().index(Chain(chain))


def explorer_tx_url(chain: Chain | str, tx_hash: str) -> str:
    return f"{get_chain_config(chain).explorer_url}/tx/{tx_hash}"


def is_evm_address(address: str | None) -> bool:
    # every supported chain is EVM
    return bool(address) and Web3.is_address(address)


# minutes, by source chain
SAME_CHAIN_TIMES: Dict[Chain, TransferTimeEstimate] = {
    Chain.ETHEREUM: TransferTimeEstimate(min=1, max=8, typical=3),
    Chain.BASE: TransferTimeEstimate(min=0.3, max=1.5, typical=0.8),
    Chain.ARBITRUM: TransferTimeEstimate(min=0.5, max=2, typical=1),
    Chain.POLYGON: TransferTimeEstimate(min=0.5, max=3, typical=1),
}
CCTP_TIME = TransferTimeEstimate(min=8, max=25, typical=15)
DEFAULT_TIME = TransferTimeEstimate(min=1, max=5, typical=2)


def estimate_transfer_time(chain: Chain | str, destination_chain: Chain | str | None = None) -> TransferTimeEstimate:
    if destination_chain is not None and Chain(destination_chain) != Chain(chain):
        return CCTP_TIME.model_copy()
    return SAME_CHAIN_TIMES.get(Chain(chain), DEFAULT_TIME).model_copy()
