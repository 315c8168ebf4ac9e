from __future__ import annotations

from enum import StrEnum


class Chain(StrEnum):
    """
    Supported chains, in registry order.

    The declaration order is the deterministic tie-break order used by routing.
    """

    ETHEREUM = "ethereum"
    BASE = "base"
    ARBITRUM = "arbitrum"
    POLYGON = "polygon"


class Asset(StrEnum):
    USDC = "USDC"
    EURC = "EURC"


class FiatCurrency(StrEnum):
    USD = "USD"
    EUR = "EUR"


# fiat each stablecoin is pegged to
ASSET_FIAT: dict[Asset, FiatCurrency] = {
    Asset.USDC: FiatCurrency.USD,
    Asset.EURC: FiatCurrency.EUR,
}
