"""
Shared builders for the test suite.
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.domain.schemas.routing_types import TransferRule

DEST = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_rule(
    chains: Iterable[str] = ("ethereum", "base", "arbitrum", "polygon"),
    *,
    mode: str = "cheapest",
    value: str = "100",
    currency: str = "USD",
    asset: str = "USDC",
    destination: str = DEST,
    destination_type: str = "address",
    daily_max: str = "10000",
    confirm_over: str = "5000",
    description: Optional[str] = None,
) -> TransferRule:
    return TransferRule.model_validate(
        {
            "type": "schedule",
            "description": description,
            "asset": asset,
            "amount": {"type": "fixed", "value": value, "currency": currency},
            "destination": {"type": destination_type, "value": destination},
            "schedule": {"cron": "0 9 * * 1", "tz": "UTC"},
            "routing": {"mode": mode, "allowedChains": list(chains)},
            "limits": {"dailyMaxUSD": daily_max, "requireConfirmOverUSD": confirm_over},
        }
    )
