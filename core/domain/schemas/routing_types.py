from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.domain.enums.chain_enums import Asset, Chain, FiatCurrency
from core.domain.enums.routing_enums import DestinationType, RoutingMode, RuleType


class GasEstimate(BaseModel):
    chain: Chain
    fee_usd: Decimal = Field(..., ge=0)
    eta_seconds: int = Field(..., ge=1)
    explanation: str

    model_config = ConfigDict(use_enum_values=True)


class RouteQuote(BaseModel):
    chain: Chain
    fee_estimate_usd: Decimal
    eta_seconds: int
    explanation: str
    recommended: bool = False
    is_high_fee: bool = False

    model_config = ConfigDict(use_enum_values=True)


class RuleAmount(BaseModel):
    type: Literal["fixed"] = "fixed"
    value: Decimal = Field(..., gt=0)
    currency: FiatCurrency

    model_config = ConfigDict(use_enum_values=True)


class RuleDestination(BaseModel):
    type: DestinationType
    value: str = Field(..., min_length=1)

    model_config = ConfigDict(use_enum_values=True)


class RuleSchedule(BaseModel):
    cron: str
    tz: str = "UTC"


class RuleCondition(BaseModel):
    metric: Literal["EURUSD"] = "EURUSD"
    change: Literal["+%", "-%"]
    magnitude: Decimal = Field(..., gt=0)
    window: Literal["24h"] = "24h"


class RuleRouting(BaseModel):
    mode: RoutingMode = RoutingMode.CHEAPEST
    allowed_chains: List[Chain] = Field(
        ..., min_length=1, validation_alias=AliasChoices("allowed_chains", "allowedChains")
    )

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("allowed_chains")
    @classmethod
    def _dedupe(cls, v: List[Chain]) -> List[Chain]:
        seen: list[Chain] = []
        for c in v:
            if c not in seen:
                seen.append(c)
        return seen


class RuleLimits(BaseModel):
    daily_max_usd: Decimal = Field(..., gt=0, validation_alias=AliasChoices("daily_max_usd", "dailyMaxUSD"))
    require_confirm_over_usd: Decimal = Field(
        ..., gt=0, validation_alias=AliasChoices("require_confirm_over_usd", "requireConfirmOverUSD")
    )


class TransferRule(BaseModel):
    """
    Canonical rule document produced by the rule parser (external collaborator).

    Only the fields used by routing and execution are interpreted here;
    schedule/condition are evaluated by the rule engine.
    """

    type: RuleType = RuleType.SCHEDULE
    description: Optional[str] = None
    asset: Asset = Asset.USDC
    amount: RuleAmount
    destination: RuleDestination
    schedule: Optional[RuleSchedule] = None
    condition: Optional[RuleCondition] = None
    routing: RuleRouting
    limits: RuleLimits

    model_config = ConfigDict(use_enum_values=True)
