from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class FXRate(BaseModel):
    pair: str
    rate: Decimal
    bid: Decimal
    ask: Decimal
    spread: Decimal
    change_24h: Decimal
    last_updated: float  # unix seconds
    source: str
    confidence: int


class FXConversion(BaseModel):
    original_amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    pair: str
    confidence: int
    timestamp: float


class FXMovement(BaseModel):
    pair: str
    current_rate: Decimal
    previous_rate: Decimal
    change_percent: Decimal
    threshold_met: bool
    direction: Literal["up", "down", "stable"]


class FXVolatility(BaseModel):
    pair: str
    volatility: Decimal
    level: Literal["low", "medium", "high"]
    confidence: int
