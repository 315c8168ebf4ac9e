from __future__ import annotations

from enum import StrEnum


class RoutingMode(StrEnum):
    """
    Route selection policy carried by a rule.

    CHEAPEST: minimum fee.
    FASTEST: minimum ETA.
    BALANCED: weighted fee/ETA score.
    FIXED: first allowed chain that could be quoted.
    """

    CHEAPEST = "cheapest"
    FASTEST = "fastest"
    BALANCED = "balanced"
    FIXED = "fixed"


class RuleType(StrEnum):
    SCHEDULE = "schedule"
    CONDITIONAL = "conditional"


class DestinationType(StrEnum):
    ADDRESS = "address"
    CONTACT = "contact"
