"""
Process-wide feature switches.

Flags are read once when a component is built (provider variant, gas/fx
oracle variant); nothing branches on them per call.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields, replace
from typing import Optional

from config import get_settings
from core.services.exceptions import ValidationError


@dataclass(frozen=True)
class FeatureFlags:
    use_mocks: bool = True
    enable_cctp: bool = False
    enable_notifications: bool = False

    @classmethod
    def from_settings(cls) -> "FeatureFlags":
        s = get_settings()
        return cls(
            use_mocks=s.USE_MOCKS,
            enable_cctp=s.ENABLE_CCTP,
            enable_notifications=s.ENABLE_NOTIFICATIONS,
        )

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_lock = threading.Lock()
_current: Optional[FeatureFlags] = None


def get_feature_flags() -> FeatureFlags:
    global _current
    with _lock:
        if _current is None:
            _current = FeatureFlags.from_settings()
        return _current


def update_feature_flag(name: str, value: bool) -> FeatureFlags:
    global _current
    known = {f.name for f in fields(FeatureFlags)}
    if name not in known:
        raise ValidationError(f"Unknown feature flag: {name}")
    current = get_feature_flags()
    with _lock:
        _current = replace(current, **{name: bool(value)})
        return _current


def reset_feature_flags() -> FeatureFlags:
    global _current
    with _lock:
        _current = FeatureFlags.from_settings()
        return _current
