import os
from dotenv import load_dotenv
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

load_dotenv()


def _parse_csv(value: str, *, lower: bool = False) -> List[str]:
    if not value:
        return []
    items = [x.strip() for x in value.split(",")]
    items = [x for x in items if x]
    if lower:
        items = [x.lower() for x in items]
    return items


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return int(value.strip())


@dataclass
class Settings:
    # storage
    STORAGE_BACKEND: str
    MONGO_URI: str
    MONGO_DB: str

    # ---- Feature flags (defaults; see core.services.feature_flags) ----
    USE_MOCKS: bool
    ENABLE_CCTP: bool
    ENABLE_NOTIFICATIONS: bool

    # ---- Circle provider ----
    CIRCLE_API_BASE_URL: str
    CIRCLE_API_KEY: str
    CIRCLE_WEBHOOK_SECRET: str

    # live price feeds
    GAS_FEED_URL: str
    FX_FEED_URL: str

    # oracles
    GAS_CACHE_TTL_SEC: int = 30
    FX_CACHE_TTL_SEC: int = 60
    ORACLE_TIMEOUT_SEC: float = 5.0

    # idempotency
    IDEMPOTENCY_TTL_SEC: int = 24 * 60 * 60
    IDEMPOTENCY_MAX_ENTRIES: int = 10_000
    IDEMPOTENCY_WAIT_SEC: float = 10.0

    # webhooks
    WEBHOOK_TOLERANCE_SEC: int = 5 * 60
    WEBHOOK_REPLAY_TTL_SEC: int = 10 * 60

    # mock provider simulation
    SAME_CHAIN_DELAY_SEC: float = 2.0
    CROSS_CHAIN_DELAY_SEC: float = 10.0
    MOCK_FAILURE_RATE: float = 0.02
    MOCK_SEED: Optional[int] = None

    # generic
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        # Storage
        STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", "memory").strip().lower(),
        MONGO_URI=os.getenv("MONGO_URI", "mongodb://localhost:27017/payments_core"),
        MONGO_DB=os.getenv("MONGO_DB", "payments_core"),

        # Flags
        USE_MOCKS=_parse_bool(os.getenv("USE_MOCKS"), True),
        ENABLE_CCTP=_parse_bool(os.getenv("ENABLE_CCTP"), False),
        ENABLE_NOTIFICATIONS=_parse_bool(os.getenv("ENABLE_NOTIFICATIONS"), False),

        # Circle
        CIRCLE_API_BASE_URL=os.getenv("CIRCLE_API_BASE_URL", "https://api.circle.com/v1"),
        CIRCLE_API_KEY=os.getenv("CIRCLE_API_KEY", ""),
        CIRCLE_WEBHOOK_SECRET=os.getenv("CIRCLE_WEBHOOK_SECRET", "mock-secret"),

        # Feeds
        GAS_FEED_URL=os.getenv("GAS_FEED_URL", ""),
        FX_FEED_URL=os.getenv("FX_FEED_URL", ""),

        GAS_CACHE_TTL_SEC=int(os.getenv("GAS_CACHE_TTL_SEC", "30")),
        FX_CACHE_TTL_SEC=int(os.getenv("FX_CACHE_TTL_SEC", "60")),
        ORACLE_TIMEOUT_SEC=float(os.getenv("ORACLE_TIMEOUT_SEC", "5")),

        IDEMPOTENCY_TTL_SEC=int(os.getenv("IDEMPOTENCY_TTL_SEC", str(24 * 60 * 60))),
        IDEMPOTENCY_MAX_ENTRIES=int(os.getenv("IDEMPOTENCY_MAX_ENTRIES", "10000")),
        IDEMPOTENCY_WAIT_SEC=float(os.getenv("IDEMPOTENCY_WAIT_SEC", "10")),

        WEBHOOK_TOLERANCE_SEC=int(os.getenv("WEBHOOK_TOLERANCE_SEC", "300")),
        WEBHOOK_REPLAY_TTL_SEC=int(os.getenv("WEBHOOK_REPLAY_TTL_SEC", "600")),

        SAME_CHAIN_DELAY_SEC=float(os.getenv("SAME_CHAIN_DELAY_SEC", "2")),
        CROSS_CHAIN_DELAY_SEC=float(os.getenv("CROSS_CHAIN_DELAY_SEC", "10")),
        MOCK_FAILURE_RATE=float(os.getenv("MOCK_FAILURE_RATE", "0.02")),
        MOCK_SEED=_parse_int(os.getenv("MOCK_SEED")),

        ENV=os.getenv("ENV", "dev"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        CORS_ORIGINS=_parse_csv(os.getenv("CORS_ORIGINS", "")) or ["*"],
    )
