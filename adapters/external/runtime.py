# adapters/external/runtime.py

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Callable, Dict

from adapters.external.database.idempotency_repository_memory import IdempotencyRepositoryMemory
from adapters.external.database.transfer_execution_repository_memory import TransferExecutionRepositoryMemory
from adapters.external.database.webhook_event_repository_memory import WebhookEventRepositoryMemory
from adapters.external.feeds.fx_feed_http_client import FXFeedHttpClient
from adapters.external.feeds.gas_feed_http_client import GasFeedHttpClient
from adapters.external.provider.mock_provider import MockProvider
from adapters.external.provider.provider_factory import build_provider
from config import Settings, get_settings
from core.domain.repositories.idempotency_repository_interface import IdempotencyRepository
from core.domain.repositories.provider_client_interface import ProviderClient
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository
from core.domain.repositories.webhook_event_repository_interface import WebhookEventRepository
from core.domain.schemas.provider_types import ProviderTransfer
from core.services.execution_status import LoggingRuleEngineNotifier, RuleEngineNotifier, apply_transfer_update
from core.services.feature_flags import FeatureFlags, get_feature_flags, reset_feature_flags
from core.services.fx_oracle import FXOracle, LiveFXOracle, MockFXOracle
from core.services.gas_oracle import GasOracle, LiveGasOracle, MockGasOracle
from core.services.idempotency_service import IdempotencyService
from core.services.quote_router import QuoteRouter
from core.services.scheduler import AsyncioScheduler, TaskScheduler

logger = logging.getLogger(__name__)

OVERRIDABLE = frozenset(
    {
        "settings",
        "flags",
        "rng",
        "scheduler",
        "provider",
        "gas_oracle",
        "fx_oracle",
        "quote_router",
        "idempotency_repo",
        "webhook_event_repo",
        "execution_repo",
        "notifier",
    }
)

_lock = threading.RLock()
_state: Dict[str, Any] = {}
_overrides: Dict[str, Any] = {}


def _get(name: str, factory: Callable[[], Any]) -> Any:
    """
    Process-wide lazy singleton, built once (or taken from the overrides).
    """
    with _lock:
        if name not in _state:
            _state[name] = _overrides[name] if name in _overrides else factory()
        return _state[name]


def reset_runtime(**overrides: Any) -> None:
    """
    Drop every cached component. Components named in `overrides` are used as
    is on the next access; the rest are rebuilt from settings and flags.
    """
    unknown = set(overrides) - OVERRIDABLE
    if unknown:
        raise ValueError(f"Unknown runtime components: {', '.join(sorted(unknown))}")
    with _lock:
        _state.clear()
        _overrides.clear()
        _overrides.update(overrides)
        if "flags" not in overrides:
            reset_feature_flags()


# ---------- configuration ----------


def get_runtime_settings() -> Settings:
    return _get("settings", get_settings)


def get_runtime_flags() -> FeatureFlags:
    return _get("flags", get_feature_flags)


def get_rng() -> random.Random:
    return _get("rng", lambda: random.Random(get_runtime_settings().MOCK_SEED))


def get_scheduler() -> TaskScheduler:
    return _get("scheduler", AsyncioScheduler)


# ---------- storage ----------


def _use_mongo() -> bool:
    return get_runtime_settings().STORAGE_BACKEND == "mongo"


def _build_idempotency_repo() -> IdempotencyRepository:
    if _use_mongo():
        from adapters.external.database.idempotency_repository_mongodb import IdempotencyRepositoryMongoDB

        return IdempotencyRepositoryMongoDB()
    return IdempotencyRepositoryMemory(max_entries=get_runtime_settings().IDEMPOTENCY_MAX_ENTRIES)


def _build_webhook_event_repo() -> WebhookEventRepository:
    if _use_mongo():
        from adapters.external.database.webhook_event_repository_mongodb import WebhookEventRepositoryMongoDB

        return WebhookEventRepositoryMongoDB()
    return WebhookEventRepositoryMemory()


def _build_execution_repo() -> TransferExecutionRepository:
    if _use_mongo():
        from adapters.external.database.transfer_execution_repository_mongodb import (
            TransferExecutionRepositoryMongoDB,
        )

        return TransferExecutionRepositoryMongoDB()
    return TransferExecutionRepositoryMemory()


def get_idempotency_repo() -> IdempotencyRepository:
    return _get("idempotency_repo", _build_idempotency_repo)


def get_webhook_event_repo() -> WebhookEventRepository:
    return _get("webhook_event_repo", _build_webhook_event_repo)


def get_execution_repo() -> TransferExecutionRepository:
    return _get("execution_repo", _build_execution_repo)


def get_idempotency_service() -> IdempotencyService:
    st = get_runtime_settings()
    return _get(
        "idempotency_service",
        lambda: IdempotencyService(
            repo=get_idempotency_repo(),
            ttl_seconds=st.IDEMPOTENCY_TTL_SEC,
            wait_seconds=st.IDEMPOTENCY_WAIT_SEC,
        ),
    )


def ensure_indexes() -> None:
    get_idempotency_repo().ensure_indexes()
    get_webhook_event_repo().ensure_indexes()
    get_execution_repo().ensure_indexes()


# ---------- oracles / routing ----------


def _build_gas_oracle() -> GasOracle:
    st = get_runtime_settings()
    if get_runtime_flags().use_mocks:
        return MockGasOracle(rng=get_rng(), cache_ttl_seconds=st.GAS_CACHE_TTL_SEC)
    if not st.GAS_FEED_URL:
        raise RuntimeError("USE_MOCKS=false but GAS_FEED_URL is not configured.")
    return LiveGasOracle(GasFeedHttpClient.from_settings(), cache_ttl_seconds=st.GAS_CACHE_TTL_SEC)


def _build_fx_oracle() -> FXOracle:
    st = get_runtime_settings()
    if get_runtime_flags().use_mocks or not st.FX_FEED_URL:
        return MockFXOracle(rng=get_rng(), cache_ttl_seconds=st.FX_CACHE_TTL_SEC)
    return LiveFXOracle(FXFeedHttpClient.from_settings(), cache_ttl_seconds=st.FX_CACHE_TTL_SEC)


def get_gas_oracle() -> GasOracle:
    return _get("gas_oracle", _build_gas_oracle)


def get_fx_oracle() -> FXOracle:
    return _get("fx_oracle", _build_fx_oracle)


def get_quote_router() -> QuoteRouter:
    return _get(
        "quote_router",
        lambda: QuoteRouter(
            get_gas_oracle(),
            fx_oracle=get_fx_oracle(),
            timeout_seconds=get_runtime_settings().ORACLE_TIMEOUT_SEC,
        ),
    )


# ---------- provider ----------


def get_notifier() -> RuleEngineNotifier:
    return _get(
        "notifier",
        lambda: LoggingRuleEngineNotifier(user_notifications=get_runtime_flags().enable_notifications),
    )


def _build_provider() -> ProviderClient:
    provider = build_provider(
        get_runtime_settings(),
        get_runtime_flags(),
        scheduler=get_scheduler(),
        rng=get_rng(),
    )
    if isinstance(provider, MockProvider):
        # no webhooks arrive in mock mode; settle executions straight from the engine
        repo = get_execution_repo()
        notifier = get_notifier()

        def _on_settled(t: ProviderTransfer) -> None:
            apply_transfer_update(
                repo,
                transfer_id=t.id,
                status=t.status,
                transaction_hash=t.transaction_hash,
                error_code=t.error_code,
                notifier=notifier,
            )

        provider.subscribe(_on_settled)
    return provider


def get_provider() -> ProviderClient:
    return _get("provider", _build_provider)
