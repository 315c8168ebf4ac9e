from __future__ import annotations

import logging
import random
from typing import Optional

from adapters.external.provider.live_provider import LiveProvider
from adapters.external.provider.mock_provider import MockProvider
from config import Settings
from core.domain.repositories.provider_client_interface import ProviderClient
from core.services.feature_flags import FeatureFlags
from core.services.scheduler import TaskScheduler

logger = logging.getLogger(__name__)


def build_provider(
    settings: Settings,
    flags: FeatureFlags,
    *,
    scheduler: TaskScheduler,
    rng: Optional[random.Random] = None,
) -> ProviderClient:
    """
    Pick the provider variant once, from the feature flags.
    """
    if flags.use_mocks:
        logger.info("Using mock payment provider (cctp=%s)", flags.enable_cctp)
        return MockProvider(
            scheduler=scheduler,
            rng=rng or random.Random(settings.MOCK_SEED),
            failure_rate=settings.MOCK_FAILURE_RATE,
            same_chain_delay=settings.SAME_CHAIN_DELAY_SEC,
            cross_chain_delay=settings.CROSS_CHAIN_DELAY_SEC,
            enable_cctp=flags.enable_cctp,
        )

    if not settings.CIRCLE_API_KEY:
        raise RuntimeError("USE_MOCKS=false but CIRCLE_API_KEY is not configured.")
    logger.info("Using live payment provider at %s", settings.CIRCLE_API_BASE_URL)
    return LiveProvider.from_settings(enable_cctp=flags.enable_cctp)
