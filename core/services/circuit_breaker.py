"""
Circuit breaker for external feed calls.

States:
- CLOSED: calls pass through; consecutive failures are counted
- OPEN: calls are rejected with `CircuitOpenError` until the recovery timeout
- HALF_OPEN: trial calls pass; enough successes close the circuit, a failure reopens it
"""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from time import monotonic
from typing import Any, Awaitable, Callable, Optional

from core.services.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        half_open_successes: int = 1,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, int(failure_threshold))
        self.recovery_timeout = float(recovery_timeout)
        self.half_open_successes = max(1, int(half_open_successes))
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_ok = 0
        self._opened_at: Optional[float] = None
        self._stats = {"total_calls": 0, "successful_calls": 0, "failed_calls": 0, "blocked_calls": 0}

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._half_open_ok = 0
            logger.info("Circuit %s entering HALF_OPEN state", self.name)
        return self._state

    def is_healthy(self) -> bool:
        return self.state != CircuitState.OPEN

    def _before_call(self) -> None:
        with self._lock:
            self._stats["total_calls"] += 1
            if self._current_state() == CircuitState.OPEN:
                self._stats["blocked_calls"] += 1
                raise CircuitOpenError(self.name)

    def _on_success(self) -> None:
        with self._lock:
            self._stats["successful_calls"] += 1
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_ok += 1
                if self._half_open_ok < self.half_open_successes:
                    return
                logger.info("Circuit %s recovered - now CLOSED", self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None

    def _on_failure(self) -> None:
        with self._lock:
            self._stats["failed_calls"] += 1
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        "Circuit %s OPEN after %s failures (retry in %ss)",
                        self.name,
                        self._failure_count,
                        self.recovery_timeout,
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                self._half_open_ok = 0

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await `func(*args, **kwargs)` under protection. Raises `CircuitOpenError`
        without calling `func` while the circuit is open. A cancelled call (for
        example a caller timeout) counts as a failure.
        """
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except (Exception, asyncio.CancelledError):
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_ok = 0
            self._opened_at = None
            for k in self._stats:
                self._stats[k] = 0

    def status(self) -> dict:
        with self._lock:
            state = self._current_state()
            return {
                "name": self.name,
                "state": state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "recovery_timeout": self.recovery_timeout,
                **self._stats,
            }
