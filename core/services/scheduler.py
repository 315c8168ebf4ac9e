"""
Deferred task scheduling for the provider engine.

A task is a zero-argument callable fired once after a delay, guarded by a
`CancellationToken` owned by whatever the task mutates (one per transfer).

`VirtualScheduler` keeps a queue ordered by due time and only fires tasks when
`advance()` moves its clock, so tests are deterministic. `AsyncioScheduler`
fires on the running event loop via `call_later`.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Task = Callable[[], None]


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


def _run_task(name: str, task: Task, token: CancellationToken) -> None:
    if token.cancelled:
        logger.debug("Skipping cancelled task %s", name)
        return
    try:
        task()
    except Exception:
        logger.exception("Scheduled task %s failed", name)


class TaskScheduler(ABC):
    @abstractmethod
    def schedule(self, delay_seconds: float, task: Task, *, token: CancellationToken, name: str = "") -> None:
        raise NotImplementedError

    @abstractmethod
    def now(self) -> float:
        raise NotImplementedError


@dataclass(order=True)
class _Entry:
    due: float
    seq: int
    name: str = field(compare=False)
    task: Task = field(compare=False)
    token: CancellationToken = field(compare=False)


class VirtualScheduler(TaskScheduler):
    """
    Work queue driven by virtual time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._queue: List[_Entry] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def schedule(self, delay_seconds: float, task: Task, *, token: CancellationToken, name: str = "") -> None:
        with self._lock:
            entry = _Entry(self._now + max(0.0, float(delay_seconds)), next(self._seq), name, task, token)
            heapq.heappush(self._queue, entry)

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for e in self._queue if not e.token.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and fire every task that became due, in due
        order. Returns the number of tasks run.
        """
        target = self._now + float(seconds)
        fired = 0
        while True:
            with self._lock:
                if not self._queue or self._queue[0].due > target:
                    break
                entry = heapq.heappop(self._queue)
                self._now = max(self._now, entry.due)
            if not entry.token.cancelled:
                fired += 1
            _run_task(entry.name, entry.task, entry.token)
        self._now = target
        return fired

    def run_all(self) -> int:
        with self._lock:
            if not self._queue:
                return 0
            horizon = max(e.due for e in self._queue) - self._now
        return self.advance(horizon)


class AsyncioScheduler(TaskScheduler):
    """
    Fires tasks on an asyncio event loop. When called from a thread without a
    running loop, the loop given at construction is used.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return self._resolve_loop().time()

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is None:
                raise RuntimeError("AsyncioScheduler needs a running event loop or an explicit loop.")
            return self._loop

    def schedule(self, delay_seconds: float, task: Task, *, token: CancellationToken, name: str = "") -> None:
        loop = self._resolve_loop()
        delay = max(0.0, float(delay_seconds))
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.call_later(delay, _run_task, name, task, token)
        else:
            loop.call_soon_threadsafe(loop.call_later, delay, _run_task, name, task, token)
