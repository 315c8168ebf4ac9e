from __future__ import annotations

import asyncio

import pytest

from core.services.scheduler import AsyncioScheduler, CancellationToken, VirtualScheduler


class TestVirtualScheduler:
    def test_fires_only_when_due(self):
        sched = VirtualScheduler()
        fired = []
        sched.schedule(2, lambda: fired.append("a"), token=CancellationToken())
        sched.schedule(10, lambda: fired.append("b"), token=CancellationToken())

        assert sched.advance(1.9) == 0
        assert sched.advance(0.1) == 1
        assert fired == ["a"]
        assert sched.pending == 1
        assert sched.now() == 2

        assert sched.run_all() == 1
        assert fired == ["a", "b"]
        assert sched.now() == 10

    def test_due_order(self):
        sched = VirtualScheduler()
        fired = []
        sched.schedule(5, lambda: fired.append(5), token=CancellationToken())
        sched.schedule(1, lambda: fired.append(1), token=CancellationToken())
        sched.schedule(3, lambda: fired.append(3), token=CancellationToken())
        sched.run_all()
        assert fired == [1, 3, 5]

    def test_cancelled_task_never_runs(self):
        sched = VirtualScheduler()
        token = CancellationToken()
        fired = []
        sched.schedule(1, lambda: fired.append(1), token=token)
        token.cancel()

        assert sched.pending == 0
        assert sched.advance(5) == 0
        assert fired == []

    def test_failing_task_does_not_stop_the_queue(self):
        sched = VirtualScheduler()
        fired = []

        def boom():
            raise RuntimeError("boom")

        sched.schedule(1, boom, token=CancellationToken(), name="boom")
        sched.schedule(2, lambda: fired.append(2), token=CancellationToken())
        assert sched.advance(3) == 2
        assert fired == [2]

    def test_run_all_on_empty_queue(self):
        assert VirtualScheduler().run_all() == 0


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_fires_on_running_loop(self):
        sched = AsyncioScheduler()
        fired = asyncio.Event()
        sched.schedule(0.01, fired.set, token=CancellationToken())
        await asyncio.wait_for(fired.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_cancelled(self):
        sched = AsyncioScheduler()
        token = CancellationToken()
        fired = []
        sched.schedule(0.01, lambda: fired.append(1), token=token)
        token.cancel()
        await asyncio.sleep(0.05)
        assert fired == []

    def test_requires_loop(self):
        with pytest.raises(RuntimeError):
            AsyncioScheduler().schedule(0, lambda: None, token=CancellationToken())
