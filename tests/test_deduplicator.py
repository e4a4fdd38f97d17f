"""Tests for in-flight request deduplication."""

import asyncio
import gc
from datetime import timedelta

import pytest

from monitor.services.deduplicator import RequestDeduplicator


class TestCoalescing:
    async def test_concurrent_calls_share_one_request(self):
        dedup = RequestDeduplicator()
        calls = []
        release = asyncio.Event()

        async def fetch():
            calls.append(1)
            await release.wait()
            return {"value": 42}

        first = asyncio.create_task(dedup.dedupe("k", fetch))
        second = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)
        release.set()

        a, b = await asyncio.gather(first, second)
        assert len(calls) == 1
        assert a is b

    async def test_concurrent_calls_share_one_failure(self):
        dedup = RequestDeduplicator()
        calls = []

        async def fetch():
            calls.append(1)
            await asyncio.sleep(0.01)
            raise ValueError("upstream down")

        results = await asyncio.gather(
            dedup.dedupe("k", fetch),
            dedup.dedupe("k", fetch),
            return_exceptions=True,
        )
        assert len(calls) == 1
        assert all(isinstance(r, ValueError) for r in results)
        assert results[0] is results[1]

    async def test_different_keys_are_independent(self):
        dedup = RequestDeduplicator()
        calls = []

        async def fetch():
            calls.append(1)
            await asyncio.sleep(0.01)
            return len(calls)

        await asyncio.gather(dedup.dedupe("a", fetch), dedup.dedupe("b", fetch))
        assert len(calls) == 2


class TestCleanup:
    async def test_entry_removed_after_success(self):
        dedup = RequestDeduplicator()

        async def fetch():
            return 1

        await dedup.dedupe("k", fetch)
        assert dedup.size == 0
        assert dedup.is_pending("k") is False

    async def test_entry_removed_after_failure(self):
        dedup = RequestDeduplicator()

        async def fetch():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await dedup.dedupe("k", fetch)
        assert dedup.size == 0

    async def test_sequential_calls_start_new_requests(self):
        dedup = RequestDeduplicator()
        calls = []

        async def fetch():
            calls.append(1)
            return len(calls)

        assert await dedup.dedupe("k", fetch) == 1
        assert await dedup.dedupe("k", fetch) == 2


class TestMaxAge:
    async def test_expired_entry_starts_new_request(self, clock):
        dedup = RequestDeduplicator(max_age=timedelta(seconds=5), clock=clock)
        stuck = asyncio.Event()
        calls = []

        async def hung():
            calls.append("hung")
            await stuck.wait()
            return "old"

        async def fresh():
            calls.append("fresh")
            return "new"

        old_task = asyncio.create_task(dedup.dedupe("k", hung))
        await asyncio.sleep(0)
        assert dedup.is_pending("k") is True

        clock.advance(6)
        assert await dedup.dedupe("k", fresh) == "new"
        assert calls == ["hung", "fresh"]
        assert dedup.get_stats().expired == 1

        stuck.set()
        assert await old_task == "old"
        assert dedup.size == 0

    async def test_is_pending_expires_old_entries(self, clock):
        dedup = RequestDeduplicator(max_age=timedelta(seconds=5), clock=clock)
        release = asyncio.Event()

        async def fetch():
            await release.wait()

        task = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)
        clock.advance(5)
        assert dedup.is_pending("k") is False

        release.set()
        await task


class TestCancel:
    async def test_cancel_in_flight_request(self):
        dedup = RequestDeduplicator()

        async def fetch():
            await asyncio.sleep(10)

        task = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)
        assert dedup.cancel("k") is True
        assert dedup.cancel("k") is False

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_caller_cancellation_does_not_cancel_shared_request(self):
        dedup = RequestDeduplicator()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "done"

        first = asyncio.create_task(dedup.dedupe("k", fetch))
        second = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)

        first.cancel()
        await asyncio.sleep(0)
        release.set()

        assert await second == "done"

    async def test_failure_after_all_callers_cancelled_is_not_reported(self):
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))
        dedup = RequestDeduplicator()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            raise ValueError("late failure")

        caller = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        release.set()
        for _ in range(3):
            await asyncio.sleep(0)
        assert dedup.size == 0

        del caller
        gc.collect()
        loop.set_exception_handler(None)
        assert reported == []
