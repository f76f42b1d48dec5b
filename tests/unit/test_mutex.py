"""Tests for the FIFO mutex."""

import asyncio

import pytest

from nutpouch.mutex import Mutex, with_mutex


class TestMutex:
    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        mutex = Mutex()

        release = await mutex.acquire()
        assert mutex.locked
        release()

        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self):
        mutex = Mutex()
        release = await mutex.acquire()
        waiter = asyncio.create_task(mutex.acquire())
        await asyncio.sleep(0)

        release()
        release()
        second_release = await waiter

        assert mutex.locked
        second_release()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_try_acquire(self):
        mutex = Mutex()

        release = mutex.try_acquire()
        assert release is not None
        assert mutex.try_acquire() is None

        release()
        assert mutex.try_acquire() is not None

    @pytest.mark.asyncio
    async def test_run_exclusive_preserves_fifo_order(self):
        """Side effects happen in start order even when the first task is slowest."""
        mutex = Mutex()
        order: list[str] = []

        async def op(name: str, delay: float) -> str:
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")
            return name

        results = await asyncio.gather(
            mutex.run_exclusive(op, "o1", 0.03),
            mutex.run_exclusive(op, "o2", 0.01),
            mutex.run_exclusive(op, "o3", 0),
        )

        assert results == ["o1", "o2", "o3"]
        assert order == ["o1-start", "o1-end", "o2-start", "o2-end", "o3-start", "o3-end"]

    @pytest.mark.asyncio
    async def test_run_exclusive_releases_on_error(self):
        mutex = Mutex()

        async def boom() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await mutex.run_exclusive(boom)

        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_lock_handed_directly_to_next_waiter(self):
        mutex = Mutex()
        release = await mutex.acquire()
        waiter = asyncio.create_task(mutex.acquire())
        await asyncio.sleep(0)
        assert mutex.queue_length == 1

        release()

        # no window where an outsider could grab the lock
        assert mutex.locked
        assert mutex.try_acquire() is None
        (await waiter)()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_skipped(self):
        mutex = Mutex()
        release = await mutex.acquire()
        cancelled = asyncio.create_task(mutex.acquire())
        queued = asyncio.create_task(mutex.acquire())
        await asyncio.sleep(0)

        cancelled.cancel()
        await asyncio.sleep(0)
        release()

        next_release = await asyncio.wait_for(queued, timeout=1)
        assert cancelled.cancelled()
        next_release()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_waiter_cancelled_after_handoff_passes_lock_on(self):
        mutex = Mutex()
        release = await mutex.acquire()
        first = asyncio.create_task(mutex.acquire())
        second = asyncio.create_task(mutex.acquire())
        await asyncio.sleep(0)

        release()  # hands the lock to `first`
        first.cancel()  # before `first` gets to run

        next_release = await asyncio.wait_for(second, timeout=1)
        assert mutex.locked
        next_release()
        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        mutex = Mutex()

        async with mutex:
            assert mutex.locked

        assert not mutex.locked

    @pytest.mark.asyncio
    async def test_with_mutex_decorator(self):
        mutex = Mutex()
        active = 0
        max_active = 0

        @with_mutex(mutex)
        async def work() -> None:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0)
            active -= 1

        await asyncio.gather(*(work() for _ in range(5)))

        assert max_active == 1
