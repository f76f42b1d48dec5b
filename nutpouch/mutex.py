"""FIFO async mutex serializing wallet state mutations."""

from __future__ import annotations

import asyncio
from collections import deque
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")

Release = Callable[[], None]


class Mutex:
    """Async lock handing ownership to waiters strictly in arrival order.

    On release the lock passes directly to the next waiter, so it never
    looks free while someone is queued.

    Example:
        mutex = Mutex()
        result = await mutex.run_exclusive(update_balance)

        async with mutex:
            ...
    """

    def __init__(self) -> None:
        self._locked = False
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._context_release: list[Release] = []

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def queue_length(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> Release:
        """Wait for the lock and return a callable that releases it."""
        if not self._locked:
            self._locked = True
            return self._release_once()

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # ownership was handed over before the cancellation landed
                self._release()
            raise
        return self._release_once()

    def try_acquire(self) -> Release | None:
        """Take the lock if it is free, otherwise return None."""
        if self._locked:
            return None
        self._locked = True
        return self._release_once()

    async def run_exclusive(
        self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Run ``fn`` holding the lock; the lock is released even if it raises."""
        release = await self.acquire()
        try:
            return await fn(*args, **kwargs)
        finally:
            release()

    async def __aenter__(self) -> Mutex:
        self._context_release.append(await self.acquire())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._context_release.pop()()

    def _release_once(self) -> Release:
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self._release()

        return release

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._locked = False


def with_mutex(
    mutex: Mutex,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator serializing every call of a coroutine function through ``mutex``."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await mutex.run_exclusive(fn, *args, **kwargs)

        return wrapper

    return decorator
