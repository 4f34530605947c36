"""
Work queue for reconcile requests.

Requests are deduplicated: a request that is already waiting is not queued
twice, and a request that arrives while it is being processed is queued
again once the worker calls ``done``. Failed requests are re-added after a
per-request exponential backoff.

All methods except ``add_threadsafe`` must be called from the event loop.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class Request:
    """Identifies the object to reconcile."""

    name: str
    namespace: str | None = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass
class Result:
    """Outcome of a reconcile; ``requeue_after`` schedules another run."""

    requeue_after: float | None = None


# =============================================================================
# Rate Limiting
# =============================================================================


class ExponentialRateLimiter:
    """
    Per-item exponential backoff.

    The n-th consecutive failure of an item waits ``base * 2**n`` seconds,
    capped at ``maximum``. ``forget`` resets the item.
    """

    def __init__(self, base: float = 0.005, maximum: float = 1000.0):
        self.base = base
        self.maximum = maximum
        self._failures: dict[Request, int] = {}

    def when(self, item: Request) -> float:
        exponent = self._failures.get(item, 0)
        self._failures[item] = exponent + 1
        if exponent > 62:
            return self.maximum
        return min(self.base * (2**exponent), self.maximum)

    def num_requeues(self, item: Request) -> int:
        return self._failures.get(item, 0)

    def forget(self, item: Request) -> None:
        self._failures.pop(item, None)


# =============================================================================
# Queue
# =============================================================================


class WorkQueue:
    """Deduplicating asyncio queue with delayed and rate-limited adds."""

    def __init__(self, rate_limiter: ExponentialRateLimiter | None = None):
        self.rate_limiter = rate_limiter or ExponentialRateLimiter()
        self._queue: deque[Request] = deque()
        self._dirty: set[Request] = set()
        self._processing: set[Request] = set()
        self._wakeup = asyncio.Event()
        self._shutting_down = False
        self._timers: set[asyncio.TimerHandle] = set()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, item: Request) -> None:
        if self._shutting_down or item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        self._wakeup.set()

    def add_threadsafe(self, loop: asyncio.AbstractEventLoop, item: Request) -> None:
        """Add from a thread other than the loop's (watch threads)."""
        loop.call_soon_threadsafe(self.add, item)

    def add_after(self, item: Request, delay: float) -> None:
        if delay <= 0:
            self.add(item)
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def fire() -> None:
            self._timers.discard(handle)
            self.add(item)

        handle = loop.call_later(delay, fire)
        self._timers.add(handle)

    def add_rate_limited(self, item: Request) -> None:
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: Request) -> None:
        self.rate_limiter.forget(item)

    async def get(self) -> Request | None:
        """Wait for the next item; returns None once shut down."""
        while not self._queue:
            if self._shutting_down:
                return None
            self._wakeup.clear()
            await self._wakeup.wait()
        item = self._queue.popleft()
        self._processing.add(item)
        self._dirty.discard(item)
        return item

    def done(self, item: Request) -> None:
        self._processing.discard(item)
        if item in self._dirty:
            self._queue.append(item)
            self._wakeup.set()

    def shutdown(self) -> None:
        self._shutting_down = True
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        self._wakeup.set()
