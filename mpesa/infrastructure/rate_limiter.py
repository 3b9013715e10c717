"""Rate Limiter — admission control by concurrency ceiling and fixed time window.

Invariants:
    - active_count ≤ max_concurrent at every observable instant
    - At most window_budget admissions per window; windows are aligned to the
      limiter's creation time and admitted_in_window resets only when a boundary
      is crossed (never retroactively)
    - Both gates are checked and counted in one critical section (_try_admit)
    - A waiter that times out or is cancelled never touches the counters
    - Each Release decrements exactly once; a second call raises RuntimeError

Design Decisions:
    - Fixed window over sliding log: deterministic boundaries, O(1) bookkeeping
    - Waiters park on futures woken by release() and by window boundaries; every
      woken waiter re-checks both gates, so fairness is best-effort and starvation
      is bounded by the window interval
    - QuotaWindow state is touched only in synchronous sections on the owning
      event loop; no await happens between check and count
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from mpesa.core.errors import NetworkError
from mpesa.infrastructure.clock import Clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaWindow:
    """Point-in-time copy of the limiter's shared state."""
    window_start: float
    window_duration_ms: int
    window_budget: int
    max_concurrent: int
    active_count: int
    admitted_in_window: int


class Release:
    """Returns one concurrency slot; callable exactly once."""

    def __init__(self, limiter: "RateLimiter"):
        self._limiter = limiter
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def __call__(self) -> None:
        if self._released:
            raise RuntimeError("Rate limiter slot already released")
        self._released = True
        self._limiter._release()


class RateLimiter:
    """Gates outbound calls against simultaneous-request and throughput quotas."""

    def __init__(
        self,
        max_concurrent: int,
        window_budget: int,
        window_duration_ms: int,
        clock: Clock | None = None,
    ):
        if max_concurrent < 1 or window_budget < 1 or window_duration_ms < 1:
            raise ValueError("max_concurrent, window_budget and window_duration_ms must be >= 1")
        self.max_concurrent = max_concurrent
        self.window_budget = window_budget
        self.window_duration_ms = window_duration_ms
        self._clock = clock or Clock()
        self._window_start = self._clock.monotonic()
        self._active = 0
        self._admitted = 0
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def _window_seconds(self) -> float:
        return self.window_duration_ms / 1000

    def snapshot(self) -> QuotaWindow:
        self._roll_window(self._clock.monotonic())
        return QuotaWindow(
            window_start=self._window_start,
            window_duration_ms=self.window_duration_ms,
            window_budget=self.window_budget,
            max_concurrent=self.max_concurrent,
            active_count=self._active,
            admitted_in_window=self._admitted,
        )

    async def acquire(self, timeout: float | None = None) -> Release:
        """Wait for admission; raise NetworkError(reason="timeout") past the deadline."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else self._clock.monotonic() + timeout

        while True:
            now = self._clock.monotonic()
            if self._try_admit(now):
                return Release(self)

            wait = self._until_next_window(now) if self._admitted >= self.window_budget else None
            if deadline is not None:
                remaining = deadline - now
                if remaining <= 0:
                    logger.warning(
                        "Rate limit wait timed out",
                        extra={"active": self._active, "admitted": self._admitted},
                    )
                    raise NetworkError("Timed out waiting for rate limit admission", "timeout")
                wait = remaining if wait is None else min(wait, remaining)

            waiter = loop.create_future()
            self._waiters.append(waiter)
            try:
                await asyncio.wait_for(waiter, wait)
            except asyncio.TimeoutError:
                pass
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

    @asynccontextmanager
    async def slot(self, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold one admission for the duration of the block."""
        release = await self.acquire(timeout)
        try:
            yield
        finally:
            release()

    # ─── Critical sections ──────────────────────────────────────

    def _try_admit(self, now: float) -> bool:
        self._roll_window(now)
        if self._active >= self.max_concurrent or self._admitted >= self.window_budget:
            return False
        self._active += 1
        self._admitted += 1
        return True

    def _release(self) -> None:
        self._active -= 1
        self._wake_all()

    def _roll_window(self, now: float) -> None:
        elapsed = now - self._window_start
        if elapsed < self._window_seconds:
            return
        windows_passed = int(elapsed // self._window_seconds)
        self._window_start += windows_passed * self._window_seconds
        self._admitted = 0

    def _until_next_window(self, now: float) -> float:
        return max(0.0, self._window_start + self._window_seconds - now)

    def _wake_all(self) -> None:
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)
