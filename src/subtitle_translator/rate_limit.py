"""Request pacing and retry backoff for provider clients."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Awaitable, Callable, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

# Next free slot per limiter for the translation request running in this context
_request_slots: ContextVar[Optional[Dict[int, float]]] = ContextVar("request_slots", default=None)


@contextmanager
def pacing_scope() -> Iterator[None]:
    """
    Give the enclosed request its own pacing slots.

    Inside the scope every RateLimiter spaces this request's calls only,
    so concurrent requests sharing a provider never queue behind each
    other. Outside any scope a limiter paces all callers together.
    """
    token = _request_slots.set({})
    try:
        yield
    finally:
        _request_slots.reset(token)


class RateLimiter:
    """
    Keeps at least ``min_interval`` seconds between provider requests.

    Slots are reserved without holding a lock, so callers waiting for their
    turn only suspend their own coroutine. Within a ``pacing_scope`` the
    interval applies per request; retry backoff is always per call.

    Args:
        min_interval: Seconds between consecutive requests
        backoff_base: First retry delay in seconds
        rate_limit_backoff_base: First retry delay after a 429
        max_backoff: Upper bound for any retry delay
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        backoff_base: float = 2.0,
        rate_limit_backoff_base: float = 4.0,
        max_backoff: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.min_interval = max(0.0, min_interval)
        self.backoff_base = backoff_base
        self.rate_limit_backoff_base = rate_limit_backoff_base
        self.max_backoff = max_backoff
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._next_slot = 0.0

    def reserve(self) -> float:
        """Claim the next request slot and return how long to wait for it."""
        now = self._clock()
        slots = _request_slots.get()
        if slots is None:
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        else:
            slot = max(now, slots.get(id(self), 0.0))
            slots[id(self)] = slot + self.min_interval
        return slot - now

    async def acquire(self) -> None:
        """Wait until this caller may send a request."""
        delay = self.reserve()
        if delay > 0:
            logger.debug(f"Rate limiter waiting {delay:.2f}s")
            await self._sleep(delay)

    def backoff_delay(self, attempt: int, rate_limited: bool = False, retry_after: Optional[float] = None) -> float:
        """
        Delay before retry number ``attempt`` (0-based).

        A provider supplied Retry-After wins over the exponential schedule.
        """
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.max_backoff)
        base = self.rate_limit_backoff_base if rate_limited else self.backoff_base
        return min(base * (2 ** attempt), self.max_backoff)

    async def backoff(self, attempt: int, rate_limited: bool = False, retry_after: Optional[float] = None) -> None:
        delay = self.backoff_delay(attempt, rate_limited, retry_after)
        if delay > 0:
            await self._sleep(delay)
