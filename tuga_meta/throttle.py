"""Sliding-window rate limiting for rate-sensitive upstream hosts."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable

from .common.validation import require_non_negative

LOGGER = logging.getLogger("tuga_meta.throttle")

IMDB_HOST_CLASS = "imdb.com"
"""Host class shared by every IMDb endpoint (suggestions, find, title pages)."""

MIN_WAIT_SECONDS = 0.005
_AGE_OUT_MARGIN = 0.001


class RateGate:
    """Asynchronous sliding-window limiter keyed by host class.

    At most ``max_per_window`` requests per host class are admitted within any
    trailing ``window`` seconds.  A ceiling of ``0`` disables gating.  Callers
    that find the window full sleep until the oldest timestamp ages out and
    then re-check, since other callers may have claimed the freed slot first.
    """

    def __init__(
        self,
        *,
        max_per_window: int,
        window: float = 1.0,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._limit = require_non_negative(max_per_window, name="max_per_window")
        if window <= 0:
            raise ValueError("window must be positive")
        self._window = float(window)
        self._clock = clock
        self._sleep = sleep
        self._timestamps: dict[str, deque[float]] = {}

    @property
    def enabled(self) -> bool:
        return self._limit > 0

    @property
    def limit(self) -> int:
        return self._limit

    def in_window(self, host_class: str) -> int:
        """Return how many admitted requests are still inside the window."""

        timestamps = self._timestamps.get(host_class)
        if not timestamps:
            return 0
        self._prune(timestamps, self._now())
        return len(timestamps)

    async def acquire(self, host_class: str) -> None:
        """Await until another request against *host_class* may be issued."""

        if not self._limit:
            return

        timestamps = self._timestamps.setdefault(host_class, deque())
        while True:
            now = self._now()
            self._prune(timestamps, now)
            if len(timestamps) < self._limit:
                timestamps.append(now)
                return
            wait = self._window + _AGE_OUT_MARGIN - (now - timestamps[0])
            wait = max(wait, MIN_WAIT_SECONDS)
            LOGGER.debug(
                "Rate gate for %s full (%d/%d); waiting %.3fs",
                host_class,
                len(timestamps),
                self._limit,
                wait,
            )
            await self._pause(wait)

    def _prune(self, timestamps: deque[float], now: float) -> None:
        while timestamps and now - timestamps[0] > self._window:
            timestamps.popleft()

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        try:
            return asyncio.get_running_loop().time()
        except RuntimeError:
            # Outside a loop; default loops read the same monotonic clock.
            return time.monotonic()

    async def _pause(self, delay: float) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
        else:
            await asyncio.sleep(delay)


__all__ = ["IMDB_HOST_CLASS", "MIN_WAIT_SECONDS", "RateGate"]
