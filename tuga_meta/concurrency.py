"""Bounded fan-out of asynchronous operations over a sequence."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from .common.validation import require_positive

T = TypeVar("T")
R = TypeVar("R")

LOGGER = logging.getLogger("tuga_meta.concurrency")


async def map_limit(
    items: Sequence[T],
    limit: int,
    operation: Callable[[T], Awaitable[R]],
) -> list[R | None]:
    """Apply *operation* to every item with at most *limit* running at once.

    Results keep the input order.  A failing item yields ``None`` in its slot
    and does not affect the others.
    """

    require_positive(limit, name="limit")
    total = len(items)
    results: list[R | None] = [None] * total
    if not total:
        return results

    indices = itertools.count()

    async def worker(worker_id: int) -> None:
        while True:
            index = next(indices)
            if index >= total:
                return
            try:
                results[index] = await operation(items[index])
            except Exception:
                LOGGER.exception(
                    "Worker %d failed on item %d/%d", worker_id, index + 1, total
                )
                results[index] = None

    async with asyncio.TaskGroup() as group:
        for worker_id in range(min(limit, total)):
            group.create_task(worker(worker_id))

    return results


__all__ = ["map_limit"]
