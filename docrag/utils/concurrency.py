"""Bounded-concurrency gather used by the embedder's batch fallback.

When a batch embedding call fails, a handful of its items are retried one
by one.  Firing those calls all at once would hit the same provider that
just failed with a burst, so they run through :func:`throttled_gather`.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int = 4,
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """``asyncio.gather`` with at most *limit* awaitables in flight.

    Parameters
    ----------
    coros:
        The awaitables to run.
    limit:
        Ceiling applied when the caller does not pass a *semaphore*.
    semaphore:
        A semaphore shared with other gathers, overriding *limit*.
    return_exceptions:
        Collect exceptions in the result list instead of raising the first.

    Returns
    -------
    list[_T | BaseException]
        One entry per input, in input order.
    """
    gate = semaphore or asyncio.Semaphore(max(1, limit))

    async def _gated(awaitable: Awaitable[_T]) -> _T:
        async with gate:
            return await awaitable

    return await asyncio.gather(
        *(_gated(c) for c in coros), return_exceptions=return_exceptions
    )
