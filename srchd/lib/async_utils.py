"""Bounded-parallelism helpers for asyncio."""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def concurrent_executor(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int = 8,
) -> list[R]:
    """Map `fn` over `items` with at most `concurrency` calls in flight.

    Output order matches input order. The first failure stops new calls from
    being started; calls already running finish but their results are dropped,
    and the failure is raised once every worker has returned.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    results: list[Optional[R]] = [None] * len(items)
    next_index = 0
    failure: Optional[BaseException] = None

    async def worker():
        nonlocal next_index, failure
        while failure is None and next_index < len(items):
            index = next_index
            next_index += 1
            try:
                value = await fn(items[index])
            except Exception as e:
                if failure is None:
                    failure = e
                return
            if failure is None:
                results[index] = value

    workers = min(concurrency, len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))

    if failure is not None:
        raise failure

    return results  # type: ignore[return-value]
