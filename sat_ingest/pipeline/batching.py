"""Async batching helpers."""

import asyncio
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def abatched(items: AsyncIterable[T], size: int) -> AsyncIterator[List[T]]:
    """Group an async stream into lists of `size`; the last one may be shorter."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")

    batch: List[T] = []
    async for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []

    if batch:
        yield batch


async def gather_in_batches(
    task: Callable[[T], Awaitable[R]],
    items: Sequence[T],
    batch_size: int,
) -> List[R]:
    """
    Same as asyncio.gather(*(task(item) for item in items)), but waits for
    each group of `batch_size` calls to finish before starting the next.
    A failure is re-raised only after every call in its group has finished.
    """
    results: List[R] = []
    for position in range(0, len(items), batch_size):
        group = items[position:position + batch_size]
        results.extend(await join_all(*(task(item) for item in group)))
    return results


async def join_all(*aws: Awaitable) -> list:
    """
    Await all awaitables concurrently. Every one of them finishes before the
    first failure (in argument order) is re-raised.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
