"""
Fixed-size worker pool for fan-out fetches.

``run_pool`` runs ``worker(item)`` for every item with at most ``size``
coroutines in flight. Workers claim the next index from a shared cursor, so
the only shared mutable state is that cursor and each result slot is
written by exactly one worker.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class PoolResult(Generic[R]):
    """Outcome of one item: either a value or the exception it raised."""
    index: int
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_pool(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    size: int,
    timeout: Optional[float] = None,
) -> List[PoolResult[R]]:
    """
    Run ``worker`` over ``items`` with bounded concurrency.

    Args:
        items: Inputs; result ``i`` always belongs to ``items[i]``
        worker: Coroutine function applied to each item
        size: Maximum number of in-flight workers (>= 1)
        timeout: Optional per-item timeout in seconds

    Returns:
        One PoolResult per item, in input order. A failing or timed-out item
        is recorded in its slot and never aborts the other items.
    """
    if size < 1:
        raise ValueError(f"pool size must be >= 1, got {size}")

    results: List[Optional[PoolResult[R]]] = [None] * len(items)
    cursor = 0

    async def _run_one(idx: int) -> PoolResult[R]:
        try:
            call: Awaitable[Any] = worker(items[idx])
            if timeout is not None:
                value = await asyncio.wait_for(call, timeout=timeout)
            else:
                value = await call
            return PoolResult(index=idx, value=value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return PoolResult(index=idx, error=e)

    async def _drain():
        nonlocal cursor
        while cursor < len(items):
            idx = cursor
            cursor += 1
            results[idx] = await _run_one(idx)

    workers = [asyncio.create_task(_drain()) for _ in range(min(size, len(items)))]
    try:
        await asyncio.gather(*workers)
    except asyncio.CancelledError:
        for task in workers:
            task.cancel()
        raise

    return results  # type: ignore[return-value]
