"""
Bounded concurrent execution helpers.

Used to run per-page extraction calls concurrently while keeping the
results in input order, never completion order.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def parallel_map(
    items: List[T],
    async_fn: Callable[[T], Awaitable[R]],
    max_concurrent: int = 4,
    desc: Optional[str] = None,
) -> List[R]:
    """
    Apply async_fn to every item with at most max_concurrent in flight.

    The first exception cancels the remaining work and propagates unchanged.

    Args:
        items: Inputs to process
        async_fn: Async function applied to each item
        max_concurrent: Maximum simultaneous calls
        desc: Description for debug progress logging

    Returns:
        List of results in the same order as inputs

    Example:
        >>> texts = await parallel_map(
        ...     [1, 2, 3],
        ...     extract_page,
        ...     max_concurrent=2,
        ... )
    """
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, max_concurrent))
    completed = 0
    total = len(items)

    async def process_with_limit(index: int, item: T) -> tuple[int, R]:
        nonlocal completed

        async with semaphore:
            result = await async_fn(item)

        completed += 1
        if desc:
            logger.debug(f"{desc}: {completed}/{total}")
        return (index, result)

    tasks = [
        asyncio.ensure_future(process_with_limit(i, item))
        for i, item in enumerate(items)
    ]

    try:
        indexed_results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    # Reassemble by original index
    indexed_results = sorted(indexed_results, key=lambda x: x[0])

    return [result for _, result in indexed_results]
