"""
Fixed-size batch fan-out over a thread pool.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def split_to_batches(items: Sequence[T], batch_size: int) -> Iterator[Sequence[T]]:
    if batch_size < 1:
        raise ValueError(f"Invalid batch size: {batch_size}")
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]


def run_in_batches(func: Callable[[T], R], items: Sequence[T], batch_size: int) -> List[R]:
    """
    Apply `func` to every item, `batch_size` calls at a time. Each batch
    completes before the next starts and results keep the input order.
    Exceptions raised by `func` propagate.
    """
    results: List[R] = []
    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for batch in split_to_batches(items, batch_size):
            futures = [executor.submit(func, item) for item in batch]
            results.extend(future.result() for future in futures)
    return results
