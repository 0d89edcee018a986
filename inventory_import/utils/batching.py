"""Helper functions for chunking row sequences."""
from collections.abc import Iterable, Iterator
from itertools import islice
from typing import TypeVar

T = TypeVar("T")


def chunked(iterable: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield successive fixed-size chunks; the last one may be shorter."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    iterator = iter(iterable)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch
