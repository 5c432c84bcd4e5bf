"""
Collapse duplicate natural keys inside one write batch (keep last)
"""

from collections import deque
from typing import Callable, Hashable, List, Sequence, TypeVar

T = TypeVar("T")


def dedupe_keep_last(records: Sequence[T], key: Callable[[T], Hashable]) -> List[T]:
    """
    Keep the last record seen for each key.

    A single backward scan marks keys as seen; survivors are pushed onto the
    front of a deque so they come out in their original relative order.
    PostgreSQL rejects an ON CONFLICT statement that touches the same key
    twice, so every batch goes through here before it is written.

    Example:
        [A1, B1, A2] -> [B1, A2]
    """
    seen = set()
    survivors = deque()

    for record in reversed(records):
        k = key(record)
        if k in seen:
            continue
        seen.add(k)
        survivors.appendleft(record)

    return list(survivors)
