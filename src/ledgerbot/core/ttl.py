"""Deadline index for in-memory tables with lazy expiry.

Owning tables keep their records in a dict and register each key's deadline
here. Reads still re-check expiry themselves; the index only makes the
periodic sweep proportional to the number of expired keys instead of the
table size.
"""

import heapq
import itertools
from typing import Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)


class ExpiringIndex(Generic[K]):
    """Min-heap of (deadline, key) with lazy invalidation.

    Rescheduling a key pushes a new heap entry; the superseded entry is
    dropped when it surfaces because its deadline no longer matches.
    """

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, K]] = []
        self._deadlines: dict[K, float] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._deadlines)

    def __contains__(self, key: object) -> bool:
        return key in self._deadlines

    def schedule(self, key: K, deadline: float) -> None:
        self._deadlines[key] = deadline
        heapq.heappush(self._heap, (deadline, next(self._counter), key))
        if len(self._heap) > 2 * len(self._deadlines) + 64:
            self._compact()

    def discard(self, key: K) -> None:
        self._deadlines.pop(key, None)

    def deadline(self, key: K) -> Optional[float]:
        return self._deadlines.get(key)

    def pop_expired(self, now: float) -> list[K]:
        """Remove and return every key whose deadline is before ``now``."""
        expired: list[K] = []
        while self._heap and self._heap[0][0] < now:
            deadline, _, key = heapq.heappop(self._heap)
            if self._deadlines.get(key) == deadline:
                del self._deadlines[key]
                expired.append(key)
        return expired

    def clear(self) -> None:
        self._heap.clear()
        self._deadlines.clear()

    def _compact(self) -> None:
        self._heap = [
            entry for entry in self._heap if self._deadlines.get(entry[2]) == entry[0]
        ]
        heapq.heapify(self._heap)
