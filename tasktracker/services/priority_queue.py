"""Priority re-sequencing of task records.

``TaskPriorityQueue`` is a bounded max-heap keyed by priority weight. Tasks
with equal priority come out in the order they went in: every insert gets a
sequence number that breaks ties.

Queues are never shared. ``build_priority_order`` makes a new one per call, so
concurrent requests cannot interleave inserts and extractions.
"""

import heapq
from typing import Generic, Iterable, Protocol, TypeVar

PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}


class Prioritized(Protocol):
    priority: str


T = TypeVar("T", bound=Prioritized)


class QueueFullError(Exception):
    pass


class TaskPriorityQueue(Generic[T]):
    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._heap: list[tuple[int, int, T]] = []
        self._seq = 0

    def __len__(self) -> int:
        return len(self._heap)

    def is_empty(self) -> bool:
        return not self._heap

    def insert(self, item: T):
        if len(self._heap) >= self.capacity:
            raise QueueFullError(f"queue is at capacity ({self.capacity})")
        try:
            weight = PRIORITY_WEIGHT[item.priority]
        except KeyError:
            raise ValueError(f"unknown priority: {item.priority!r}") from None
        # heapq is a min-heap: negate the weight, lower seq wins ties
        heapq.heappush(self._heap, (-weight, self._seq, item))
        self._seq += 1

    def peek(self) -> T:
        if not self._heap:
            raise IndexError("peek from an empty priority queue")
        return self._heap[0][2]

    def extract_max(self) -> T:
        if not self._heap:
            raise IndexError("extract from an empty priority queue")
        return heapq.heappop(self._heap)[2]


def build_priority_order(records: Iterable[T]) -> list[T]:
    """Return records in descending priority, stable among equal priorities."""
    records = list(records)
    queue: TaskPriorityQueue[T] = TaskPriorityQueue(capacity=len(records))
    for record in records:
        queue.insert(record)

    ordered = []
    while not queue.is_empty():
        ordered.append(queue.extract_max())
    return ordered
