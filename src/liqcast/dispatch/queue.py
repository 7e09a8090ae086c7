"""Capacity-bounded max-priority queue of dispatch jobs."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass
from typing import Iterator

from ..events import DispatchJob

_Entry = tuple[float, int, int, DispatchJob]


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of :meth:`BoundedPriorityQueue.enqueue`.

    ``evicted`` is the job that left the queue because of this call: the
    previous minimum when ``added`` is true, the incoming job itself when it
    was rejected, ``None`` when the queue had room.
    """

    added: bool
    evicted: DispatchJob | None = None


class BoundedPriorityQueue:
    """Keeps the top-``capacity`` jobs by notional, most recent first on ties.

    Enqueue and dequeue are O(log n). When full, the minimum is located by a
    linear scan, which is fine for the small capacities used per channel.
    """

    def __init__(self, capacity: int = 500):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._heap: list[_Entry] = []
        self._seq = itertools.count()

    def _entry(self, job: DispatchJob) -> _Entry:
        # heapq is a min-heap: negate so the best job sits at index 0
        priority, enqueued_at_ms = job.sort_key()
        return (-priority, -enqueued_at_ms, -next(self._seq), job)

    def enqueue(self, job: DispatchJob) -> EnqueueResult:
        entry = self._entry(job)
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, entry)
            return EnqueueResult(added=True)

        worst_idx = self._worst_index()
        worst = self._heap[worst_idx]
        if entry < worst:
            self._heap[worst_idx] = entry
            heapq.heapify(self._heap)
            return EnqueueResult(added=True, evicted=worst[3])
        return EnqueueResult(added=False, evicted=job)

    def dequeue(self) -> DispatchJob | None:
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[3]

    def peek(self) -> DispatchJob | None:
        if not self._heap:
            return None
        return self._heap[0][3]

    def size(self) -> int:
        return len(self._heap)

    def is_empty(self) -> bool:
        return not self._heap

    def clear(self) -> list[DispatchJob]:
        """Drop every held job without sending; returns what was dropped."""
        dropped = [entry[3] for entry in sorted(self._heap)]
        self._heap.clear()
        return dropped

    def snapshot(self) -> list[DispatchJob]:
        """Held jobs in dequeue order, without removing them."""
        return [entry[3] for entry in sorted(self._heap)]

    def _worst_index(self) -> int:
        worst = 0
        for idx in range(1, len(self._heap)):
            if self._heap[idx] > self._heap[worst]:
                worst = idx
        return worst

    def __len__(self) -> int:
        return len(self._heap)

    def __iter__(self) -> Iterator[DispatchJob]:
        return iter(self.snapshot())
