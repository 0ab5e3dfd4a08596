# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Bounded priority queue of requests awaiting admission.

Entries are kept in a plain list ordered priority-major, FIFO-minor.
Insertion is stable: a new entry goes before the first entry of a strictly
less urgent class, so equal priorities keep arrival order without a
re-sort.

Not synchronized on its own; the scheduler mutates it only while holding
its state lock.
"""

from __future__ import annotations

from collections.abc import Iterator

from ..exceptions import OverloadedError
from ..types.queue import QueuedRequest


class PriorityRequestQueue:
    """Stable priority queue with removal by request id."""

    def __init__(self) -> None:
        self._entries: list[QueuedRequest] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[QueuedRequest]:
        return iter(list(self._entries))

    def __bool__(self) -> bool:
        return bool(self._entries)

    def enqueue(self, request: QueuedRequest, max_size: int) -> int:
        """
        Insert ``request`` in priority order.

        Args:
            request: The entry to insert
            max_size: Capacity currently in force

        Returns:
            The 1-based position the request was inserted at

        Raises:
            OverloadedError: If the queue already holds ``max_size`` entries
        """
        if len(self._entries) >= max_size:
            raise OverloadedError(queue_size=max_size)

        rank = request.priority.value
        index = len(self._entries)
        for i, entry in enumerate(self._entries):
            if entry.priority.value > rank:
                index = i
                break
        self._entries.insert(index, request)
        return index + 1

    def peek_front(self) -> QueuedRequest | None:
        return self._entries[0] if self._entries else None

    def remove_by_id(self, request_id: str) -> QueuedRequest | None:
        """Remove and return the entry, or None if it is no longer queued."""
        for i, entry in enumerate(self._entries):
            if entry.request_id == request_id:
                return self._entries.pop(i)
        return None

    def position_of(self, caller_id: str) -> int:
        """1-based position of the caller's earliest queued request, or -1."""
        for i, entry in enumerate(self._entries):
            if entry.caller_id == caller_id:
                return i + 1
        return -1

    def snapshot(self) -> list[QueuedRequest]:
        return list(self._entries)

    def drain(self) -> list[QueuedRequest]:
        """Remove and return every entry in queue order."""
        entries, self._entries = self._entries, []
        return entries


__all__ = ["PriorityRequestQueue"]
