# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Queue types for the scheduler.

This module defines the entry held by the priority queue while a request
waits for admission.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .request import Priority, RequestMetadata

if TYPE_CHECKING:
    from asyncio import Future


@dataclass
class QueuedRequest:
    """
    A request waiting in the priority queue.

    Wraps request metadata along with the callable that will execute the
    request and a future that the submitter awaits. The future is the
    continuation: it is resolved exactly once, either by dispatch or by
    timeout eviction.

    Attributes:
        metadata: Request metadata for ordering and accounting
        request_func: Async callable that executes the actual request
        future: Future resolved with the request result or failure
        queue_entry_time: Monotonic timestamp when the request was enqueued
        timeout_handle: Timer that evicts the request after max_wait_time
    """

    metadata: RequestMetadata
    request_func: Callable[[], Awaitable[Any]]
    future: "Future[Any]"
    queue_entry_time: float = field(default_factory=time.monotonic)
    timeout_handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def request_id(self) -> str:
        return self.metadata.request_id

    @property
    def caller_id(self) -> str:
        return self.metadata.caller_id

    @property
    def priority(self) -> Priority:
        return self.metadata.priority

    @property
    def waited(self) -> float:
        """Seconds spent in the queue so far."""
        return time.monotonic() - self.queue_entry_time

    def cancel_timeout(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


__all__ = ["QueuedRequest"]
