# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Request metadata types for the scheduler.

This module defines the priority classes and the per-request metadata used
for admission, queue ordering and timeout handling.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class Priority(Enum):
    """
    Priority class of a submitted request.

    The value is the urgency rank: lower values are dispatched first.
    Within a class, requests are served in arrival order.
    """

    HIGH = 0
    MEDIUM = 1
    LOW = 2

    @classmethod
    def coerce(cls, value: "Priority | str") -> "Priority":
        """Accept a Priority member or its case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise ValueError(
            f"Unknown priority {value!r}; expected one of "
            f"{', '.join(p.name.lower() for p in cls)}"
        )

    @property
    def label(self) -> str:
        """Lowercase name used in logs, metrics and JSON payloads."""
        return self.name.lower()


@dataclass
class RequestMetadata:
    """
    Metadata describing one unit of work submitted to the scheduler.

    Attributes:
        request_id: Unique identifier for this request instance
        caller_id: Identity whose usage is tracked for quota purposes
        priority: Priority class used for queue ordering
        estimated_tokens: Caller-supplied token estimate (never measured)
        max_wait_time: Longest time in seconds the request may sit in the queue
        submitted_at: Epoch seconds when the request was submitted
    """

    request_id: str
    caller_id: str
    priority: Priority = Priority.MEDIUM
    estimated_tokens: int = 2000
    max_wait_time: float = 300.0
    submitted_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.estimated_tokens <= 0:
            raise ValueError("estimated_tokens must be positive")
        if self.max_wait_time <= 0:
            raise ValueError("max_wait_time must be positive")


__all__ = ["Priority", "RequestMetadata"]
