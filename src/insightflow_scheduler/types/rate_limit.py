# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Rate limit types and status reports.

This module defines the ceiling enum, the admission decision type and the
status snapshot the scheduler exposes to pollers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RateLimitType(Enum):
    """
    The four independent ceilings enforced on the external API.

    Limit Types:
        * **CONCURRENCY**: In-flight requests - burst protection
        * **RPM**: Requests Per Minute - sliding one-minute window
        * **TPM**: Tokens Per Minute - sliding one-minute window
        * **RPD**: Requests Per Day - summed across callers for the UTC day
    """

    CONCURRENCY = "CONCURRENCY"
    RPM = "RPM"
    TPM = "TPM"
    RPD = "RPD"


@dataclass
class LimitCheckResult:
    """
    Result of checking the ceilings for a proposed request.

    Attributes:
        can_proceed: Whether the request can proceed immediately
        reason: Human-readable reason if request cannot proceed
        limiting_factor: Which ceiling is preventing the request
        remaining_requests: Requests remaining in the current minute window
        remaining_tokens: Tokens remaining in the current minute window
    """

    can_proceed: bool
    reason: str | None = None
    limiting_factor: RateLimitType | None = None
    remaining_requests: int | None = None
    remaining_tokens: int | None = None


@dataclass(frozen=True)
class WindowUsage:
    """Usage of a single ceiling: consumed amount, configured limit, headroom."""

    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict[str, int]:
        return {"used": self.used, "limit": self.limit, "remaining": self.remaining}


@dataclass(frozen=True)
class RateLimitStatus:
    """
    Point-in-time view of scheduler load, polled by status endpoints.

    Attributes:
        requests_per_minute: Requests in the trailing minute vs. the RPM ceiling
        tokens_per_minute: Estimated tokens in the trailing minute vs. the TPM ceiling
        requests_per_day: Requests today across all callers vs. the RPD ceiling
        concurrent_requests: In-flight requests vs. the concurrency ceiling
        queue_length: Requests waiting for admission
        active_requests: Requests currently executing
        estimated_wait_ms: Rough time for the current queue to drain
        circuit_breaker_engaged: Whether new queuing is currently refused
    """

    requests_per_minute: WindowUsage
    tokens_per_minute: WindowUsage
    requests_per_day: WindowUsage
    concurrent_requests: WindowUsage
    queue_length: int
    active_requests: int
    estimated_wait_ms: int
    circuit_breaker_engaged: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests_per_minute": self.requests_per_minute.to_dict(),
            "tokens_per_minute": self.tokens_per_minute.to_dict(),
            "requests_per_day": self.requests_per_day.to_dict(),
            "concurrent_requests": self.concurrent_requests.to_dict(),
            "queue_length": self.queue_length,
            "active_requests": self.active_requests,
            "estimated_wait_ms": self.estimated_wait_ms,
            "circuit_breaker_engaged": self.circuit_breaker_engaged,
        }


__all__ = [
    "LimitCheckResult",
    "RateLimitStatus",
    "RateLimitType",
    "WindowUsage",
]
