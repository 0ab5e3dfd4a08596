# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Scheduler Configuration for the insightflow scheduler

This module provides the configuration dataclass for the rate-limited
scheduler: the four ceilings, queue bounds, request defaults and the
timing of the background loops.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from ..exceptions import ConfigurationError
from ..types.request import Priority


class DispatchPolicy(Enum):
    """How the scheduler loop picks the next queued request.

    - HEAD_OF_LINE: Only the head of the queue is evaluated. A head that
      cannot be admitted stalls everything behind it, preserving strict
      priority and FIFO order.
    - FIRST_FIT: The first entry in priority order that can be admitted is
      dispatched, letting small requests pass a blocked large one.
    """

    HEAD_OF_LINE = "head_of_line"
    FIRST_FIT = "first_fit"


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Configuration for the rate-limited request scheduler.

    Instances are immutable; runtime overrides produce a validated copy via
    with_overrides().
    """

    # === Ceilings ===

    requests_per_minute: int = 3
    """Maximum requests admitted in any trailing 60 second window."""

    tokens_per_minute: int = 15000
    """Maximum estimated tokens admitted in any trailing 60 second window."""

    requests_per_day: int = 12000
    """Maximum requests per UTC day, summed across all callers."""

    max_concurrent_requests: int = 2
    """Maximum number of units of work executing at once."""

    caller_daily_share: int = 10
    """A single caller may use at most requests_per_day // caller_daily_share per day."""

    # === Queueing ===

    max_queue_size: int = 50
    """Maximum number of waiting requests. Zero refuses all queuing."""

    scheduler_interval: float = 1.0
    """Period of the scheduler loop in seconds."""

    dispatch_policy: DispatchPolicy = DispatchPolicy.HEAD_OF_LINE
    """Which queued request the scheduler loop considers for dispatch."""

    # === Request Defaults ===

    default_priority: Priority = Priority.MEDIUM
    """Priority used when submit() is not given one."""

    default_estimated_tokens: int = 2000
    """Token estimate used when submit() is not given one."""

    default_max_wait_time: float = 300.0
    """Queue wait budget in seconds used when submit() is not given one."""

    # === Usage Ledger Maintenance ===

    usage_sweep_interval: float = 3600.0
    """Interval between ledger sweeps in seconds."""

    usage_max_age: float = 86400.0
    """Ledger entries idle for longer than this many seconds are dropped."""

    # === Metrics and Monitoring ===

    metrics_enabled: bool = True
    """Enable metrics collection."""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for name in (
            "requests_per_minute",
            "tokens_per_minute",
            "requests_per_day",
            "max_concurrent_requests",
            "caller_daily_share",
            "default_estimated_tokens",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

        if (
            isinstance(self.max_queue_size, bool)
            or not isinstance(self.max_queue_size, int)
            or self.max_queue_size < 0
        ):
            raise ValueError(
                f"max_queue_size must be a non-negative integer, got {self.max_queue_size!r}"
            )

        for name in (
            "scheduler_interval",
            "default_max_wait_time",
            "usage_sweep_interval",
            "usage_max_age",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if not isinstance(self.dispatch_policy, DispatchPolicy):
            object.__setattr__(
                self, "dispatch_policy", DispatchPolicy(self.dispatch_policy)
            )
        object.__setattr__(
            self, "default_priority", Priority.coerce(self.default_priority)
        )

    @property
    def per_caller_daily_limit(self) -> int:
        """Daily request cap applied to each individual caller."""
        return self.requests_per_day // self.caller_daily_share

    def with_overrides(self, **overrides: Any) -> "RateLimitConfig":
        """
        Return a copy with the given options replaced.

        Raises:
            ConfigurationError: If an override names an unknown option
            ValueError: If the resulting configuration is invalid
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration option(s): {', '.join(unknown)}"
            )
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.value if isinstance(value, Enum) else value
        return result


@dataclass(frozen=True)
class ProgressiveAnalysisConfig:
    """
    Configuration for the two-phase progressive analysis.

    Phase 1 is small and urgent so the user sees something quickly; phase 2
    is larger and yields to other interactive work.
    """

    quick_priority: Priority = Priority.HIGH
    """Priority of the quick scan."""

    quick_estimated_tokens: int = 2000
    """Token estimate of the quick scan."""

    quick_max_wait_time: float = 300.0
    """Queue wait budget of the quick scan in seconds."""

    quick_scan_document_limit: int = 2
    """Number of highest-ranked documents included in the quick scan."""

    comprehensive_priority: Priority = Priority.MEDIUM
    """Priority of the comprehensive analysis."""

    comprehensive_estimated_tokens: int = 8000
    """Token estimate of the comprehensive analysis."""

    comprehensive_max_wait_time: float = 300.0
    """Queue wait budget of the comprehensive analysis in seconds."""

    fallback_confidence_boost: float = 0.2
    """Confidence added to the partial result when phase 2 fails."""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.quick_estimated_tokens <= 0 or self.comprehensive_estimated_tokens <= 0:
            raise ValueError("token estimates must be positive")
        if self.quick_max_wait_time <= 0 or self.comprehensive_max_wait_time <= 0:
            raise ValueError("max wait times must be positive")
        if self.quick_scan_document_limit <= 0:
            raise ValueError("quick_scan_document_limit must be positive")
        if not 0.0 <= self.fallback_confidence_boost <= 1.0:
            raise ValueError("fallback_confidence_boost must be between 0.0 and 1.0")
        object.__setattr__(self, "quick_priority", Priority.coerce(self.quick_priority))
        object.__setattr__(
            self, "comprehensive_priority", Priority.coerce(self.comprehensive_priority)
        )


__all__ = [
    "DispatchPolicy",
    "ProgressiveAnalysisConfig",
    "RateLimitConfig",
]
