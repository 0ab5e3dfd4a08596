# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Admission control against the four ceilings.

The controller is the single authority on whether a unit of work may
start now. It holds no lock of its own: the scheduler wraps check() and
commit() in one critical section so no other decision can observe the
counts in between.
"""

from __future__ import annotations

from collections.abc import Callable

from ..types.rate_limit import LimitCheckResult, RateLimitType
from .config import RateLimitConfig
from .ledger import UsageLedger
from .window import GlobalWindowTracker


class AdmissionController:
    """
    Decide admission from ledger and window state.

    Args:
        config_provider: Returns the configuration currently in force, so
            runtime overrides apply to the very next decision
        ledger: Per-caller usage ledger
        window: Global one-minute window tracker
    """

    def __init__(
        self,
        config_provider: Callable[[], RateLimitConfig],
        ledger: UsageLedger,
        window: GlobalWindowTracker,
    ) -> None:
        self._config_provider = config_provider
        self._ledger = ledger
        self._window = window

    def check(self, estimated_tokens: int, active_count: int) -> LimitCheckResult:
        """
        Evaluate every ceiling for a request of ``estimated_tokens``.

        Ceilings are checked in order concurrency, RPM, TPM, RPD; the first
        one that fails is reported as the limiting factor.
        """
        config = self._config_provider()
        snapshot = self._window.current_status()
        remaining_requests = config.requests_per_minute - snapshot.requests_used
        remaining_tokens = config.tokens_per_minute - snapshot.tokens_used

        def denied(factor: RateLimitType, reason: str) -> LimitCheckResult:
            return LimitCheckResult(
                can_proceed=False,
                reason=reason,
                limiting_factor=factor,
                remaining_requests=max(0, remaining_requests),
                remaining_tokens=max(0, remaining_tokens),
            )

        if active_count >= config.max_concurrent_requests:
            return denied(
                RateLimitType.CONCURRENCY,
                f"{active_count}/{config.max_concurrent_requests} requests in flight",
            )
        if remaining_requests <= 0:
            return denied(
                RateLimitType.RPM,
                f"{snapshot.requests_used}/{config.requests_per_minute} requests this minute",
            )
        if remaining_tokens < estimated_tokens:
            return denied(
                RateLimitType.TPM,
                f"needs {estimated_tokens} tokens, {max(0, remaining_tokens)} left this minute",
            )
        requests_today = self._ledger.total_requests_today()
        if config.requests_per_day - requests_today <= 0:
            return denied(
                RateLimitType.RPD,
                f"{requests_today}/{config.requests_per_day} requests today",
            )

        return LimitCheckResult(
            can_proceed=True,
            remaining_requests=remaining_requests,
            remaining_tokens=remaining_tokens,
        )

    def can_admit_now(self, estimated_tokens: int, active_count: int) -> bool:
        return self.check(estimated_tokens, active_count).can_proceed

    def commit(self, caller_id: str, estimated_tokens: int) -> None:
        """Record an admitted request in both the ledger and the window."""
        self._ledger.record_usage(caller_id, estimated_tokens)
        self._window.record_event(estimated_tokens)


__all__ = ["AdmissionController"]
