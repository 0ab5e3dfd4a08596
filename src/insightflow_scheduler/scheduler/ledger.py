# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-caller usage ledger.

Tracks how many requests and estimated tokens each caller has consumed
today and in the current minute. Day boundaries are UTC calendar days.

The ledger is not synchronized on its own; the scheduler calls it only
while holding its state lock.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

MINUTE_WINDOW_SECONDS = 60.0


def _utc_day(timestamp: float) -> date:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


@dataclass
class CallerUsage:
    """
    Consumption counters for a single caller.

    Attributes:
        requests_today: Requests admitted on the day of last_request_at
        tokens_used_today: Estimated tokens admitted on that day
        last_request_at: Epoch seconds of the most recent admitted request
        requests_this_minute: Requests since minute_window_started_at
        minute_window_started_at: Epoch seconds when the minute window opened
    """

    requests_today: int = 0
    tokens_used_today: int = 0
    last_request_at: float = 0.0
    requests_this_minute: int = 0
    minute_window_started_at: float = 0.0

    def roll_over(self, now: float) -> None:
        """Reset day and minute counters whose window has passed."""
        if _utc_day(self.last_request_at) != _utc_day(now):
            self.requests_today = 0
            self.tokens_used_today = 0
        if now - self.minute_window_started_at > MINUTE_WINDOW_SECONDS:
            self.requests_this_minute = 0
            self.minute_window_started_at = now


class UsageLedger:
    """Lazily created CallerUsage entries keyed by caller id."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CallerUsage] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, caller_id: object) -> bool:
        return caller_id in self._entries

    def get(self, caller_id: str) -> CallerUsage | None:
        """Return a copy of the caller's counters, or None if never seen."""
        entry = self._entries.get(caller_id)
        return replace(entry) if entry is not None else None

    def record_usage(self, caller_id: str, tokens: int) -> None:
        """Count one admitted request of ``tokens`` estimated tokens."""
        now = self._clock()
        entry = self._entries.get(caller_id)
        if entry is None:
            entry = CallerUsage(last_request_at=now, minute_window_started_at=now)
            self._entries[caller_id] = entry
        else:
            entry.roll_over(now)

        entry.requests_today += 1
        entry.tokens_used_today += tokens
        entry.requests_this_minute += 1
        entry.last_request_at = now

    def has_exceeded_daily_cap(self, caller_id: str, daily_cap: int) -> bool:
        """True when the caller already used ``daily_cap`` requests today."""
        entry = self._entries.get(caller_id)
        if entry is None:
            return False
        entry.roll_over(self._clock())
        return entry.requests_today >= daily_cap

    def total_requests_today(self) -> int:
        """Requests admitted today across every caller."""
        today = _utc_day(self._clock())
        return sum(
            entry.requests_today
            for entry in self._entries.values()
            if _utc_day(entry.last_request_at) == today
        )

    def sweep(self, max_age_seconds: float) -> int:
        """
        Drop callers idle for longer than ``max_age_seconds``.

        Returns:
            Number of entries removed
        """
        cutoff = self._clock() - max_age_seconds
        stale = [
            caller_id
            for caller_id, entry in self._entries.items()
            if entry.last_request_at < cutoff
        ]
        for caller_id in stale:
            del self._entries[caller_id]

        if stale:
            logger.debug(f"Swept {len(stale)} idle caller(s) from usage ledger")
        return len(stale)


__all__ = ["CallerUsage", "UsageLedger"]
