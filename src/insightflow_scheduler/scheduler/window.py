# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Global sliding-window tracker for aggregate request and token rates.

Independent of caller identity: every admitted request is recorded here
so the scheduler can enforce the per-minute ceilings process-wide.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowSnapshot:
    """Aggregate usage inside the trailing window."""

    requests_used: int
    tokens_used: int


class GlobalWindowTracker:
    """
    Rolling history of admitted requests and their estimated tokens.

    Every read prunes entries that fell out of the window, so a snapshot
    is always "as of now".
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        window_seconds: float = 60.0,
    ) -> None:
        self._clock = clock
        self._window_seconds = window_seconds
        self._request_timestamps: deque[float] = deque()
        self._token_events: deque[tuple[float, int]] = deque()
        self._tokens_in_window = 0

    def record_event(self, tokens: int) -> None:
        now = self._clock()
        self._request_timestamps.append(now)
        self._token_events.append((now, tokens))
        self._tokens_in_window += tokens

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_seconds
        while self._request_timestamps and self._request_timestamps[0] <= cutoff:
            self._request_timestamps.popleft()
        while self._token_events and self._token_events[0][0] <= cutoff:
            _, tokens = self._token_events.popleft()
            self._tokens_in_window -= tokens

    def current_status(self) -> WindowSnapshot:
        self._prune(self._clock())
        return WindowSnapshot(
            requests_used=len(self._request_timestamps),
            tokens_used=self._tokens_in_window,
        )

    def clear(self) -> None:
        self._request_timestamps.clear()
        self._token_events.clear()
        self._tokens_in_window = 0


__all__ = ["GlobalWindowTracker", "WindowSnapshot"]
