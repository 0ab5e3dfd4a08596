"""Shared fixtures for the insightflow scheduler test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from insightflow_scheduler.observability.collector import (
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from insightflow_scheduler.scheduler.config import RateLimitConfig
from insightflow_scheduler.scheduler.scheduler import RateLimitedScheduler

# Midday UTC so tests can move within the day without crossing midnight.
START_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    """Manually advanced wall clock in epoch seconds."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at midday UTC."""
    return FakeClock()


@pytest.fixture
def collector() -> UnifiedMetricsCollector:
    """Provide a metrics collector on an isolated Prometheus registry."""
    return UnifiedMetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def make_scheduler(clock, collector):
    """Factory building schedulers with a fast loop, the fake clock and an isolated collector."""

    def _make(**overrides) -> RateLimitedScheduler:
        overrides.setdefault("scheduler_interval", 0.01)
        return RateLimitedScheduler(
            RateLimitConfig(**overrides),
            clock=clock,
            metrics_collector=collector,
        )

    return _make


@pytest.fixture
def global_collector():
    """Provide a fresh process-wide collector and drop it afterwards."""
    reset_metrics_collector()
    yield get_metrics_collector(enable_prometheus=False)
    reset_metrics_collector()
