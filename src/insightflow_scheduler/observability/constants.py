# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `insightflow_sched_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    To prevent label cardinality explosion, use only:
    - `priority` - Priority class (enum: high, medium, low)
    - `reason` - Failure reason (enum: timeout, error, cancelled, shutdown)
    - `phase` - Analysis phase (enum: quick, complete, fallback)
    - `limiting_factor` - Ceiling that deferred a request (enum)

    NEVER use:
    - `request_id` - Unique per request (unbounded!)
    - `caller_id` - Unique per user (unbounded!)

Usage:
    >>> from insightflow_scheduler.observability.constants import (
    ...     REQUESTS_SCHEDULED_TOTAL, METRIC_PREFIX
    ... )
    >>> print(REQUESTS_SCHEDULED_TOTAL)
    'insightflow_sched_requests_scheduled_total'
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "insightflow_sched"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Scheduling Metrics (scheduler/scheduler.py)
# =============================================================================

REQUESTS_SCHEDULED_TOTAL = f"{METRIC_PREFIX}_requests_scheduled_total"
"""Total requests admitted for execution, immediately or from the queue."""

REQUESTS_QUEUED_TOTAL = f"{METRIC_PREFIX}_requests_queued_total"
"""Total requests that had to wait in the queue."""

REQUESTS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_requests_completed_total"
"""Total requests completed successfully."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Total requests that failed (timeout, error, cancelled, shutdown)."""

QUEUE_OVERFLOWS_TOTAL = f"{METRIC_PREFIX}_queue_overflows_total"
"""Total queue overflow events (request rejected due to full queue)."""

DAILY_LIMIT_REJECTIONS_TOTAL = f"{METRIC_PREFIX}_daily_limit_rejections_total"
"""Total requests rejected because the caller's daily cap was reached."""

REQUEST_TIMEOUTS_TOTAL = f"{METRIC_PREFIX}_request_timeouts_total"
"""Total queued requests evicted after their max wait time."""

SCHEDULER_LOOPS_TOTAL = f"{METRIC_PREFIX}_scheduler_loops_total"
"""Total iterations of the scheduler main loop."""


# =============================================================================
# Active State Gauges (real-time operational state)
# =============================================================================

ACTIVE_REQUESTS = f"{METRIC_PREFIX}_active_requests"
"""Number of currently active (in-flight) requests."""

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Current queue depth (requests waiting to be scheduled)."""


# =============================================================================
# Timing
# =============================================================================

QUEUE_WAIT_SECONDS = f"{METRIC_PREFIX}_queue_wait_seconds"
"""Time a request spent queued before dispatch."""


# =============================================================================
# Progressive Analysis (analysis/progressive.py)
# =============================================================================

ANALYSIS_PHASES_TOTAL = f"{METRIC_PREFIX}_analysis_phases_total"
"""Total analysis phases surfaced, labelled by phase."""


# =============================================================================
# Histogram Buckets
# =============================================================================

QUEUE_WAIT_BUCKETS = [0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
"""Buckets for queue wait histograms (seconds)."""


__all__ = [
    "ACTIVE_REQUESTS",
    "ANALYSIS_PHASES_TOTAL",
    "DAILY_LIMIT_REJECTIONS_TOTAL",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_OVERFLOWS_TOTAL",
    "QUEUE_WAIT_BUCKETS",
    "QUEUE_WAIT_SECONDS",
    "REQUESTS_COMPLETED_TOTAL",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_QUEUED_TOTAL",
    "REQUESTS_SCHEDULED_TOTAL",
    "REQUEST_TIMEOUTS_TOTAL",
    "SCHEDULER_LOOPS_TOTAL",
]
