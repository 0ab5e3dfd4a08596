# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the insightflow scheduler.

Classes:
    UnifiedMetricsCollector: Metrics collector mirroring dict snapshots and Prometheus.
    MetricDefinition: Schema of a predefined metric.

Functions:
    get_metrics_collector: Get the global metrics collector singleton.
    reset_metrics_collector: Reset the global metrics collector singleton.

Constants:
    All metric name constants from the constants module.
"""

from .collector import (
    METRIC_DEFINITIONS,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .constants import (
    ACTIVE_REQUESTS,
    ANALYSIS_PHASES_TOTAL,
    DAILY_LIMIT_REJECTIONS_TOTAL,
    METRIC_PREFIX,
    QUEUE_DEPTH,
    QUEUE_OVERFLOWS_TOTAL,
    QUEUE_WAIT_BUCKETS,
    QUEUE_WAIT_SECONDS,
    REQUEST_TIMEOUTS_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_QUEUED_TOTAL,
    REQUESTS_SCHEDULED_TOTAL,
    SCHEDULER_LOOPS_TOTAL,
)

__all__ = [
    "ACTIVE_REQUESTS",
    "ANALYSIS_PHASES_TOTAL",
    "DAILY_LIMIT_REJECTIONS_TOTAL",
    "METRIC_DEFINITIONS",
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
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
