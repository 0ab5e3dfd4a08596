# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""InsightFlow Scheduler - rate-limited LLM request scheduling.

This library gates calls to an external LLM provider behind four
ceilings (concurrency, requests/minute, tokens/minute, requests/day) and
a per-caller daily share, queues what cannot run yet by priority, and
drives a two-phase progressive document analysis on top of it.

Key Features:
    - Atomic admission against every ceiling at once
    - Bounded priority queue with per-request wait budgets
    - Runtime configuration overrides and a circuit-breaker toggle
    - Progressive analysis: partial result first, comprehensive result after
    - Prometheus metrics and a FastAPI status/streaming surface

Quick Start:
    >>> from insightflow_scheduler import RateLimitConfig, RateLimitedScheduler
    >>>
    >>> scheduler = RateLimitedScheduler(RateLimitConfig(requests_per_minute=30))
    >>> async with scheduler:
    ...     result = await scheduler.submit("user-1", call_llm, priority="high")

Main Exports:
    - RateLimitedScheduler, create_scheduler: Core scheduling components
    - RateLimitConfig, ProgressiveAnalysisConfig: Configuration options
    - ProgressiveAnalysisOrchestrator: Two-phase analysis driver
    - DocumentAnalyzer: Protocol for analysis passes

The HTTP application lives in ``insightflow_scheduler.api``.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .analysis import (
    AnalysisDepth,
    AnalysisResult,
    AnalysisState,
    DocumentRef,
    Finding,
    PhaseUpdate,
    ProgressiveAnalysisOrchestrator,
    ResultPhase,
)
from .exceptions import (
    ConfigurationError,
    DailyLimitExceededError,
    OverloadedError,
    QueueOverflowError,
    RequestTimeoutError,
    SchedulerError,
)
from .protocols import DocumentAnalyzer
from .scheduler import (
    DispatchPolicy,
    ProgressiveAnalysisConfig,
    RateLimitConfig,
    RateLimitedScheduler,
    create_scheduler,
)
from .types import Priority, RateLimitStatus, WindowUsage

__all__ = [
    "AnalysisDepth",
    "AnalysisResult",
    "AnalysisState",
    "ConfigurationError",
    "DailyLimitExceededError",
    "DispatchPolicy",
    "DocumentAnalyzer",
    "DocumentRef",
    "Finding",
    "OverloadedError",
    "PhaseUpdate",
    "Priority",
    "ProgressiveAnalysisConfig",
    "ProgressiveAnalysisOrchestrator",
    "QueueOverflowError",
    "RateLimitConfig",
    "RateLimitStatus",
    "RateLimitedScheduler",
    "RequestTimeoutError",
    "ResultPhase",
    "SchedulerError",
    "WindowUsage",
    "__version__",
    "create_scheduler",
]
