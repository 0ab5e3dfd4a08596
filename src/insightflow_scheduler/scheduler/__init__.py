# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Rate-limited request scheduler and its building blocks."""

from .admission import AdmissionController
from .config import DispatchPolicy, ProgressiveAnalysisConfig, RateLimitConfig
from .ledger import CallerUsage, UsageLedger
from .queue import PriorityRequestQueue
from .scheduler import RateLimitedScheduler, create_scheduler
from .window import GlobalWindowTracker, WindowSnapshot

__all__ = [
    "AdmissionController",
    "CallerUsage",
    "DispatchPolicy",
    "GlobalWindowTracker",
    "PriorityRequestQueue",
    "ProgressiveAnalysisConfig",
    "RateLimitConfig",
    "RateLimitedScheduler",
    "UsageLedger",
    "WindowSnapshot",
    "create_scheduler",
]
