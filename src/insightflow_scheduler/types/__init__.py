# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and constants."""

from .queue import QueuedRequest
from .rate_limit import LimitCheckResult, RateLimitStatus, RateLimitType, WindowUsage
from .request import Priority, RequestMetadata

__all__ = [
    "LimitCheckResult",
    # Request metadata
    "Priority",
    # Queue types
    "QueuedRequest",
    # Rate limit types
    "RateLimitStatus",
    "RateLimitType",
    "RequestMetadata",
    "WindowUsage",
]
