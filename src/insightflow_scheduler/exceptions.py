# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the insightflow scheduler.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from SchedulerError, making it easy to catch
every scheduler-originated rejection with a single except clause.

Failures raised by a unit of work itself are never wrapped: they reach
the caller unchanged.
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors.

    Also raised directly for lifecycle misuse, such as submitting to a
    scheduler that has not been started or has been stopped.

    Example:
        try:
            result = await scheduler.submit(caller_id, call_llm)
        except SchedulerError as e:
            logger.error(f"Scheduler rejected request: {e}")
    """

    pass


class DailyLimitExceededError(SchedulerError):
    """Raised when a caller has used its share of the daily request budget.

    Each caller may consume at most ``requests_per_day // caller_daily_share``
    requests per UTC calendar day. The check happens before admission, so
    this error never leaves anything queued or recorded.

    Attributes:
        caller_id: The caller that hit its cap.
        daily_limit: The per-caller cap that was reached.

    Example:
        try:
            await scheduler.submit(user_id, call_llm)
        except DailyLimitExceededError as e:
            return {"error": str(e), "retry_after": 60}
    """

    def __init__(self, caller_id: str, daily_limit: int):
        super().__init__(
            "Daily rate limit exceeded. Please try again tomorrow "
            "or upgrade to Developer Tier."
        )
        self.caller_id = caller_id
        self.daily_limit = daily_limit


class QueueOverflowError(SchedulerError):
    """Raised when the request queue is at capacity.

    Attributes:
        queue_size: The queue capacity that was in force at rejection time.
            Zero means the circuit breaker was engaged.
    """

    def __init__(self, message: str, queue_size: int | None = None):
        super().__init__(message)
        self.queue_size = queue_size


class OverloadedError(QueueOverflowError):
    """Raised when a request can neither run now nor be queued.

    This is transient: the caller may retry with backoff. It is also what
    every non-admittable request receives while the circuit breaker holds
    the queue size at zero.

    Example:
        try:
            await scheduler.submit(user_id, call_llm, priority="high")
        except OverloadedError:
            await asyncio.sleep(backoff)
    """

    def __init__(
        self,
        message: str = "Service temporarily overloaded. Please try again in a few minutes.",
        queue_size: int | None = None,
    ):
        super().__init__(message, queue_size=queue_size)


class RequestTimeoutError(SchedulerError):
    """Raised when a queued request waited longer than its max_wait_time.

    The request is removed from the queue before this error is delivered,
    so the unit of work is never started. Safe to retry.

    Attributes:
        request_id: Identifier of the evicted request.
        max_wait_time: The wait budget in seconds that expired.
    """

    def __init__(self, request_id: str, max_wait_time: float):
        super().__init__("Request timeout. Please try again.")
        self.request_id = request_id
        self.max_wait_time = max_wait_time


class ConfigurationError(SchedulerError):
    """Raised when a configuration override names an unknown option.

    Invalid values for known options raise ValueError from the
    configuration dataclass itself.

    Example:
        try:
            scheduler.update_config(requests_per_hour=10)
        except ConfigurationError as e:
            logger.error(f"Bad override: {e}")
    """

    pass


__all__ = [
    "ConfigurationError",
    "DailyLimitExceededError",
    "OverloadedError",
    "QueueOverflowError",
    "RequestTimeoutError",
    "SchedulerError",
]
