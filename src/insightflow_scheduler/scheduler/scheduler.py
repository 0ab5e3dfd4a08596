# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Rate-limited request scheduler.

The scheduler gates calls to one external API behind four ceilings
(concurrency, requests per minute, tokens per minute, requests per day)
plus a per-caller daily cap. Work that cannot start immediately waits in
a bounded priority queue that a background loop drains as capacity
returns.

All admission state (ledger, window, queue, active count, config) is
guarded by a single re-entrant lock. Nothing awaits while holding it, so
every check-then-commit is atomic with respect to other coroutines and to
threads that poll status().

Example:
    >>> scheduler = RateLimitedScheduler(RateLimitConfig(requests_per_minute=30))
    >>> async with scheduler:
    ...     result = await scheduler.submit("user-1", call_llm, priority="high")
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import math
import threading
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from typing_extensions import Self

from ..exceptions import (
    DailyLimitExceededError,
    OverloadedError,
    RequestTimeoutError,
    SchedulerError,
)
from ..observability.collector import UnifiedMetricsCollector, get_metrics_collector
from ..observability.constants import (
    ACTIVE_REQUESTS,
    DAILY_LIMIT_REJECTIONS_TOTAL,
    QUEUE_DEPTH,
    QUEUE_OVERFLOWS_TOTAL,
    QUEUE_WAIT_SECONDS,
    REQUEST_TIMEOUTS_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_QUEUED_TOTAL,
    REQUESTS_SCHEDULED_TOTAL,
    SCHEDULER_LOOPS_TOTAL,
)
from ..types.queue import QueuedRequest
from ..types.rate_limit import LimitCheckResult, RateLimitStatus, WindowUsage
from ..types.request import Priority, RequestMetadata
from .admission import AdmissionController
from .config import DispatchPolicy, RateLimitConfig
from .ledger import CallerUsage, UsageLedger
from .queue import PriorityRequestQueue
from .window import GlobalWindowTracker

logger = logging.getLogger(__name__)


class RateLimitedScheduler:
    """
    Public entry point for rate-limited execution.

    One instance is constructed by the application's composition root and
    passed to every consumer; there is no module-level singleton.

    Args:
        config: Ceilings and timing; defaults to RateLimitConfig()
        clock: Wall-clock source in epoch seconds for the ledger and window
        metrics_collector: Collector to report to; defaults to the global
            collector when config.metrics_enabled is set
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
        metrics_collector: UnifiedMetricsCollector | None = None,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock

        self._ledger = UsageLedger(clock=clock)
        self._window = GlobalWindowTracker(clock=clock)
        self._admission = AdmissionController(
            lambda: self._config, self._ledger, self._window
        )
        self._queue = PriorityRequestQueue()

        self._state_lock = threading.RLock()
        self._active_requests = 0
        self._saved_queue_size: int | None = None

        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._scheduler_task: asyncio.Task[None] | None = None
        self._sweep_task: asyncio.Task[None] | None = None
        self._wakeup_event = asyncio.Event()
        self._shutdown_lock = asyncio.Lock()
        self._dispatched_tasks: set[asyncio.Task[None]] = set()

        if metrics_collector is None and self._config.metrics_enabled:
            metrics_collector = get_metrics_collector()
        self._metrics = metrics_collector

    # === Properties ===

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_requests(self) -> int:
        return self._active_requests

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def circuit_breaker_engaged(self) -> bool:
        return self._saved_queue_size is not None

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the scheduler loop and the ledger sweep."""
        if self._running:
            return

        self._running = True
        self._loop = asyncio.get_running_loop()
        self._wakeup_event = asyncio.Event()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())
        self._sweep_task = asyncio.create_task(self._usage_sweep_loop())

        config = self._config
        logger.info(
            f"{self.__class__.__name__} started "
            f"(rpm={config.requests_per_minute}, tpm={config.tokens_per_minute}, "
            f"rpd={config.requests_per_day}, "
            f"concurrency={config.max_concurrent_requests}, "
            f"queue={config.max_queue_size})"
        )

    async def stop(self) -> None:
        """
        Stop the scheduler.

        Queued requests are rejected with SchedulerError and in-flight
        dispatched work is cancelled, so no caller is left waiting.
        """
        async with self._shutdown_lock:
            if not self._running:
                return

            self._running = False

            for task in (self._scheduler_task, self._sweep_task):
                if task is None:
                    continue
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            self._scheduler_task = None
            self._sweep_task = None

            with self._state_lock:
                abandoned = self._queue.drain()

            for request in abandoned:
                request.cancel_timeout()
                if not request.future.done():
                    request.future.set_exception(
                        SchedulerError("Scheduler stopped before the request was dispatched")
                    )
                self._record_failure(request.metadata, "shutdown")

            in_flight = list(self._dispatched_tasks)
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

            self._set_gauge(QUEUE_DEPTH, 0)
            logger.info(
                f"{self.__class__.__name__} stopped "
                f"({len(abandoned)} queued, {len(in_flight)} in-flight abandoned)"
            )

    async def __aenter__(self) -> Self:
        """Start the scheduler and return self for use in async with blocks."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()

    # === Submission ===

    async def submit(
        self,
        caller_id: str,
        request_func: Callable[[], Awaitable[Any]],
        *,
        priority: Priority | str | None = None,
        estimated_tokens: int | None = None,
        max_wait_time: float | None = None,
    ) -> Any:
        """
        Run ``request_func`` once capacity allows and return its result.

        The request runs immediately when every ceiling has headroom;
        otherwise it waits in the priority queue for at most
        ``max_wait_time`` seconds. Failures of ``request_func`` itself
        propagate unchanged.

        Args:
            caller_id: Identity charged for the request
            request_func: Zero-argument coroutine function doing the work
            priority: "high", "medium", "low" or a Priority member
            estimated_tokens: Caller-supplied token cost estimate
            max_wait_time: Queue wait budget in seconds

        Raises:
            DailyLimitExceededError: The caller used its daily share
            OverloadedError: The request cannot run now and the queue is full
            RequestTimeoutError: The request waited longer than max_wait_time
            SchedulerError: The scheduler is not running
        """
        if not self._running:
            raise SchedulerError("Scheduler is not running")
        if asyncio.get_running_loop() is not self._loop:
            raise SchedulerError("submit() must be awaited on the scheduler's event loop")

        config = self._config
        metadata = RequestMetadata(
            request_id=f"req_{uuid.uuid4().hex[:12]}",
            caller_id=caller_id,
            priority=(
                Priority.coerce(priority)
                if priority is not None
                else config.default_priority
            ),
            estimated_tokens=(
                estimated_tokens
                if estimated_tokens is not None
                else config.default_estimated_tokens
            ),
            max_wait_time=(
                max_wait_time if max_wait_time is not None else config.default_max_wait_time
            ),
            submitted_at=self._clock(),
        )

        queued: QueuedRequest | None = None
        with self._state_lock:
            config = self._config
            daily_limit = config.per_caller_daily_limit
            if self._ledger.has_exceeded_daily_cap(caller_id, daily_limit):
                self._inc_counter(DAILY_LIMIT_REJECTIONS_TOTAL)
                logger.info(
                    f"Caller {caller_id} reached daily cap of {daily_limit} requests"
                )
                raise DailyLimitExceededError(caller_id, daily_limit)

            decision = self._admission.check(
                metadata.estimated_tokens, self._active_requests
            )
            if decision.can_proceed:
                self._admit(metadata)
            else:
                queued = self._enqueue(metadata, request_func, decision)

        if queued is None:
            logger.debug(
                f"Request {metadata.request_id} admitted immediately "
                f"(caller={caller_id}, tokens={metadata.estimated_tokens})"
            )
            return await self._run_admitted(metadata, request_func)

        return await queued.future

    async def _run_admitted(
        self,
        metadata: RequestMetadata,
        request_func: Callable[[], Awaitable[Any]],
    ) -> Any:
        try:
            result = await request_func()
        except asyncio.CancelledError:
            self._record_failure(metadata, "cancelled")
            raise
        except Exception:
            self._record_failure(metadata, "error")
            raise
        else:
            self._record_completion(metadata)
            return result
        finally:
            self._release_slot()

    def _admit(self, metadata: RequestMetadata) -> None:
        """Commit an admission. Caller must hold the state lock."""
        self._admission.commit(metadata.caller_id, metadata.estimated_tokens)
        self._active_requests += 1
        self._inc_counter(
            REQUESTS_SCHEDULED_TOTAL, labels={"priority": metadata.priority.label}
        )
        self._set_gauge(ACTIVE_REQUESTS, self._active_requests)

    def _enqueue(
        self,
        metadata: RequestMetadata,
        request_func: Callable[[], Awaitable[Any]],
        decision: LimitCheckResult,
    ) -> QueuedRequest:
        """Queue a request that cannot run now. Caller must hold the state lock."""
        loop = asyncio.get_running_loop()
        request = QueuedRequest(
            metadata=metadata,
            request_func=request_func,
            future=loop.create_future(),
        )

        try:
            position = self._queue.enqueue(request, self._config.max_queue_size)
        except OverloadedError:
            self._inc_counter(
                QUEUE_OVERFLOWS_TOTAL, labels={"priority": metadata.priority.label}
            )
            logger.warning(
                f"Rejected request {metadata.request_id} from {metadata.caller_id}: "
                f"queue full (max_queue_size={self._config.max_queue_size})"
            )
            raise

        request.timeout_handle = loop.call_later(
            metadata.max_wait_time, self._expire_request, metadata.request_id
        )
        request.future.add_done_callback(
            functools.partial(self._on_future_done, metadata.request_id)
        )

        factor = decision.limiting_factor.value.lower() if decision.limiting_factor else "unknown"
        self._inc_counter(
            REQUESTS_QUEUED_TOTAL,
            labels={"priority": metadata.priority.label, "limiting_factor": factor},
        )
        self._set_gauge(QUEUE_DEPTH, len(self._queue))
        logger.debug(
            f"Queued request {metadata.request_id} at position {position} "
            f"(priority={metadata.priority.label}, reason={decision.reason})"
        )
        return request

    # === Queue Eviction ===

    def _expire_request(self, request_id: str) -> None:
        """Timer callback: evict a request that waited past its budget."""
        with self._state_lock:
            request = self._queue.remove_by_id(request_id)
            if request is None:
                # Already dispatched or removed
                return
            request.timeout_handle = None
            depth = len(self._queue)

        self._set_gauge(QUEUE_DEPTH, depth)
        if request.future.done():
            return

        metadata = request.metadata
        request.future.set_exception(
            RequestTimeoutError(request_id, metadata.max_wait_time)
        )
        self._inc_counter(
            REQUEST_TIMEOUTS_TOTAL, labels={"priority": metadata.priority.label}
        )
        self._record_failure(metadata, "timeout")
        logger.warning(
            f"Request {request_id} from {metadata.caller_id} timed out after "
            f"{metadata.max_wait_time}s in queue"
        )

    def _on_future_done(self, request_id: str, future: asyncio.Future[Any]) -> None:
        """Drop the queue entry when the submitter stops waiting."""
        if not future.cancelled():
            return
        with self._state_lock:
            request = self._queue.remove_by_id(request_id)
            if request is None:
                return
            request.cancel_timeout()
            depth = len(self._queue)
        self._set_gauge(QUEUE_DEPTH, depth)
        logger.debug(f"Request {request_id} cancelled by caller while queued")

    # === Scheduler Loop ===

    async def _scheduler_loop(self) -> None:
        """Drain the queue each interval, or sooner when capacity is released."""
        logger.debug("Scheduler loop started")
        while self._running:
            try:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(
                        self._wakeup_event.wait(),
                        timeout=self._config.scheduler_interval,
                    )
                self._wakeup_event.clear()

                while self._running and self._dispatch_next():
                    pass

            except asyncio.CancelledError:
                logger.debug("Scheduler loop cancelled")
                break
            except Exception as e:
                logger.exception(f"Unexpected error in scheduler loop: {e}")

    def _dispatch_next(self) -> bool:
        """
        Run one scheduling tick.

        Returns:
            True if an entry left the queue, so another tick may make progress
        """
        self._inc_counter(SCHEDULER_LOOPS_TOTAL)

        with self._state_lock:
            request = self._select_next()
            if request is None:
                return False

            self._queue.remove_by_id(request.request_id)
            request.cancel_timeout()
            depth = len(self._queue)
            dispatch = not request.future.done()
            if dispatch:
                self._admit(request.metadata)

        self._set_gauge(QUEUE_DEPTH, depth)
        if not dispatch:
            return True

        self._observe_histogram(
            QUEUE_WAIT_SECONDS,
            request.waited,
            labels={"priority": request.priority.label},
        )
        logger.debug(
            f"Dispatching request {request.request_id} after {request.waited:.2f}s "
            f"({depth} still queued)"
        )

        task = asyncio.create_task(self._execute_queued(request))
        self._dispatched_tasks.add(task)
        task.add_done_callback(self._dispatched_tasks.discard)
        return True

    def _select_next(self) -> QueuedRequest | None:
        """Pick the entry to dispatch. Caller must hold the state lock."""
        if self._config.dispatch_policy is DispatchPolicy.FIRST_FIT:
            candidates = self._queue.snapshot()
        else:
            head = self._queue.peek_front()
            candidates = [head] if head is not None else []

        for request in candidates:
            if self._admission.can_admit_now(
                request.metadata.estimated_tokens, self._active_requests
            ):
                return request
        return None

    async def _execute_queued(self, request: QueuedRequest) -> None:
        metadata = request.metadata
        try:
            result = await request.request_func()
        except asyncio.CancelledError:
            self._record_failure(metadata, "cancelled")
            if not request.future.done():
                if self._running:
                    request.future.cancel()
                else:
                    request.future.set_exception(
                        SchedulerError("Scheduler stopped while the request was executing")
                    )
            raise  # Always re-raise for graceful shutdown
        except Exception as e:
            self._record_failure(metadata, "error")
            logger.debug(f"Request {request.request_id} failed: {e!r}")
            if not request.future.done():
                request.future.set_exception(e)
        else:
            self._record_completion(metadata)
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._release_slot()

    def _release_slot(self) -> None:
        with self._state_lock:
            self._active_requests -= 1
            active = self._active_requests
        self._set_gauge(ACTIVE_REQUESTS, active)
        self._wake()

    def _wake(self) -> None:
        """Wake the scheduler loop from any thread."""
        loop = self._loop
        if loop is None or not self._running:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wakeup_event.set()
        else:
            loop.call_soon_threadsafe(self._wakeup_event.set)

    # === Ledger Sweep ===

    async def _usage_sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._config.usage_sweep_interval)
                self.sweep_usage()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Usage sweep failed: {e}")

    def sweep_usage(self) -> int:
        """Drop ledger entries idle for longer than config.usage_max_age."""
        with self._state_lock:
            return self._ledger.sweep(self._config.usage_max_age)

    # === Status ===

    def status(self) -> RateLimitStatus:
        """Usage of every ceiling plus queue and in-flight counts."""
        with self._state_lock:
            config = self._config
            snapshot = self._window.current_status()
            requests_today = self._ledger.total_requests_today()
            queue_length = len(self._queue)
            active = self._active_requests

        return RateLimitStatus(
            requests_per_minute=WindowUsage(
                snapshot.requests_used, config.requests_per_minute
            ),
            tokens_per_minute=WindowUsage(snapshot.tokens_used, config.tokens_per_minute),
            requests_per_day=WindowUsage(requests_today, config.requests_per_day),
            concurrent_requests=WindowUsage(active, config.max_concurrent_requests),
            queue_length=queue_length,
            active_requests=active,
            estimated_wait_ms=self._estimate_wait_ms(queue_length, active, config),
            circuit_breaker_engaged=self.circuit_breaker_engaged,
        )

    @staticmethod
    def _estimate_wait_ms(
        queue_length: int, active: int, config: RateLimitConfig
    ) -> int:
        if queue_length == 0:
            return 0
        per_second = config.requests_per_minute / 60
        if active < config.max_concurrent_requests:
            per_second = max(per_second, 0.1)
        return math.ceil(queue_length / per_second) * 1000

    def queue_position(self, caller_id: str) -> int:
        """1-based position of the caller's earliest queued request, or -1."""
        with self._state_lock:
            return self._queue.position_of(caller_id)

    def get_usage(self, caller_id: str) -> CallerUsage | None:
        """Copy of the caller's ledger entry, or None if never seen."""
        with self._state_lock:
            return self._ledger.get(caller_id)

    # === Operator Controls ===

    def update_config(self, **overrides: Any) -> RateLimitConfig:
        """
        Replace any subset of configuration options at runtime.

        While the circuit breaker is engaged, a max_queue_size override is
        remembered and applied when the breaker is released.

        Raises:
            ConfigurationError: If an override names an unknown option
            ValueError: If an override value is invalid
        """
        changed = sorted(overrides)
        with self._state_lock:
            if self._saved_queue_size is not None and "max_queue_size" in overrides:
                overrides = dict(overrides)
                pending_size = overrides.pop("max_queue_size")
                config = self._config.with_overrides(**overrides)
                config.with_overrides(max_queue_size=pending_size)
                self._saved_queue_size = pending_size
            else:
                config = self._config.with_overrides(**overrides)
            self._config = config

        logger.info(f"Rate limit configuration updated: {', '.join(changed)}")
        self._wake()
        return config

    def set_circuit_breaker(self, enabled: bool) -> None:
        """
        Engage or release the circuit breaker.

        Engaging sets max_queue_size to 0 so every request that cannot run
        immediately is rejected; requests already queued are kept.
        Releasing restores the previous queue size.
        """
        with self._state_lock:
            if enabled:
                if self._saved_queue_size is not None:
                    return
                self._saved_queue_size = self._config.max_queue_size
                self._config = self._config.with_overrides(max_queue_size=0)
            else:
                if self._saved_queue_size is None:
                    return
                self._config = self._config.with_overrides(
                    max_queue_size=self._saved_queue_size
                )
                self._saved_queue_size = None
            queue_size = self._config.max_queue_size

        if enabled:
            logger.warning("Circuit breaker engaged: new queuing is refused")
        else:
            logger.info(f"Circuit breaker released: max_queue_size={queue_size}")

    # === Metrics ===

    def get_metrics(self) -> dict[str, Any]:
        status = self.status()
        metrics: dict[str, Any] = {
            "running": self._running,
            "queue_length": status.queue_length,
            "active_requests": status.active_requests,
            "tracked_callers": len(self._ledger),
            "circuit_breaker_engaged": status.circuit_breaker_engaged,
            "config": self._config.to_dict(),
        }
        if self._metrics is not None:
            metrics["collector"] = self._metrics.get_metrics()
        return metrics

    def _record_completion(self, metadata: RequestMetadata) -> None:
        self._inc_counter(
            REQUESTS_COMPLETED_TOTAL, labels={"priority": metadata.priority.label}
        )

    def _record_failure(self, metadata: RequestMetadata, reason: str) -> None:
        self._inc_counter(
            REQUESTS_FAILED_TOTAL,
            labels={"priority": metadata.priority.label, "reason": reason},
        )

    def _inc_counter(self, name: str, labels: dict[str, str] | None = None) -> None:
        if self._metrics is not None:
            self._metrics.inc_counter(name, labels=labels)

    def _set_gauge(self, name: str, value: float) -> None:
        if self._metrics is not None:
            self._metrics.set_gauge(name, value)

    def _observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        if self._metrics is not None:
            self._metrics.observe_histogram(name, value, labels=labels)


def create_scheduler(
    config: RateLimitConfig | None = None,
    *,
    metrics_collector: UnifiedMetricsCollector | None = None,
    **overrides: Any,
) -> RateLimitedScheduler:
    """
    Build a scheduler from a base config plus keyword overrides.

    Example:
        >>> scheduler = create_scheduler(requests_per_minute=30, max_queue_size=100)
    """
    base = config or RateLimitConfig()
    if overrides:
        base = base.with_overrides(**overrides)
    return RateLimitedScheduler(base, metrics_collector=metrics_collector)


__all__ = ["RateLimitedScheduler", "create_scheduler"]
