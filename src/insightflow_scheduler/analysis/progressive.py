# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Progressive two-phase document analysis.

Phase 1 runs a quick, high-priority scan over the most important
documents and surfaces its result immediately. Phase 2 then runs the
comprehensive analysis at lower priority through the same scheduler and
replaces the partial result. If phase 2 fails the partial result is
promoted to the final one with a confidence boost, because a degraded
answer beats a hard failure.

Per-run state machine::

    SCANNING -> PARTIAL_READY -> FINALIZING -> COMPLETE
                                     |             ^
                                     +-> ERROR_FALLBACK
    SCANNING -> FAILED
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..observability.collector import UnifiedMetricsCollector, get_metrics_collector
from ..observability.constants import ANALYSIS_PHASES_TOTAL
from ..scheduler.config import ProgressiveAnalysisConfig
from .models import (
    AnalysisDepth,
    AnalysisResult,
    DocumentRef,
    deduplicate_findings,
    prioritize_documents,
)

if TYPE_CHECKING:
    from ..protocols.analyzer import DocumentAnalyzer
    from ..scheduler.scheduler import RateLimitedScheduler

logger = logging.getLogger(__name__)


class AnalysisState(Enum):
    SCANNING = "scanning"
    PARTIAL_READY = "partial_ready"
    FINALIZING = "finalizing"
    ERROR_FALLBACK = "error_fallback"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS: dict[AnalysisState, frozenset[AnalysisState]] = {
    AnalysisState.SCANNING: frozenset({AnalysisState.PARTIAL_READY, AnalysisState.FAILED}),
    AnalysisState.PARTIAL_READY: frozenset({AnalysisState.FINALIZING}),
    AnalysisState.FINALIZING: frozenset(
        {AnalysisState.COMPLETE, AnalysisState.ERROR_FALLBACK}
    ),
    AnalysisState.ERROR_FALLBACK: frozenset({AnalysisState.COMPLETE}),
    AnalysisState.COMPLETE: frozenset(),
    AnalysisState.FAILED: frozenset(),
}


class ResultPhase(str, Enum):
    """Phase tag carried by each surfaced update; only ever moves forward."""

    QUICK = "quick"
    COMPLETE = "complete"


@dataclass
class AnalysisRun:
    """
    Transient bookkeeping for one progressive analysis.

    Attributes:
        documents: All documents in the run
        state: Current state machine position
        partial: Result surfaced after phase 1
        final: Result surfaced after phase 2 or the fallback
        started_at: Monotonic start time used for processing_time
        history: Every state visited, in order
    """

    documents: tuple[DocumentRef, ...]
    run_id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")
    state: AnalysisState = AnalysisState.SCANNING
    partial: AnalysisResult | None = None
    final: AnalysisResult | None = None
    started_at: float = field(default_factory=time.monotonic)
    history: list[AnalysisState] = field(default_factory=lambda: [AnalysisState.SCANNING])

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def transition(self, state: AnalysisState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid analysis transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class PhaseUpdate:
    """One element of the progressive result stream."""

    phase: ResultPhase
    state: AnalysisState
    result: AnalysisResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "state": self.state.value,
            "result": self.result.to_dict(),
        }


class ProgressiveAnalysisOrchestrator:
    """
    Run quick-then-comprehensive analysis through a shared scheduler.

    Args:
        scheduler: The process-wide rate-limited scheduler
        analyzer: Performs each analysis pass
        config: Priorities, token estimates and fallback boost
        metrics_collector: Collector for phase counters; defaults to the
            global collector
    """

    def __init__(
        self,
        scheduler: RateLimitedScheduler,
        analyzer: DocumentAnalyzer,
        config: ProgressiveAnalysisConfig | None = None,
        *,
        metrics_collector: UnifiedMetricsCollector | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.analyzer = analyzer
        self.config = config or ProgressiveAnalysisConfig()
        self._metrics = (
            metrics_collector if metrics_collector is not None else get_metrics_collector()
        )

    async def run(
        self,
        documents: Sequence[DocumentRef],
        user_context: Mapping[str, Any] | None = None,
        *,
        caller_id: str = "anonymous",
    ) -> AsyncIterator[PhaseUpdate]:
        """
        Stream a partial update, then a final update.

        Raises:
            ValueError: If no documents are given
            Exception: Whatever the scheduler or analyzer raised in phase 1
        """
        if not documents:
            raise ValueError("At least one document is required")

        run = AnalysisRun(documents=tuple(documents))
        quick_documents = prioritize_documents(run.documents)[
            : self.config.quick_scan_document_limit
        ]
        logger.info(
            f"Analysis {run.run_id} started for {caller_id}: "
            f"{len(run.documents)} document(s), quick scan of {len(quick_documents)}"
        )

        try:
            quick = await self.scheduler.submit(
                caller_id,
                lambda: self.analyzer.analyze(
                    quick_documents, AnalysisDepth.QUICK, user_context
                ),
                priority=self.config.quick_priority,
                estimated_tokens=self.config.quick_estimated_tokens,
                max_wait_time=self.config.quick_max_wait_time,
            )
        except Exception as e:
            run.transition(AnalysisState.FAILED)
            logger.warning(f"Analysis {run.run_id} quick scan failed: {e!r}")
            raise

        partial = self._as_partial(quick, run, len(quick_documents))
        run.partial = partial
        run.transition(AnalysisState.PARTIAL_READY)
        self._count_phase("quick")
        yield PhaseUpdate(ResultPhase.QUICK, AnalysisState.PARTIAL_READY, partial)

        run.transition(AnalysisState.FINALIZING)
        try:
            comprehensive = await self.scheduler.submit(
                caller_id,
                lambda: self.analyzer.analyze(
                    run.documents, AnalysisDepth.COMPREHENSIVE, user_context
                ),
                priority=self.config.comprehensive_priority,
                estimated_tokens=self.config.comprehensive_estimated_tokens,
                max_wait_time=self.config.comprehensive_max_wait_time,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            run.transition(AnalysisState.ERROR_FALLBACK)
            logger.warning(
                f"Analysis {run.run_id} comprehensive pass failed, "
                f"falling back to partial result: {e!r}"
            )
            final = self._fallback(partial, run, e)
            self._count_phase("fallback")
        else:
            final = self._merge(partial, comprehensive, run)
            self._count_phase("complete")

        run.final = final
        run.transition(AnalysisState.COMPLETE)
        logger.info(
            f"Analysis {run.run_id} complete in {run.elapsed:.2f}s "
            f"(confidence {partial.confidence} -> {final.confidence})"
        )
        yield PhaseUpdate(ResultPhase.COMPLETE, AnalysisState.COMPLETE, final)

    async def analyze(
        self,
        documents: Sequence[DocumentRef],
        user_context: Mapping[str, Any] | None = None,
        *,
        caller_id: str = "anonymous",
    ) -> AnalysisResult:
        """Run both phases and return only the final result."""
        final: AnalysisResult | None = None
        async for update in self.run(documents, user_context, caller_id=caller_id):
            final = update.result
        assert final is not None
        return final

    def _as_partial(
        self, result: AnalysisResult, run: AnalysisRun, scanned: int
    ) -> AnalysisResult:
        return replace(
            result,
            status="partial",
            progress=round(scanned / len(run.documents) * 100),
            metadata={
                **result.metadata,
                "phase": "quick_scan",
                "documents_scanned": scanned,
                "document_count": len(run.documents),
                "processing_time": run.elapsed,
            },
        )

    def _merge(
        self, partial: AnalysisResult, comprehensive: AnalysisResult, run: AnalysisRun
    ) -> AnalysisResult:
        # Findings and summary come from phase 2; confidence never drops.
        return replace(
            comprehensive,
            findings=deduplicate_findings(comprehensive.findings),
            confidence=max(comprehensive.confidence, partial.confidence),
            status="complete",
            progress=100,
            metadata={
                **comprehensive.metadata,
                "phase": "complete",
                "document_count": len(run.documents),
                "processing_time": run.elapsed,
                "enhanced_analysis": True,
                "comprehensive_completed": True,
            },
        )

    def _fallback(
        self, partial: AnalysisResult, run: AnalysisRun, error: Exception
    ) -> AnalysisResult:
        boosted = round(min(partial.confidence + self.config.fallback_confidence_boost, 1.0), 4)
        return replace(
            partial,
            confidence=max(boosted, partial.confidence),
            status="complete",
            progress=100,
            metadata={
                **partial.metadata,
                "phase": "complete",
                "processing_time": run.elapsed,
                "enhanced_analysis": False,
                "comprehensive_completed": False,
                "fallback_reason": str(error) or type(error).__name__,
                "fallback_error": type(error).__name__,
            },
        )

    def _count_phase(self, phase: str) -> None:
        self._metrics.inc_counter(ANALYSIS_PHASES_TOTAL, labels={"phase": phase})


__all__ = [
    "AnalysisRun",
    "AnalysisState",
    "PhaseUpdate",
    "ProgressiveAnalysisOrchestrator",
    "ResultPhase",
]
