"""
Unit tests for ProgressiveAnalysisOrchestrator.

Tests cover:
- Two-phase streaming with a partial then a final update
- Confidence never decreasing from the partial to the final result
- Fallback to the partial result when the comprehensive pass fails
- Quick scan document selection and phase 1 failure propagation
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from insightflow_scheduler.analysis.models import (
    AnalysisDepth,
    AnalysisResult,
    DocumentRef,
    Finding,
)
from insightflow_scheduler.analysis.progressive import (
    AnalysisRun,
    AnalysisState,
    ProgressiveAnalysisOrchestrator,
    ResultPhase,
)
from insightflow_scheduler.exceptions import DailyLimitExceededError
from insightflow_scheduler.observability.constants import ANALYSIS_PHASES_TOTAL
from insightflow_scheduler.protocols.analyzer import DocumentAnalyzer
from insightflow_scheduler.scheduler.config import ProgressiveAnalysisConfig
from insightflow_scheduler.types.request import Priority

DOCUMENTS = [
    DocumentRef("general", document_type="GENERAL"),
    DocumentRef("search", document_type="SEARCH"),
    DocumentRef("ta6", document_type="TA6"),
    DocumentRef("epc", document_type="EPC"),
]


class FakeAnalyzer:
    """Analyzer returning canned results per depth and recording its calls."""

    def __init__(self, quick=None, comprehensive=None):
        self.results = {
            AnalysisDepth.QUICK: quick if quick is not None else 0.7,
            AnalysisDepth.COMPREHENSIVE: (
                comprehensive if comprehensive is not None else 0.85
            ),
        }
        self.calls = []

    async def analyze(self, documents, depth, user_context=None):
        self.calls.append((depth, [doc.id for doc in documents], user_context))
        outcome = self.results[depth]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, AnalysisResult):
            return outcome
        return AnalysisResult(
            document_ids=tuple(doc.id for doc in documents),
            findings=(Finding(f"{depth.value}-1", "legal", f"{depth.value} finding"),),
            confidence=outcome,
        )


@pytest.fixture
def make_orchestrator(make_scheduler, collector):
    """Build an orchestrator on a fresh scheduler and the shared collector."""

    def _make(analyzer, **config_overrides):
        scheduler = make_scheduler(requests_per_minute=100, tokens_per_minute=100000)
        orchestrator = ProgressiveAnalysisOrchestrator(
            scheduler,
            analyzer,
            ProgressiveAnalysisConfig(**config_overrides),
            metrics_collector=collector,
        )
        return scheduler, orchestrator

    return _make


async def collect(orchestrator, documents, **kwargs):
    return [update async for update in orchestrator.run(documents, **kwargs)]


class TestProgressiveRun:
    """Tests for the happy path of run()."""

    @pytest.mark.asyncio
    async def test_streams_partial_then_final(self, make_orchestrator, collector):
        """A run yields exactly one partial update followed by one final update."""
        analyzer = FakeAnalyzer(quick=0.7, comprehensive=0.85)
        scheduler, orchestrator = make_orchestrator(analyzer)

        async with scheduler:
            updates = await collect(orchestrator, DOCUMENTS, caller_id="alice")

        partial, final = updates
        assert partial.phase is ResultPhase.QUICK
        assert partial.state is AnalysisState.PARTIAL_READY
        assert partial.result.status == "partial"
        assert partial.result.progress == 50
        assert partial.result.metadata["phase"] == "quick_scan"
        assert partial.result.metadata["documents_scanned"] == 2

        assert final.phase is ResultPhase.COMPLETE
        assert final.state is AnalysisState.COMPLETE
        assert final.result.status == "complete"
        assert final.result.progress == 100
        assert final.result.confidence == pytest.approx(0.85)
        assert final.result.metadata["comprehensive_completed"] is True
        assert final.result.metadata["enhanced_analysis"] is True

        assert collector.get_counter(ANALYSIS_PHASES_TOTAL, {"phase": "quick"}) == 1
        assert collector.get_counter(ANALYSIS_PHASES_TOTAL, {"phase": "complete"}) == 1

    @pytest.mark.asyncio
    async def test_quick_scan_covers_top_ranked_documents(self, make_orchestrator):
        """Phase 1 sees the two highest-ranked documents, phase 2 sees all."""
        analyzer = FakeAnalyzer()
        scheduler, orchestrator = make_orchestrator(analyzer)
        context = {"property_type": "leasehold"}

        async with scheduler:
            await orchestrator.analyze(DOCUMENTS, context, caller_id="alice")

        quick_call, comprehensive_call = analyzer.calls
        assert quick_call == (AnalysisDepth.QUICK, ["ta6", "search"], context)
        assert comprehensive_call[0] is AnalysisDepth.COMPREHENSIVE
        assert comprehensive_call[1] == ["general", "search", "ta6", "epc"]

    @pytest.mark.asyncio
    async def test_phases_use_configured_priorities(self, make_orchestrator):
        """Each phase is submitted with its own priority and token estimate."""
        scheduler, orchestrator = make_orchestrator(FakeAnalyzer())
        scheduler.submit = AsyncMock(
            side_effect=[
                AnalysisResult(document_ids=("ta6",), confidence=0.6),
                AnalysisResult(document_ids=("ta6",), confidence=0.8),
            ]
        )

        await orchestrator.analyze(DOCUMENTS[:1], caller_id="alice")

        quick_kwargs = scheduler.submit.call_args_list[0].kwargs
        comprehensive_kwargs = scheduler.submit.call_args_list[1].kwargs
        assert quick_kwargs["priority"] is Priority.HIGH
        assert quick_kwargs["estimated_tokens"] == 2000
        assert comprehensive_kwargs["priority"] is Priority.MEDIUM
        assert comprehensive_kwargs["estimated_tokens"] == 8000
        assert scheduler.submit.call_args_list[0].args[0] == "alice"

    @pytest.mark.asyncio
    async def test_final_confidence_never_below_partial(self, make_orchestrator):
        """A less confident comprehensive pass keeps the partial confidence."""
        scheduler, orchestrator = make_orchestrator(
            FakeAnalyzer(quick=0.8, comprehensive=0.6)
        )

        async with scheduler:
            partial, final = await collect(orchestrator, DOCUMENTS)

        assert partial.result.confidence == pytest.approx(0.8)
        assert final.result.confidence == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_final_findings_are_deduplicated(self, make_orchestrator):
        """Repeated findings from the comprehensive pass are collapsed."""
        comprehensive = AnalysisResult(
            document_ids=("ta6",),
            findings=(
                Finding("a", "legal", "Missing lease"),
                Finding("b", "legal", "missing lease"),
            ),
            confidence=0.9,
        )
        scheduler, orchestrator = make_orchestrator(
            FakeAnalyzer(comprehensive=comprehensive)
        )

        async with scheduler:
            final = await orchestrator.analyze(DOCUMENTS)

        assert [f.id for f in final.findings] == ["a"]

    @pytest.mark.asyncio
    async def test_requires_documents(self, make_orchestrator):
        """An empty document list is rejected."""
        scheduler, orchestrator = make_orchestrator(FakeAnalyzer())

        async with scheduler:
            with pytest.raises(ValueError, match="At least one document"):
                await collect(orchestrator, [])


class TestFallback:
    """Tests for the comprehensive pass failing after a partial result."""

    @pytest.mark.asyncio
    async def test_partial_promoted_with_boost(self, make_orchestrator, collector):
        """A failed phase 2 promotes the partial result with a confidence boost."""
        analyzer = FakeAnalyzer(quick=0.7, comprehensive=RuntimeError("provider down"))
        scheduler, orchestrator = make_orchestrator(analyzer)

        async with scheduler:
            partial, final = await collect(orchestrator, DOCUMENTS)

        assert final.state is AnalysisState.COMPLETE
        assert final.result.status == "complete"
        assert final.result.confidence == pytest.approx(0.9)
        assert final.result.findings == partial.result.findings
        assert final.result.metadata["comprehensive_completed"] is False
        assert final.result.metadata["enhanced_analysis"] is False
        assert final.result.metadata["fallback_reason"] == "provider down"
        assert final.result.metadata["fallback_error"] == "RuntimeError"
        assert collector.get_counter(ANALYSIS_PHASES_TOTAL, {"phase": "fallback"}) == 1

    @pytest.mark.asyncio
    async def test_boost_is_capped(self, make_orchestrator):
        """The boosted confidence never exceeds 1.0."""
        analyzer = FakeAnalyzer(quick=0.95, comprehensive=RuntimeError("boom"))
        scheduler, orchestrator = make_orchestrator(analyzer)

        async with scheduler:
            final = await orchestrator.analyze(DOCUMENTS)

        assert final.confidence == 1.0

    @pytest.mark.asyncio
    async def test_scheduler_rejection_in_phase_two(self, make_orchestrator):
        """A scheduler error in phase 2 also falls back instead of failing."""
        scheduler, orchestrator = make_orchestrator(FakeAnalyzer(quick=0.5))
        partial_result = AnalysisResult(document_ids=("ta6",), confidence=0.5)
        scheduler.submit = AsyncMock(
            side_effect=[partial_result, DailyLimitExceededError("alice", 2)]
        )

        final = await orchestrator.analyze(DOCUMENTS)

        assert final.confidence == pytest.approx(0.7)
        assert final.metadata["fallback_error"] == "DailyLimitExceededError"


class TestQuickScanFailure:
    """Tests for phase 1 failures."""

    @pytest.mark.asyncio
    async def test_phase_one_failure_propagates(self, make_orchestrator):
        """A failed quick scan surfaces nothing and raises to the caller."""
        analyzer = FakeAnalyzer(quick=RuntimeError("quick failed"))
        scheduler, orchestrator = make_orchestrator(analyzer)
        updates = []

        async with scheduler:
            with pytest.raises(RuntimeError, match="quick failed"):
                async for update in orchestrator.run(DOCUMENTS):
                    updates.append(update)

        assert updates == []
        assert [call[0] for call in analyzer.calls] == [AnalysisDepth.QUICK]

    @pytest.mark.asyncio
    async def test_scheduler_rejection_propagates(self, make_orchestrator):
        """Scheduler errors in phase 1 reach the caller unchanged."""
        scheduler, orchestrator = make_orchestrator(FakeAnalyzer())
        scheduler.submit = AsyncMock(side_effect=DailyLimitExceededError("alice", 2))

        with pytest.raises(DailyLimitExceededError):
            await orchestrator.analyze(DOCUMENTS)


class TestAnalysisRun:
    """Tests for the per-run state machine."""

    def test_success_path(self):
        """The success path records every state in order."""
        run = AnalysisRun(documents=tuple(DOCUMENTS))
        for state in (
            AnalysisState.PARTIAL_READY,
            AnalysisState.FINALIZING,
            AnalysisState.COMPLETE,
        ):
            run.transition(state)

        assert run.history == [
            AnalysisState.SCANNING,
            AnalysisState.PARTIAL_READY,
            AnalysisState.FINALIZING,
            AnalysisState.COMPLETE,
        ]

    def test_fallback_path(self):
        """FINALIZING may detour through ERROR_FALLBACK before COMPLETE."""
        run = AnalysisRun(documents=tuple(DOCUMENTS))
        run.transition(AnalysisState.PARTIAL_READY)
        run.transition(AnalysisState.FINALIZING)
        run.transition(AnalysisState.ERROR_FALLBACK)
        run.transition(AnalysisState.COMPLETE)

        assert run.state is AnalysisState.COMPLETE

    @pytest.mark.parametrize(
        "path",
        [
            [AnalysisState.COMPLETE],
            [AnalysisState.PARTIAL_READY, AnalysisState.COMPLETE],
            [AnalysisState.FAILED, AnalysisState.PARTIAL_READY],
        ],
    )
    def test_invalid_transitions(self, path):
        """Skipping states or leaving a terminal state is rejected."""
        run = AnalysisRun(documents=tuple(DOCUMENTS))
        with pytest.raises(RuntimeError, match="Invalid analysis transition"):
            for state in path:
                run.transition(state)


class TestProtocol:
    """Tests for the DocumentAnalyzer protocol."""

    def test_fake_analyzer_satisfies_protocol(self):
        """Any object with an async analyze() method is a DocumentAnalyzer."""
        assert isinstance(FakeAnalyzer(), DocumentAnalyzer)
        assert not isinstance(object(), DocumentAnalyzer)


class TestConcurrentRuns:
    """Tests for several runs sharing one scheduler."""

    @pytest.mark.asyncio
    async def test_runs_share_scheduler(self, make_orchestrator):
        """Concurrent runs for different callers all complete."""
        scheduler, orchestrator = make_orchestrator(FakeAnalyzer())

        async with scheduler:
            results = await asyncio.wait_for(
                asyncio.gather(
                    *(
                        orchestrator.analyze(DOCUMENTS, caller_id=f"user-{n}")
                        for n in range(3)
                    )
                ),
                2.0,
            )

        assert all(result.status == "complete" for result in results)
        assert scheduler.status().requests_per_minute.used == 6
