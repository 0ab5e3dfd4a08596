# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Progressive analysis orchestration on top of the scheduler."""

from .models import (
    AnalysisDepth,
    AnalysisResult,
    AnalysisSummary,
    DocumentRef,
    Finding,
    calculate_overall_confidence,
    deduplicate_findings,
    prioritize_documents,
)
from .progressive import (
    AnalysisRun,
    AnalysisState,
    PhaseUpdate,
    ProgressiveAnalysisOrchestrator,
    ResultPhase,
)

__all__ = [
    "AnalysisDepth",
    "AnalysisResult",
    "AnalysisRun",
    "AnalysisState",
    "AnalysisSummary",
    "DocumentRef",
    "Finding",
    "PhaseUpdate",
    "ProgressiveAnalysisOrchestrator",
    "ResultPhase",
    "calculate_overall_confidence",
    "deduplicate_findings",
    "prioritize_documents",
]
