# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for document analyzers driven by the progressive orchestrator."""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from ..analysis.models import AnalysisDepth, AnalysisResult, DocumentRef


@runtime_checkable
class DocumentAnalyzer(Protocol):
    """
    Protocol for the unit of work behind each analysis phase.

    Implementations typically call an external LLM. The orchestrator runs
    every call through the rate-limited scheduler, so implementations must
    not apply their own rate limiting.
    """

    async def analyze(
        self,
        documents: Sequence[DocumentRef],
        depth: AnalysisDepth,
        user_context: Mapping[str, Any] | None = None,
    ) -> AnalysisResult:
        """
        Analyze the given documents.

        Args:
            documents: Documents to cover in this pass
            depth: QUICK for the partial scan, COMPREHENSIVE for the full pass
            user_context: Questionnaire answers and other caller context

        Returns:
            AnalysisResult with findings, summary and confidence
        """
        ...
