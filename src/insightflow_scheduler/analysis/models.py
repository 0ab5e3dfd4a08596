# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Data types exchanged between the orchestrator and document analyzers.

The orchestrator never inspects document contents; it only ranks
documents by their declared type to choose what the quick scan covers.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Lower rank is scanned first; unknown types go last.
DOCUMENT_TYPE_RANK: dict[str, int] = {
    "TA6": 1,
    "SURVEY": 2,
    "SEARCH": 3,
    "TITLE": 4,
    "EPC": 5,
    "GENERAL": 6,
}
UNKNOWN_DOCUMENT_RANK = 10


class AnalysisDepth(Enum):
    """How thorough an analyzer pass should be."""

    QUICK = "quick"
    COMPREHENSIVE = "comprehensive"


@dataclass(frozen=True)
class DocumentRef:
    """
    Reference to an already uploaded and extracted document.

    Attributes:
        id: Stable document identifier
        filename: Original filename, for display
        document_type: Declared type code such as "TA6" or "SURVEY"
        text: Extracted text handed through to the analyzer
        metadata: Free-form attributes supplied by the upload pipeline
    """

    id: str
    filename: str = ""
    document_type: str = "GENERAL"
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def rank(self) -> int:
        return DOCUMENT_TYPE_RANK.get(self.document_type.upper(), UNKNOWN_DOCUMENT_RANK)


def prioritize_documents(documents: Iterable[DocumentRef]) -> list[DocumentRef]:
    """Order documents by type rank, keeping input order within a rank."""
    return sorted(documents, key=lambda doc: doc.rank)


@dataclass(frozen=True)
class Finding:
    """A single issue reported by an analyzer."""

    id: str
    type: str
    title: str
    description: str = ""
    severity: str = "medium"
    confidence: float = 0.5
    document_id: str | None = None
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisSummary:
    overall_risk: str = "low"
    key_findings: tuple[str, ...] = ()
    recommended_actions: tuple[str, ...] = ()
    executive_summary: str = ""


@dataclass(frozen=True)
class AnalysisResult:
    """
    Output of one analyzer pass, or of the orchestrator's reconciliation.

    Attributes:
        document_ids: Documents the result covers
        findings: Reported findings
        summary: Roll-up of the findings
        confidence: Overall confidence in [0.0, 1.0]
        status: "partial" while phase 2 is outstanding, otherwise "complete"
        progress: Percentage of documents covered
        metadata: Phase tag, timings and fallback markers
    """

    document_ids: tuple[str, ...]
    findings: tuple[Finding, ...] = ()
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)
    confidence: float = 0.5
    status: str = "complete"
    progress: int = 100
    id: str = field(default_factory=lambda: f"analysis_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be between 0.0 and 1.0, got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


def calculate_overall_confidence(findings: Sequence[Finding]) -> float:
    """Mean finding confidence rounded to two places; 0.5 when there are none."""
    if not findings:
        return 0.5
    return round(sum(f.confidence for f in findings) / len(findings), 2)


def deduplicate_findings(findings: Iterable[Finding]) -> tuple[Finding, ...]:
    """Drop findings whose title and type repeat an earlier one (case-insensitive)."""
    seen: set[str] = set()
    unique: list[Finding] = []
    for finding in findings:
        key = f"{finding.title}-{finding.type}".lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)
    return tuple(unique)


__all__ = [
    "DOCUMENT_TYPE_RANK",
    "UNKNOWN_DOCUMENT_RANK",
    "AnalysisDepth",
    "AnalysisResult",
    "AnalysisSummary",
    "DocumentRef",
    "Finding",
    "calculate_overall_confidence",
    "deduplicate_findings",
    "prioritize_documents",
]
