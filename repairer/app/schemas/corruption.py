"""
Corruption classification schemas.

Severity and the repair strategy list are derived deterministically from
which corruption buckets are non-empty. Callers never set them directly:
use ``CorruptionReport.from_issues``.
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, ConfigDict

from repairer.app.schemas.errors import StructuralError


class SeverityLevel(str, Enum):
    """
    Corruption severity.

    Ordering is intentional and MUST remain stable.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Repair strategy labels (FROZEN CONTRACT)
STRATEGY_RECONSTRUCT_HEADER = "Reconstruct PDF header"
STRATEGY_REBUILD_XREF = "Rebuild cross-reference table"
STRATEGY_FIX_STREAM_DELIMITERS = "Fix stream delimiters"
STRATEGY_RECALCULATE_STREAM_LENGTHS = "Recalculate stream lengths"


class CorruptionBuckets(BaseModel):
    """Issue labels grouped by region."""

    header: List[str] = Field(default_factory=list)
    xref: List[str] = Field(default_factory=list)
    streams: List[str] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class CorruptionReport(BaseModel):
    """
    Pattern-based diagnosis of a PDF buffer.

    ``issues`` carries the same observations as ``corruptions`` with
    their ErrorKind tags, in header, xref, stream order. An input that
    could not be classified at all is reported by ``unreadable``: one
    UNKNOWN_ERROR issue, empty buckets, no strategy.
    """

    is_corrupted: bool
    corruptions: CorruptionBuckets
    severity: SeverityLevel
    repair_strategy: List[str] = Field(default_factory=list)
    issues: List[StructuralError] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def from_issues(
        cls,
        *,
        header: List[StructuralError],
        xref: List[StructuralError],
        streams: List[StructuralError],
    ) -> "CorruptionReport":
        return cls(
            is_corrupted=bool(header or xref or streams),
            corruptions=CorruptionBuckets(
                header=[i.message for i in header],
                xref=[i.message for i in xref],
                streams=[i.message for i in streams],
            ),
            severity=derive_severity(
                header_count=len(header),
                xref_count=len(xref),
                stream_count=len(streams),
            ),
            repair_strategy=derive_repair_strategy(
                header_count=len(header),
                xref_count=len(xref),
                stream_count=len(streams),
            ),
            issues=[*header, *xref, *streams],
        )

    @classmethod
    def unreadable(cls, error: StructuralError) -> "CorruptionReport":
        return cls(
            is_corrupted=True,
            corruptions=CorruptionBuckets(),
            severity=SeverityLevel.CRITICAL,
            repair_strategy=[],
            issues=[error],
        )


def derive_severity(
    *, header_count: int, xref_count: int, stream_count: int
) -> SeverityLevel:
    """
    Header corruption dominates: an unreadable header blocks every
    downstream parser. Xref corruption is next since object lookup
    depends on it.
    """
    if header_count > 0:
        return SeverityLevel.CRITICAL
    if xref_count > 0:
        return SeverityLevel.HIGH
    if stream_count > 2:
        return SeverityLevel.HIGH
    if stream_count > 0:
        return SeverityLevel.MEDIUM
    return SeverityLevel.LOW


def derive_repair_strategy(
    *, header_count: int, xref_count: int, stream_count: int
) -> List[str]:
    strategies: List[str] = []

    if header_count > 0:
        strategies.append(STRATEGY_RECONSTRUCT_HEADER)

    if xref_count > 0:
        strategies.append(STRATEGY_REBUILD_XREF)

    if stream_count > 0:
        strategies.append(STRATEGY_FIX_STREAM_DELIMITERS)
        strategies.append(STRATEGY_RECALCULATE_STREAM_LENGTHS)

    return strategies
