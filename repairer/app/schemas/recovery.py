"""
Recovery and repair result schemas.

RecoveryResult describes one invocation of one recovery transform.
RepairResult is the final outcome of an orchestrated repair request and
composes the sequence of RecoveryResults that were applied.

Byte payloads serialize to base64 in JSON mode.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from repairer.app.schemas.errors import ErrorKind
from repairer.app.schemas.validation import ValidationResult
from repairer.app.schemas.corruption import CorruptionReport, SeverityLevel


# ---------------------------------------------------------------------------
# Single transform outcome
# ---------------------------------------------------------------------------

STRATEGY_NONE = "none"
STRATEGY_FAILED = "failed"


class RecoveryResult(BaseModel):
    """
    Outcome of a single recovery transform.

    On failure ``recovered_data`` is the unmodified input.
    """

    success: bool
    message: str
    recovered_data: bytes = Field(repr=False)
    applied_strategy: str
    error_kind: Optional[ErrorKind] = Field(
        None,
        description="Category the transform was dispatched for",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        ser_json_bytes="base64",
    )


# ---------------------------------------------------------------------------
# Orchestrated repair outcome
# ---------------------------------------------------------------------------


class RepairState(str, Enum):
    """
    Orchestrator states.

    A RepairResult always reports one of the terminal states
    (REJECTED, DONE_NOCHANGE, DONE).
    """

    INIT = "init"
    VALIDATE_INPUT = "validate_input"
    APPLY_REPAIR = "apply_repair"
    REVALIDATE = "revalidate"

    REJECTED = "rejected"
    DONE_NOCHANGE = "done_nochange"
    DONE = "done"


class AppliedStrategy(BaseModel):
    """Summary of one transform the orchestrator ran."""

    error_kind: ErrorKind
    strategy: str
    success: bool
    message: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class RepairDetails(BaseModel):
    """Size and action bookkeeping for a repair request."""

    original_size: int = Field(..., ge=0)
    repaired_size: int = Field(..., ge=0)
    repair_actions: List[str] = Field(default_factory=list)
    recovered_objects: int = Field(0, ge=0)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class ErrorDiagnostic(BaseModel):
    """
    User-facing description of one detected problem.

    ``message`` is the catalog text for ``kind`` with the detector's own
    wording appended as a ``Details:`` line.
    """

    kind: ErrorKind
    message: str
    severity: SeverityLevel
    recommendation: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class ParserVerification(BaseModel):
    """
    Result of opening the repaired bytes with a full PDF parser.

    Diagnostic only. MUST NOT gate the repair outcome.
    """

    parseable: bool
    error: Optional[str] = None
    pdf_version: Optional[str] = None
    page_count: Optional[int] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class RepairResult(BaseModel):
    """
    Final outcome of one repair request.

    ``error`` is set only for terminal rejections. A request whose
    transforms partly failed still completes, with
    ``partially_completed=True``.
    """

    is_valid: bool
    state: RepairState
    repaired_bytes: Optional[bytes] = Field(None, repr=False)
    error: Optional[str] = None

    partially_completed: bool = False
    applied_strategies: List[AppliedStrategy] = Field(default_factory=list)

    initial_validation: Optional[ValidationResult] = None
    corruption: Optional[CorruptionReport] = None
    final_validation: Optional[ValidationResult] = None

    diagnostics: List[ErrorDiagnostic] = Field(default_factory=list)

    repair_details: Optional[RepairDetails] = None
    parser_verification: Optional[ParserVerification] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        ser_json_bytes="base64",
    )
