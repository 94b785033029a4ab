"""
Repair Orchestrator.

One pass per repair request:

    INIT -> VALIDATE_INPUT -> DONE_NOCHANGE
                           -> APPLY_REPAIR -> REVALIDATE -> DONE
    (INIT | VALIDATE_INPUT) -> REJECTED

The orchestrator is a DUMB AUTHORITY. It MUST NOT inspect bytes itself
beyond the two hard preconditions (size floor and the 5-byte '%PDF-'
signature). Everything else is delegated:

- Structure Validator decides validity
- Corruption Classifier supplies tagged issues
- Recovery Engine performs every byte transform

Strategy selection works on ErrorKind tags only, never on message text.

Transforms run in a fixed order. The xref rebuild runs last because it
records byte offsets that any earlier transform may shift; for the same
reason it is scheduled whenever an earlier transform changed the bytes of
a document indexed by a classic xref table.

Failure semantics:
    Precondition failures are terminal (REJECTED). A failing transform
    only marks the result ``partially_completed``; the remaining
    transforms still run.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from repairer.app.checks.corruption_classification import check_corruption
from repairer.app.checks.parser_verification import verify_parseable
from repairer.app.checks.structure_validation import (
    XREF_STREAM_RE,
    validate_structure,
)
from repairer.app.config import RepairerConfig, DEFAULT_CONFIG
from repairer.app.recovery.engine import apply_recovery_strategy
from repairer.app.schemas.corruption import CorruptionReport
from repairer.app.schemas.errors import ErrorKind
from repairer.app.schemas.recovery import (
    AppliedStrategy,
    ParserVerification,
    RepairDetails,
    RepairResult,
    RepairState,
)
from repairer.app.schemas.validation import ValidationResult
from repairer.app.utils.error_messages import describe_errors
from repairer.app.utils.pdf_bytes import scan_objects

# Events (observational only)
from repairer.app.events import (
    RepairEvent,
    RepairEventType,
    RepairEventEmitter,
    NullEventEmitter,
)

logger = logging.getLogger(__name__)


PDF_SIGNATURE = b"%PDF-"


class RepairPreconditionError(ValueError):
    """Input cannot be repaired at all. Terminal for the request."""

    def __init__(self, message: str, state: RepairState) -> None:
        super().__init__(message)
        self.state = state


# ---------------------------------------------------------------------------
# Strategy selection (FROZEN)
# ---------------------------------------------------------------------------

# Detected kind -> the recovery category that repairs it.
KIND_TO_RECOVERY = {
    ErrorKind.MISSING_HEADER: ErrorKind.MISSING_HEADER,
    ErrorKind.INVALID_VERSION: ErrorKind.MISSING_HEADER,
    ErrorKind.MALFORMED_HEADER: ErrorKind.MISSING_HEADER,
    ErrorKind.MISSING_XREF: ErrorKind.MISSING_XREF,
    ErrorKind.INVALID_XREF_ENTRY: ErrorKind.MISSING_XREF,
    ErrorKind.XREF_OVERFLOW: ErrorKind.MISSING_XREF,
    ErrorKind.MISMATCHED_STREAM: ErrorKind.MISMATCHED_STREAM,
    ErrorKind.INVALID_STREAM_LENGTH: ErrorKind.MISMATCHED_STREAM,
    ErrorKind.CORRUPTED_TEXT: ErrorKind.CORRUPTED_TEXT,
    ErrorKind.CORRUPTED_IMAGE: ErrorKind.CORRUPTED_IMAGE,
    ErrorKind.BROKEN_ENCRYPTION: ErrorKind.BROKEN_ENCRYPTION,
}

APPLICATION_ORDER = (
    ErrorKind.MISSING_HEADER,
    ErrorKind.BROKEN_ENCRYPTION,
    ErrorKind.CORRUPTED_IMAGE,
    ErrorKind.CORRUPTED_TEXT,
    ErrorKind.MISMATCHED_STREAM,
    ErrorKind.MISSING_XREF,
)


def select_recovery_kinds(kinds: Iterable[ErrorKind]) -> List[ErrorKind]:
    """
    Map detected kinds to recovery categories, deduplicated, in
    application order. Kinds without a recovery category are ignored.
    """
    wanted = {KIND_TO_RECOVERY[k] for k in kinds if k in KIND_TO_RECOVERY}
    return [k for k in APPLICATION_ORDER if k in wanted]


class RepairOrchestrator:
    """
    Stateless across requests; one instance may serve concurrent callers.
    """

    def __init__(
        self,
        config: Optional[RepairerConfig] = None,
        emitter: Optional[RepairEventEmitter] = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._emitter = emitter or NullEventEmitter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def repair(
        self,
        pdf_bytes: bytes,
        *,
        repair_id: Optional[str] = None,
        requested: Sequence[Union[ErrorKind, str]] = (),
    ) -> RepairResult:
        """
        Validate, classify and repair ``pdf_bytes``.

        ``requested`` adds content-level categories (CORRUPTED_TEXT,
        CORRUPTED_IMAGE, BROKEN_ENCRYPTION) that the structural scans
        cannot detect. On a valid input only the requested categories run.

        Never raises; rejections come back as a REJECTED result.
        """
        repair_id = repair_id or str(uuid4())
        self._emit(repair_id, RepairEventType.REPAIR_STARTED)

        try:
            data = self._check_preconditions(pdf_bytes)
            requested_kinds = [ErrorKind(k) for k in requested]
        except ValueError as exc:
            # RepairPreconditionError, or an unknown requested kind.
            state = getattr(exc, "state", RepairState.INIT)
            logger.info("Repair %s rejected: %s", repair_id, exc)
            self._emit(
                repair_id,
                RepairEventType.INPUT_REJECTED,
                {"state": state.value, "reason": str(exc)},
            )
            result = RepairResult(
                is_valid=False,
                state=RepairState.REJECTED,
                error=str(exc),
            )
            self._emit_completed(repair_id, result)
            return result

        # --------------------------------------------------------------
        # VALIDATE_INPUT
        # --------------------------------------------------------------
        initial = validate_structure(data, self._config)
        self._emit(
            repair_id,
            RepairEventType.VALIDATION_COMPLETED,
            {"valid": initial.valid, "errors": len(initial.errors)},
        )

        if initial.valid and not requested_kinds:
            result = RepairResult(
                is_valid=True,
                state=RepairState.DONE_NOCHANGE,
                repaired_bytes=data,
                initial_validation=initial,
                final_validation=initial,
                diagnostics=describe_errors(initial.advisories),
                repair_details=RepairDetails(
                    original_size=len(data),
                    repaired_size=len(data),
                ),
                parser_verification=self._verify(data),
            )
            self._emit_completed(repair_id, result)
            return result

        corruption = check_corruption(data, self._config)
        self._emit(
            repair_id,
            RepairEventType.CLASSIFICATION_COMPLETED,
            {
                "severity": corruption.severity.value,
                "repair_strategy": list(corruption.repair_strategy),
            },
        )

        # --------------------------------------------------------------
        # APPLY_REPAIR
        # --------------------------------------------------------------
        kinds = self._detected_kinds(initial, corruption, requested_kinds)
        repaired, applied = self._apply(repair_id, data, kinds)

        # --------------------------------------------------------------
        # REVALIDATE
        # --------------------------------------------------------------
        final = validate_structure(repaired, self._config)
        self._emit(
            repair_id,
            RepairEventType.REVALIDATION_COMPLETED,
            {"valid": final.valid, "errors": len(final.errors)},
        )

        xref_rebuilt = any(
            a.success and a.error_kind is ErrorKind.MISSING_XREF for a in applied
        )

        result = RepairResult(
            is_valid=final.valid,
            state=RepairState.DONE,
            repaired_bytes=repaired,
            partially_completed=any(not a.success for a in applied),
            applied_strategies=applied,
            initial_validation=initial,
            corruption=corruption,
            final_validation=final,
            diagnostics=describe_errors(
                [*initial.errors, *initial.advisories, *corruption.issues]
            ),
            repair_details=RepairDetails(
                original_size=len(data),
                repaired_size=len(repaired),
                repair_actions=[a.strategy for a in applied if a.success],
                recovered_objects=(
                    len(scan_objects(repaired)) if xref_rebuilt else 0
                ),
            ),
            parser_verification=self._verify(repaired),
        )
        self._emit_completed(repair_id, result)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_preconditions(self, pdf_bytes: bytes) -> bytes:
        # INIT
        if not isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
            raise RepairPreconditionError(
                f"Invalid input: expected bytes, got {type(pdf_bytes).__name__}",
                RepairState.INIT,
            )
        data = bytes(pdf_bytes)

        if not data:
            raise RepairPreconditionError(
                "Invalid input: empty buffer",
                RepairState.INIT,
            )

        floor = self._config.MIN_PDF_SIZE_BYTES
        if len(data) < floor:
            raise RepairPreconditionError(
                f"Invalid input: buffer too small ({len(data)} < {floor} bytes)",
                RepairState.INIT,
            )

        # VALIDATE_INPUT
        if not data.startswith(PDF_SIGNATURE):
            raise RepairPreconditionError(
                "Invalid PDF: missing %PDF- signature",
                RepairState.VALIDATE_INPUT,
            )

        return data

    def _detected_kinds(
        self,
        initial: ValidationResult,
        corruption: CorruptionReport,
        requested: List[ErrorKind],
    ) -> List[ErrorKind]:
        if initial.valid:
            return select_recovery_kinds(requested)

        kinds = [e.kind for e in initial.errors]
        kinds.extend(i.kind for i in corruption.issues)
        kinds.extend(requested)

        if self._config.STRIP_ENCRYPTION_ON_FAILURE:
            kinds.extend(
                a.kind
                for a in initial.advisories
                if a.kind is ErrorKind.BROKEN_ENCRYPTION
            )

        return select_recovery_kinds(kinds)

    def _apply(
        self,
        repair_id: str,
        data: bytes,
        kinds: List[ErrorKind],
    ) -> Tuple[bytes, List[AppliedStrategy]]:
        applied: List[AppliedStrategy] = []
        current = data

        for kind in kinds:
            if kind is ErrorKind.MISSING_XREF:
                continue
            current = self._run(repair_id, current, kind, applied)

        shifted = current != data and not XREF_STREAM_RE.search(current)
        if ErrorKind.MISSING_XREF in kinds or shifted:
            current = self._run(repair_id, current, ErrorKind.MISSING_XREF, applied)

        return current, applied

    def _run(
        self,
        repair_id: str,
        data: bytes,
        kind: ErrorKind,
        applied: List[AppliedStrategy],
    ) -> bytes:
        outcome = apply_recovery_strategy(data, kind, config=self._config)
        applied.append(
            AppliedStrategy(
                error_kind=kind,
                strategy=outcome.applied_strategy,
                success=outcome.success,
                message=outcome.message,
            )
        )
        self._emit(
            repair_id,
            RepairEventType.STRATEGY_APPLIED,
            {
                "error_kind": kind.value,
                "strategy": outcome.applied_strategy,
                "success": outcome.success,
            },
        )
        return outcome.recovered_data

    def _verify(self, data: bytes) -> Optional[ParserVerification]:
        if not self._config.ENABLE_PARSER_VERIFICATION:
            return None
        return verify_parseable(data)

    def _emit_completed(self, repair_id: str, result: RepairResult) -> None:
        self._emit(
            repair_id,
            RepairEventType.REPAIR_COMPLETED,
            {
                "state": result.state.value,
                "is_valid": result.is_valid,
                "partially_completed": result.partially_completed,
            },
        )

    def _emit(
        self,
        repair_id: str,
        event_type: RepairEventType,
        details: Optional[dict] = None,
    ) -> None:
        try:
            self._emitter.emit(
                RepairEvent(
                    repair_id=repair_id,
                    event_type=event_type,
                    details=details,
                )
            )
        except Exception as exc:
            # Observability must never break a repair.
            logger.debug("Event emission failed for %s: %s", event_type.value, exc)


def repair(
    pdf_bytes: bytes,
    config: Optional[RepairerConfig] = None,
    *,
    requested: Sequence[Union[ErrorKind, str]] = (),
    emitter: Optional[RepairEventEmitter] = None,
) -> RepairResult:
    """Convenience entry point: one-off orchestrator per call."""
    return RepairOrchestrator(config=config, emitter=emitter).repair(
        pdf_bytes,
        requested=requested,
    )
