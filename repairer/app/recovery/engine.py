"""
Recovery Engine dispatch.

``apply_recovery_strategy`` maps one ErrorKind to one byte-level
transform and wraps the outcome in a RecoveryResult.

CONTRACT:
- never raises past this boundary
- an unsupported kind returns success=False, applied_strategy="none",
  and the input unchanged
- any exception raised by a transform yields success=False,
  applied_strategy="failed", message "Recovery failed: <cause>", and the
  original input
- when ``config`` is given, its limits (the xref entry ceiling) are
  passed to the transform
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple, Union

from repairer.app.config import RepairerConfig
from repairer.app.recovery.content import (
    recover_text_content,
    remove_corrupted_images,
)
from repairer.app.recovery.encryption import remove_encryption
from repairer.app.recovery.header import recover_header
from repairer.app.recovery.streams import fix_stream_delimiters
from repairer.app.recovery.transform import Transform
from repairer.app.recovery.xref import rebuild_xref
from repairer.app.schemas.errors import ErrorKind
from repairer.app.schemas.recovery import (
    RecoveryResult,
    STRATEGY_FAILED,
    STRATEGY_NONE,
)

logger = logging.getLogger(__name__)


STRATEGY_HEADER = "Header reconstruction"
STRATEGY_XREF = "Cross-reference table rebuild"
STRATEGY_STREAMS = "Stream delimiter correction"
STRATEGY_TEXT = "Text content recovery"
STRATEGY_IMAGE = "Image data recovery"
STRATEGY_ENCRYPTION = "Encryption removal"

# ErrorKind -> (strategy label, transform)
RECOVERY_TRANSFORMS: Dict[ErrorKind, Tuple[str, Transform]] = {
    ErrorKind.MISSING_HEADER: (STRATEGY_HEADER, recover_header),
    ErrorKind.MISSING_XREF: (STRATEGY_XREF, rebuild_xref),
    ErrorKind.MISMATCHED_STREAM: (STRATEGY_STREAMS, fix_stream_delimiters),
    ErrorKind.CORRUPTED_TEXT: (STRATEGY_TEXT, recover_text_content),
    ErrorKind.CORRUPTED_IMAGE: (STRATEGY_IMAGE, remove_corrupted_images),
    ErrorKind.BROKEN_ENCRYPTION: (STRATEGY_ENCRYPTION, remove_encryption),
}

MESSAGE_SUCCESS = "Recovery completed successfully"
MESSAGE_PARTIAL = "Recovery partially completed with issues"
MESSAGE_UNSUPPORTED = "No recovery strategy available for this error type"


def _resolve_kind(error_kind: Union[ErrorKind, str]) -> Optional[ErrorKind]:
    if isinstance(error_kind, ErrorKind):
        return error_kind
    try:
        return ErrorKind(error_kind)
    except ValueError:
        return None


def _transform_options(
    kind: ErrorKind, config: Optional[RepairerConfig]
) -> Dict[str, int]:
    if config is not None and kind is ErrorKind.MISSING_XREF:
        return {"max_entries": config.MAX_XREF_ENTRIES}
    return {}


def _original_bytes(pdf_bytes: object) -> bytes:
    if isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
        return bytes(pdf_bytes)
    return b""


def apply_recovery_strategy(
    pdf_bytes: bytes,
    error_kind: Union[ErrorKind, str],
    details: Optional[str] = None,
    *,
    config: Optional[RepairerConfig] = None,
) -> RecoveryResult:
    kind = _resolve_kind(error_kind)

    try:
        if not isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"expected a bytes-like buffer, got {type(pdf_bytes).__name__}"
            )
        data = bytes(pdf_bytes)

        if kind is None or kind not in RECOVERY_TRANSFORMS:
            logger.debug("No recovery strategy for %r", error_kind)
            return RecoveryResult(
                success=False,
                message=MESSAGE_UNSUPPORTED,
                recovered_data=data,
                applied_strategy=STRATEGY_NONE,
                error_kind=kind,
            )

        strategy, transform = RECOVERY_TRANSFORMS[kind]
        if details:
            logger.debug("Applying %s for %s: %s", strategy, kind.value, details)
        else:
            logger.debug("Applying %s for %s", strategy, kind.value)

        outcome = transform(data, **_transform_options(kind, config))

        return RecoveryResult(
            success=outcome.success,
            message=MESSAGE_SUCCESS if outcome.success else MESSAGE_PARTIAL,
            recovered_data=outcome.recovered_data,
            applied_strategy=strategy,
            error_kind=kind,
        )

    except Exception as exc:
        logger.warning("Recovery failed for %r: %s", error_kind, exc)
        return RecoveryResult(
            success=False,
            message=f"Recovery failed: {exc}",
            recovered_data=_original_bytes(pdf_bytes),
            applied_strategy=STRATEGY_FAILED,
            error_kind=kind,
        )
