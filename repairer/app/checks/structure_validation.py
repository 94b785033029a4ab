"""
Structure Validator.

Deterministic, read-only scan of a PDF byte buffer for the mandatory
structural elements:

    header   %PDF-<digit>.<digit> within the leading scan window
    xref     'startxref' marker present, subsection counts within bounds
    streams  every stream region within the per-stream size ceiling

Non-gating advisories (missing %%EOF, missing trailer, /Encrypt present,
duplicate object numbers) are reported alongside but never affect
``valid``.

Error handling policy:
    The public entry point never raises for malformed input. Any
    unexpected exception is converted into a single UNKNOWN_ERROR result
    with valid=False. The individual checks do not catch exceptions
    themselves.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import List, Optional

from repairer.app.config import RepairerConfig, DEFAULT_CONFIG
from repairer.app.schemas.errors import (
    ByteLocation,
    ErrorKind,
    StructuralError,
)
from repairer.app.schemas.validation import (
    CheckOutcome,
    ValidationDetails,
    ValidationResult,
)
from repairer.app.utils.pdf_bytes import scan_objects

logger = logging.getLogger(__name__)


PDF_HEADER_RE = re.compile(rb"%PDF-\d\.\d")
XREF_SUBSECTION_RE = re.compile(rb"(?<![A-Za-z])xref\s+\d+\s+(\d+)")
STREAM_REGION_RE = re.compile(rb"(?<![A-Za-z])stream\s*(.*?)\s*endstream", re.DOTALL)
XREF_STREAM_RE = re.compile(rb"/Type\s*/XRef(?![A-Za-z])")

EOF_SCAN_BYTES = 1024


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

def validate_header(
    pdf_bytes: bytes, config: RepairerConfig = DEFAULT_CONFIG
) -> CheckOutcome:
    """
    Valid iff ``%PDF-<digit>.<digit>`` appears within the scan window.

    The window bounds the work done on pathological input; buffers
    shorter than the window are scanned whole.
    """
    window = pdf_bytes[: config.HEADER_SCAN_BYTES]

    if PDF_HEADER_RE.search(window):
        return CheckOutcome(valid=True)

    signature_pos = window.find(b"%PDF-")
    if signature_pos != -1:
        return CheckOutcome(
            valid=False,
            error=StructuralError(
                kind=ErrorKind.INVALID_VERSION,
                message=(
                    "Invalid PDF header: Missing or malformed PDF version "
                    "signature"
                ),
                location=ByteLocation(offset=signature_pos, length=8),
            ),
        )

    return CheckOutcome(
        valid=False,
        error=StructuralError(
            kind=ErrorKind.MISSING_HEADER,
            message="Invalid PDF header: Missing or malformed PDF version signature",
            location=ByteLocation(offset=0, length=len(window)),
        ),
    )


def validate_xref(
    pdf_bytes: bytes, config: RepairerConfig = DEFAULT_CONFIG
) -> CheckOutcome:
    """
    Valid iff 'startxref' is present and no xref subsection declares more
    than MAX_XREF_ENTRIES entries.
    """
    if pdf_bytes.rfind(b"startxref") == -1:
        return CheckOutcome(
            valid=False,
            error=StructuralError(
                kind=ErrorKind.MISSING_XREF,
                message="Invalid PDF structure: Missing startxref marker",
            ),
        )

    for match in XREF_SUBSECTION_RE.finditer(pdf_bytes):
        count = int(match.group(1))
        if count > config.MAX_XREF_ENTRIES:
            return CheckOutcome(
                valid=False,
                error=StructuralError(
                    kind=ErrorKind.XREF_OVERFLOW,
                    message=(
                        f"Invalid xref table: Too many entries "
                        f"({count} > {config.MAX_XREF_ENTRIES})"
                    ),
                    location=ByteLocation(
                        offset=match.start(),
                        length=match.end() - match.start(),
                    ),
                ),
            )

    return CheckOutcome(valid=True)


def validate_streams(
    pdf_bytes: bytes, config: RepairerConfig = DEFAULT_CONFIG
) -> CheckOutcome:
    """
    Valid iff every ``stream ... endstream`` region is within the
    per-stream ceiling. A buffer without streams is valid.
    """
    ceiling = config.max_stream_size_bytes

    for index, match in enumerate(STREAM_REGION_RE.finditer(pdf_bytes), start=1):
        size = match.end() - match.start()
        if size > ceiling:
            return CheckOutcome(
                valid=False,
                error=StructuralError(
                    kind=ErrorKind.INVALID_STREAM_LENGTH,
                    message=(
                        f"Object stream {index} exceeds maximum allowed size "
                        f"({size} > {ceiling} bytes)"
                    ),
                    location=ByteLocation(offset=match.start(), length=size),
                ),
            )

    return CheckOutcome(valid=True)


# ---------------------------------------------------------------------------
# Advisories (non-gating)
# ---------------------------------------------------------------------------

def collect_advisories(pdf_bytes: bytes) -> List[StructuralError]:
    advisories: List[StructuralError] = []

    tail_start = max(len(pdf_bytes) - EOF_SCAN_BYTES, 0)
    if pdf_bytes.find(b"%%EOF", tail_start) == -1:
        advisories.append(
            StructuralError(
                kind=ErrorKind.INVALID_OBJECT,
                message="Missing %%EOF marker near the end of the file",
                location=ByteLocation(
                    offset=tail_start,
                    length=len(pdf_bytes) - tail_start,
                ),
            )
        )

    if b"trailer" not in pdf_bytes and not XREF_STREAM_RE.search(pdf_bytes):
        advisories.append(
            StructuralError(
                kind=ErrorKind.INVALID_OBJECT,
                message="Missing trailer dictionary",
            )
        )

    encrypt_pos = pdf_bytes.find(b"/Encrypt")
    if encrypt_pos != -1:
        advisories.append(
            StructuralError(
                kind=ErrorKind.BROKEN_ENCRYPTION,
                message="Document declares an /Encrypt entry",
                location=ByteLocation(offset=encrypt_pos, length=8),
            )
        )

    counts = Counter(
        (obj.number, obj.generation) for obj in scan_objects(pdf_bytes)
    )
    duplicates = sorted(key for key, n in counts.items() if n > 1)
    if duplicates:
        labels = ", ".join(f"{num} {gen}" for num, gen in duplicates)
        advisories.append(
            StructuralError(
                kind=ErrorKind.DUPLICATE_OBJECT,
                message=f"Duplicate object definitions: {labels}",
            )
        )

    return advisories


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def validate_structure(
    pdf_bytes: bytes, config: Optional[RepairerConfig] = None
) -> ValidationResult:
    """
    Run the header, xref and stream checks and aggregate the outcome.

    Never raises for malformed input.
    """
    config = config or DEFAULT_CONFIG

    try:
        if not isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"expected a bytes-like buffer, got {type(pdf_bytes).__name__}"
            )
        data = bytes(pdf_bytes)

        if not data:
            header = validate_header(data, config)
            return ValidationResult(
                valid=False,
                errors=[header.error],
                details=ValidationDetails(
                    header_ok=False,
                    xref_ok=False,
                    stream_ok=False,
                ),
            )

        header = validate_header(data, config)
        xref = validate_xref(data, config)
        streams = validate_streams(data, config)

        errors = [
            outcome.error
            for outcome in (header, xref, streams)
            if outcome.error is not None
        ]
        advisories = collect_advisories(data)

        return ValidationResult(
            valid=header.valid and xref.valid and streams.valid,
            errors=errors,
            warnings=[a.message for a in advisories],
            advisories=advisories,
            details=ValidationDetails(
                header_ok=header.valid,
                xref_ok=xref.valid,
                stream_ok=streams.valid,
            ),
        )

    except Exception as exc:
        logger.warning("Fatal error during PDF validation: %s", exc)
        return ValidationResult(
            valid=False,
            errors=[
                StructuralError(
                    kind=ErrorKind.UNKNOWN_ERROR,
                    message=f"Fatal error during PDF validation: {exc}",
                )
            ],
            details=ValidationDetails(
                header_ok=False,
                xref_ok=False,
                stream_ok=False,
            ),
        )
