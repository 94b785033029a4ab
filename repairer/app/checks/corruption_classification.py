"""
Corruption Classifier.

Pattern-based diagnosis that goes beyond pass/fail: each region (header,
cross-reference sections, streams) is checked against a fixed, ordered
list of byte patterns. Findings are aggregated into a CorruptionReport
whose severity and repair strategy list are derived from which buckets
are non-empty.

The pattern tables are module-level tuples of compiled patterns and are
never mutated.

Note on the first stream pattern:
    It matches any stream region. It does not indicate corruption by
    itself; it exists so that any document with streams gets the
    length-recalculation strategy.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from repairer.app.config import RepairerConfig, DEFAULT_CONFIG
from repairer.app.schemas.corruption import CorruptionReport
from repairer.app.schemas.errors import ErrorKind, StructuralError
from repairer.app.utils.pdf_bytes import (
    ENDSTREAM_KEYWORD_RE,
    STREAM_START_RE,
)

logger = logging.getLogger(__name__)


# (pattern, error kind, label)
Pattern = Tuple[re.Pattern, ErrorKind, str]


# ---------------------------------------------------------------------------
# Pattern tables (FROZEN)
# ---------------------------------------------------------------------------

HEADER_PATTERNS: Tuple[Pattern, ...] = (
    (
        re.compile(rb"\A%PDF-(?![1-7]\.\d)"),
        ErrorKind.INVALID_VERSION,
        "version number outside the 1.x-7.x range",
    ),
    (
        re.compile(rb"%PDF-\d\.\d\S{101,}"),
        ErrorKind.MALFORMED_HEADER,
        "excessive content after the version line",
    ),
    (
        re.compile(rb"\A\s+%PDF"),
        ErrorKind.MALFORMED_HEADER,
        "whitespace before the header",
    ),
)

XREF_PATTERNS: Tuple[Pattern, ...] = (
    (
        re.compile(rb"\Axref[ \t]*(?:\r\n|\n|\r)(?!\d+[ \t]+\d+[ \t]*(?:\r\n|\n|\r))"),
        ErrorKind.INVALID_XREF_ENTRY,
        "xref keyword not followed by a subsection header",
    ),
    (
        # Subsection header lines ('123456 2') are not entries.
        re.compile(
            rb"^(?=\d{6})(?!\d{10} \d{5} [fn][ \t\r]*$)(?!\d+ \d+[ \t\r]*$)"
            rb"\d[^\r\n]*",
            re.MULTILINE,
        ),
        ErrorKind.INVALID_XREF_ENTRY,
        "entry not in the 20-byte 'nnnnnnnnnn ggggg n' format",
    ),
)

STREAM_PATTERNS: Tuple[Pattern, ...] = (
    (
        re.compile(rb">>\s*stream.*?endstream", re.DOTALL),
        ErrorKind.INVALID_STREAM_LENGTH,
        "stream lengths require recalculation",
    ),
    (
        re.compile(rb">>\s*stream(?!\r\n|\n|\r)"),
        ErrorKind.MISMATCHED_STREAM,
        "stream keyword not followed by end-of-line",
    ),
    (
        re.compile(rb"(?<![\r\n])endstream"),
        ErrorKind.MISMATCHED_STREAM,
        "endstream keyword not preceded by end-of-line",
    ),
)

XREF_TABLE_MARKER_RE = re.compile(rb"(?:\r\n|\n|\r)xref[ \t]*(?:\r\n|\n|\r)")
XREF_SECTION_RE = re.compile(
    rb"(?<![A-Za-z])xref[ \t]*(?:\r\n|\n|\r).*?(?=trailer|startxref|\Z)",
    re.DOTALL,
)


# ---------------------------------------------------------------------------
# Region checks
# ---------------------------------------------------------------------------

def check_header_corruption(
    pdf_bytes: bytes, config: RepairerConfig = DEFAULT_CONFIG
) -> List[StructuralError]:
    if not pdf_bytes.startswith(b"%PDF-"):
        # Nothing to pattern-match against.
        return [
            StructuralError(
                kind=ErrorKind.MISSING_HEADER,
                message="Missing PDF header",
            )
        ]

    window = pdf_bytes[: config.HEADER_SCAN_BYTES]
    return [
        StructuralError(
            kind=kind,
            message=f"Header corruption detected: {label}",
        )
        for pattern, kind, label in HEADER_PATTERNS
        if pattern.search(window)
    ]


def check_xref_corruption(pdf_bytes: bytes) -> List[StructuralError]:
    if not XREF_TABLE_MARKER_RE.search(pdf_bytes):
        return [
            StructuralError(
                kind=ErrorKind.MISSING_XREF,
                message="Missing cross-reference table",
            )
        ]

    sections = [m.group(0) for m in XREF_SECTION_RE.finditer(pdf_bytes)]
    issues: List[StructuralError] = []

    for pattern, kind, label in XREF_PATTERNS:
        if any(pattern.search(section) for section in sections):
            issues.append(
                StructuralError(
                    kind=kind,
                    message=f"Cross-reference corruption detected: {label}",
                )
            )

    return issues


def check_stream_corruption(pdf_bytes: bytes) -> List[StructuralError]:
    issues: List[StructuralError] = []

    stream_count = len(STREAM_START_RE.findall(pdf_bytes))
    endstream_count = len(ENDSTREAM_KEYWORD_RE.findall(pdf_bytes))

    if stream_count != endstream_count:
        issues.append(
            StructuralError(
                kind=ErrorKind.MISMATCHED_STREAM,
                message=(
                    f"Mismatched stream/endstream pairs: {stream_count} "
                    f"streams vs {endstream_count} endstreams"
                ),
            )
        )

    for pattern, kind, label in STREAM_PATTERNS:
        if pattern.search(pdf_bytes):
            issues.append(
                StructuralError(
                    kind=kind,
                    message=f"Stream corruption detected: {label}",
                )
            )

    return issues


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def check_corruption(
    pdf_bytes: bytes, config: Optional[RepairerConfig] = None
) -> CorruptionReport:
    """
    Classify corruption in ``pdf_bytes``.

    Never raises; severity and strategies are derived from the buckets by
    ``CorruptionReport.from_issues``. Input that cannot be classified at
    all (not bytes-like, or a fatal error) yields
    ``CorruptionReport.unreadable``.
    """
    config = config or DEFAULT_CONFIG

    try:
        if not isinstance(pdf_bytes, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"expected a bytes-like buffer, got {type(pdf_bytes).__name__}"
            )
        data = bytes(pdf_bytes)

        header = check_header_corruption(data, config)
        xref = check_xref_corruption(data)
        streams = check_stream_corruption(data)

        report = CorruptionReport.from_issues(
            header=header,
            xref=xref,
            streams=streams,
        )

    except Exception as exc:
        logger.warning("Fatal error during corruption classification: %s", exc)
        return CorruptionReport.unreadable(
            StructuralError(
                kind=ErrorKind.UNKNOWN_ERROR,
                message=f"Fatal error during corruption classification: {exc}",
            )
        )

    logger.debug(
        "Corruption classified: severity=%s header=%d xref=%d streams=%d",
        report.severity.value,
        len(header),
        len(xref),
        len(streams),
    )
    return report
