"""
Content-level recovery: text sanitization and corrupted image removal.

Both transforms are heuristics, not a PDF string-object parser. They only
ever rewrite structural regions and stream bodies that are unfiltered
and predominantly printable; binary bodies are copied through unchanged.
"""

from __future__ import annotations

import logging
import re

from repairer.app.recovery.transform import TransformOutcome, never_raises
from repairer.app.utils.pdf_bytes import (
    find_balanced_dictionary,
    find_stream_spans,
    is_binary_body,
    rewrite_streams,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

CONTROL_CHARS_RE = re.compile(rb"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

# A '<...>' string that is not a dictionary delimiter and holds something
# other than hex digits and whitespace.
BROKEN_HEX_STRING_RE = re.compile(
    rb"(?<!<)<(?!<)([^<>]*[^0-9A-Fa-f\s<>][^<>]*)>(?!>)"
)

# Three-digit escapes outside the octal byte range \000-\377.
MALFORMED_OCTAL_RE = re.compile(rb"\\(?![0-3][0-7]{2})\d{3}")


def sanitize_text(segment: bytes) -> bytes:
    segment = CONTROL_CHARS_RE.sub(b"", segment)
    segment = BROKEN_HEX_STRING_RE.sub(rb"(\1)", segment)
    return MALFORMED_OCTAL_RE.sub(b"", segment)


def _sanitize_textual_body(body: bytes, dictionary: bytes) -> bytes:
    if is_binary_body(dictionary, body):
        return body
    return sanitize_text(body)


@never_raises
def recover_text_content(data: bytes) -> TransformOutcome:
    recovered = rewrite_streams(
        data,
        body_fn=_sanitize_textual_body,
        structure_fn=sanitize_text,
    )
    return TransformOutcome(recovered_data=recovered, success=True)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

IMAGE_SUBTYPE_RE = re.compile(rb"/Subtype\s*/Image(?![A-Za-z])")

IMAGE_STUB = (
    b"<< /Type /XObject /Subtype /Image /Width 0 /Height 0 "
    b"/BitsPerComponent 8 /ColorSpace /DeviceRGB /Length 0 >>\n"
    b"stream\nendstream"
)


@never_raises
def remove_corrupted_images(data: bytes) -> TransformOutcome:
    """
    Replace every image XObject's dictionary and stream with a zero-size
    RGB stub. Original image data is discarded.
    """
    out = bytearray()
    cursor = 0
    replaced = 0

    for span in find_stream_spans(data):
        if not IMAGE_SUBTYPE_RE.search(data, span.dict_start, span.keyword_start):
            continue

        bounds = find_balanced_dictionary(data, span.dict_start)
        if bounds is None or bounds[1] > span.keyword_start:
            logger.debug(
                "Image stream at offset %d has no balanced dictionary; kept",
                span.keyword_start,
            )
            continue

        out += data[cursor:bounds[0]]
        out += IMAGE_STUB
        cursor = span.end
        replaced += 1

    out += data[cursor:]
    logger.debug("Replaced %d image stream(s) with stubs", replaced)
    return TransformOutcome(recovered_data=bytes(out), success=True)
