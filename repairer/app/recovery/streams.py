"""
Stream delimiter correction.

Three repairs, applied to stream structure only:

1. A ``stream`` whose object ends without ``endstream`` is closed just
   before its ``endobj``.
2. ``stream`` and ``endstream`` get the end-of-line sequence they are
   missing.
3. Every direct ``/Length`` is recomputed from the actual body size.

Stream bodies are never modified. Streams that already carry correct
delimiters and lengths come out byte-identical.
"""

from __future__ import annotations

import logging

from repairer.app.recovery.transform import TransformOutcome, never_raises
from repairer.app.utils.pdf_bytes import (
    find_unterminated_streams,
    rewrite_streams,
)

logger = logging.getLogger(__name__)


def close_unterminated_streams(data: bytes) -> bytes:
    offsets = find_unterminated_streams(data)
    if not offsets:
        return data

    # Back to front so earlier offsets stay valid.
    for pos in reversed(offsets):
        endobj = data.find(b"endobj", pos)
        cut = endobj
        while cut > pos and data[cut - 1:cut] in (b"\n", b"\r"):
            cut -= 1
        data = data[:cut] + b"\nendstream\n" + data[endobj:]

    logger.debug("Closed %d unterminated stream(s)", len(offsets))
    return data


@never_raises
def fix_stream_delimiters(data: bytes) -> TransformOutcome:
    closed = close_unterminated_streams(data)
    recovered = rewrite_streams(
        closed,
        ensure_delimiters=True,
        recalculate_lengths=True,
    )
    return TransformOutcome(recovered_data=recovered, success=True)
