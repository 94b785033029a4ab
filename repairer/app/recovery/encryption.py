"""
Encryption removal.

Drops inline ``/Encrypt << ... >>`` dictionaries and ``/Encrypt n g R``
references from structural regions. Does not check whether the rest of
the document still depends on encryption: filtered stream bodies stay
encrypted and the orphaned encryption dictionary object is left in place.
"""

from __future__ import annotations

import re

from repairer.app.recovery.transform import TransformOutcome, never_raises
from repairer.app.utils.pdf_bytes import (
    find_balanced_dictionary,
    rewrite_streams,
)

ENCRYPT_REFERENCE_RE = re.compile(rb"/Encrypt\s+\d+\s+\d+\s+R")
ENCRYPT_INLINE_RE = re.compile(rb"/Encrypt\s*(?=<<)")


def strip_encrypt_entries(segment: bytes) -> bytes:
    segment = ENCRYPT_REFERENCE_RE.sub(b"", segment)

    out = bytearray()
    cursor = 0
    for match in ENCRYPT_INLINE_RE.finditer(segment):
        if match.start() < cursor:
            continue
        bounds = find_balanced_dictionary(segment, match.end())
        if bounds is None:
            break
        out += segment[cursor:match.start()]
        cursor = bounds[1]
    out += segment[cursor:]
    return bytes(out)


@never_raises
def remove_encryption(data: bytes) -> TransformOutcome:
    recovered = rewrite_streams(data, structure_fn=strip_encrypt_entries)
    return TransformOutcome(recovered_data=recovered, success=True)
