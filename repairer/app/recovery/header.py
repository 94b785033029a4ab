"""
Header reconstruction.

Prepends a canonical two-line header: the version line and a binary
marker comment (four bytes above 0x7F) that tells transfer tools the file
is binary. A partially present version token is not detected or
preserved; an old header line left behind becomes a comment.
"""

from __future__ import annotations

from repairer.app.recovery.transform import TransformOutcome, never_raises

PDF_HEADER_TEMPLATE = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n"


@never_raises
def recover_header(data: bytes) -> TransformOutcome:
    return TransformOutcome(
        recovered_data=PDF_HEADER_TEMPLATE + data,
        success=True,
    )
