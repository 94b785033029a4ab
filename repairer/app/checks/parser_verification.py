"""
Parser verification.

Opens a buffer with a full PDF parser (pikepdf / qpdf) to confirm that
repaired output is readable by real tooling. The structural scans never
build an object graph; this check is the only place one is built.

Diagnostic only. The result MUST NOT gate the repair outcome.

Error handling policy:
    Only pikepdf.PdfError is caught: it is what pikepdf raises for
    malformed, unparsable or password-protected documents. Anything else
    is a logic error in this code and propagates.
"""

from __future__ import annotations

import logging
from io import BytesIO

import pikepdf

from repairer.app.schemas.recovery import ParserVerification

logger = logging.getLogger(__name__)


def verify_parseable(pdf_bytes: bytes) -> ParserVerification:
    try:
        with pikepdf.open(BytesIO(pdf_bytes)) as pdf:
            return ParserVerification(
                parseable=True,
                pdf_version=str(pdf.pdf_version),
                page_count=len(pdf.pages),
            )
    except pikepdf.PdfError as exc:
        logger.debug("Parser verification failed: %s", exc)
        return ParserVerification(parseable=False, error=str(exc))
