"""
Structural error taxonomy.

Defines the closed set of error kinds reported by the validator and the
corruption classifier, and the canonical StructuralError object carrying
one observation.

Kinds are tags, not exception types. They travel end to end: the
orchestrator selects recovery strategies from kinds and never re-derives
a category from message prose.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import ConfigDict


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """
    Closed enumeration of structural and content error categories.

    New entries must be added to the message catalog in
    ``repairer.app.utils.error_messages`` as well.
    """

    # Header
    MISSING_HEADER = "MISSING_HEADER"
    INVALID_VERSION = "INVALID_VERSION"
    MALFORMED_HEADER = "MALFORMED_HEADER"

    # Cross-reference table
    MISSING_XREF = "MISSING_XREF"
    INVALID_XREF_ENTRY = "INVALID_XREF_ENTRY"
    XREF_OVERFLOW = "XREF_OVERFLOW"

    # Streams
    MISMATCHED_STREAM = "MISMATCHED_STREAM"
    INVALID_STREAM_LENGTH = "INVALID_STREAM_LENGTH"
    CORRUPTED_STREAM_DATA = "CORRUPTED_STREAM_DATA"

    # Objects
    INVALID_OBJECT = "INVALID_OBJECT"
    MISSING_OBJECT = "MISSING_OBJECT"
    DUPLICATE_OBJECT = "DUPLICATE_OBJECT"

    # Content
    CORRUPTED_TEXT = "CORRUPTED_TEXT"
    CORRUPTED_IMAGE = "CORRUPTED_IMAGE"
    CORRUPTED_FONT = "CORRUPTED_FONT"

    # Document structure
    BROKEN_TREE = "BROKEN_TREE"
    INVALID_PAGE_TREE = "INVALID_PAGE_TREE"
    BROKEN_LINKS = "BROKEN_LINKS"

    # Encryption
    BROKEN_ENCRYPTION = "BROKEN_ENCRYPTION"
    INVALID_PASSWORD = "INVALID_PASSWORD"

    # Metadata
    CORRUPTED_METADATA = "CORRUPTED_METADATA"
    INVALID_PERMISSIONS = "INVALID_PERMISSIONS"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# ---------------------------------------------------------------------------
# Canonical error object (PUBLIC, FROZEN)
# ---------------------------------------------------------------------------


class ByteLocation(BaseModel):
    """
    Byte range within the inspected buffer.

    Best-effort: many checks are pattern based and cannot always
    pinpoint an offset.
    """

    offset: int = Field(..., ge=0, description="Byte offset of the region start")
    length: int = Field(..., ge=0, description="Length of the region in bytes")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class StructuralError(BaseModel):
    """
    A single structural observation about a PDF buffer.
    """

    kind: ErrorKind = Field(
        ...,
        description="Error category tag",
    )

    message: str = Field(
        ...,
        description="Human-readable description of the observation",
    )

    location: Optional[ByteLocation] = Field(
        None,
        description="Optional byte range the observation refers to",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def __str__(self) -> str:
        return self.message
