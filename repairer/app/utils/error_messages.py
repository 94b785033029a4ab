"""
Human-readable error catalog.

Maps every ErrorKind to a user-facing message, a default severity and a
repair recommendation. Messages never contain internal exception detail.
"""

from typing import Iterable, List, Optional, Tuple

from repairer.app.schemas.errors import ErrorKind, StructuralError
from repairer.app.schemas.corruption import SeverityLevel
from repairer.app.schemas.recovery import ErrorDiagnostic


_ERROR_MESSAGES = {
    # Header
    ErrorKind.MISSING_HEADER: (
        "The PDF header is missing. This indicates a severely corrupted "
        "or invalid PDF file."
    ),
    ErrorKind.INVALID_VERSION: (
        "The PDF version number is invalid. The file may have been "
        "corrupted during creation or transfer."
    ),
    ErrorKind.MALFORMED_HEADER: (
        "The PDF header is malformed. This may affect the file's "
        "compatibility with PDF readers."
    ),
    # Cross-reference table
    ErrorKind.MISSING_XREF: (
        "The cross-reference table is missing. This will affect the "
        "PDF's internal structure."
    ),
    ErrorKind.INVALID_XREF_ENTRY: (
        "One or more cross-reference entries are invalid. This may cause "
        "issues with object references."
    ),
    ErrorKind.XREF_OVERFLOW: (
        "The cross-reference table contains too many entries. This may "
        "indicate file corruption."
    ),
    # Streams
    ErrorKind.MISMATCHED_STREAM: (
        "Stream begin/end markers are mismatched. This affects embedded "
        "content integrity."
    ),
    ErrorKind.INVALID_STREAM_LENGTH: (
        "Stream length is invalid. This may cause issues with content "
        "extraction."
    ),
    ErrorKind.CORRUPTED_STREAM_DATA: (
        "Stream data is corrupted. Some content may be unreadable or missing."
    ),
    # Objects
    ErrorKind.INVALID_OBJECT: (
        "Invalid object structure detected. This affects internal PDF "
        "organization."
    ),
    ErrorKind.MISSING_OBJECT: (
        "Required PDF object is missing. This may cause rendering issues."
    ),
    ErrorKind.DUPLICATE_OBJECT: (
        "Duplicate object IDs found. This creates reference ambiguity."
    ),
    # Content
    ErrorKind.CORRUPTED_TEXT: (
        "Text content is corrupted. Some text may be unreadable."
    ),
    ErrorKind.CORRUPTED_IMAGE: (
        "Image data is corrupted. Some images may not display correctly."
    ),
    ErrorKind.CORRUPTED_FONT: (
        "Font data is corrupted. This may affect text rendering."
    ),
    # Document structure
    ErrorKind.BROKEN_TREE: (
        "Document structure tree is broken. This affects document navigation."
    ),
    ErrorKind.INVALID_PAGE_TREE: (
        "Page tree is invalid. This may cause issues with page access."
    ),
    ErrorKind.BROKEN_LINKS: (
        "Internal links are broken. Navigation within the document may fail."
    ),
    # Encryption
    ErrorKind.BROKEN_ENCRYPTION: (
        "PDF encryption is broken. This affects secure access to the document."
    ),
    ErrorKind.INVALID_PASSWORD: (
        "Password protection is corrupted. This prevents normal document "
        "access."
    ),
    # Metadata
    ErrorKind.CORRUPTED_METADATA: (
        "Document metadata is corrupted. This affects document properties."
    ),
    ErrorKind.INVALID_PERMISSIONS: (
        "Permission settings are invalid. This affects document usage rights."
    ),
}

_UNKNOWN_MESSAGE = "Unknown PDF error occurred."

_SEVERITY_BY_KIND = {
    ErrorKind.MISSING_HEADER: SeverityLevel.CRITICAL,
    ErrorKind.BROKEN_ENCRYPTION: SeverityLevel.CRITICAL,
    ErrorKind.MISSING_XREF: SeverityLevel.CRITICAL,
    ErrorKind.INVALID_OBJECT: SeverityLevel.HIGH,
    ErrorKind.CORRUPTED_STREAM_DATA: SeverityLevel.HIGH,
    ErrorKind.INVALID_PAGE_TREE: SeverityLevel.HIGH,
    ErrorKind.CORRUPTED_TEXT: SeverityLevel.MEDIUM,
    ErrorKind.CORRUPTED_IMAGE: SeverityLevel.MEDIUM,
    ErrorKind.BROKEN_LINKS: SeverityLevel.MEDIUM,
    ErrorKind.CORRUPTED_METADATA: SeverityLevel.LOW,
    ErrorKind.INVALID_PERMISSIONS: SeverityLevel.LOW,
}

_RECOMMENDATIONS = {
    ErrorKind.MISSING_HEADER: "Reconstruct PDF header with correct version",
    ErrorKind.MISSING_XREF: "Rebuild cross-reference table from document objects",
    ErrorKind.MISMATCHED_STREAM: "Fix stream delimiters and recalculate lengths",
    ErrorKind.CORRUPTED_TEXT: "Extract and rewrite text content",
    ErrorKind.CORRUPTED_IMAGE: "Recover image data or remove corrupted images",
    ErrorKind.BROKEN_ENCRYPTION: "Remove encryption and resave document",
}

_DEFAULT_RECOMMENDATION = "Analyze and repair affected components"


def get_error_message(kind: ErrorKind) -> str:
    return _ERROR_MESSAGES.get(kind, _UNKNOWN_MESSAGE)


def get_detailed_error_message(
    kind: ErrorKind, details: Optional[str] = None
) -> str:
    """Catalog message, with a ``Details:`` line appended when given."""
    base = get_error_message(kind)
    if not details:
        return base
    return f"{base}\nDetails: {details}"


def format_error_messages(
    errors: Iterable[Tuple[ErrorKind, Optional[str]]],
) -> List[str]:
    return [get_detailed_error_message(kind, details) for kind, details in errors]


def get_severity_level(kind: ErrorKind) -> SeverityLevel:
    return _SEVERITY_BY_KIND.get(kind, SeverityLevel.MEDIUM)


def get_repair_recommendation(kind: ErrorKind) -> str:
    return _RECOMMENDATIONS.get(kind, _DEFAULT_RECOMMENDATION)


def describe_errors(errors: Iterable[StructuralError]) -> List[ErrorDiagnostic]:
    """
    Catalog view of detector findings, in input order.

    Findings repeating an earlier (kind, message) pair are dropped.
    """
    unique: List[StructuralError] = []
    seen = set()
    for error in errors:
        key = (error.kind, error.message)
        if key not in seen:
            seen.add(key)
            unique.append(error)

    messages = format_error_messages((e.kind, e.message) for e in unique)
    return [
        ErrorDiagnostic(
            kind=error.kind,
            message=message,
            severity=get_severity_level(error.kind),
            recommendation=get_repair_recommendation(error.kind),
        )
        for error, message in zip(unique, messages)
    ]
