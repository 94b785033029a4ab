"""
Byte-level PDF scanning helpers.

Every structural scan in the engine runs on raw bytes with byte regular
expressions. No helper here decodes a buffer as text, so binary stream
payloads (images, compressed fonts) are never mangled by a codec.

Stream spans located here are the only place the engine decides where a
stream body starts and ends. Transforms that rewrite structure use the
spans to leave binary bodies untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Keyword patterns
# ---------------------------------------------------------------------------

ENDSTREAM_KEYWORD_RE = re.compile(rb"endstream")

# A stream opens only right after the closing '>>' of its dictionary, so
# 'stream' inside a literal string such as '(stream test)' is not one.
STREAM_START_RE = re.compile(rb">>\s*(stream)")

# A stream region may not run across the end of its owning object.
_STREAM_SPAN_RE = re.compile(
    rb">>\s*(stream)(?:(?!endobj).)*?endstream",
    re.DOTALL,
)

OBJECT_RE = re.compile(
    rb"(?<![\d.])(\d+)\s+(\d+)\s+obj\b.*?endobj",
    re.DOTALL,
)

XREF_KEYWORD_RE = re.compile(rb"(?<![A-Za-z])xref(?![A-Za-z])")
TRAILER_KEYWORD_RE = re.compile(rb"(?<![A-Za-z])trailer")

# Direct /Length only; '/Length 12 0 R' is an indirect reference.
DIRECT_LENGTH_RE = re.compile(rb"/Length(\s+)(\d+)(?!\d)(?!\s+\d+\s+R)")

CATALOG_RE = re.compile(rb"/Type\s*/Catalog(?![A-Za-z])")

_EOLS = (b"\r\n", b"\n", b"\r")

_PRINTABLE = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}
TEXTUAL_RATIO = 0.85


# ---------------------------------------------------------------------------
# Stream spans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamSpan:
    """
    Location of one ``stream ... endstream`` region.

    Offsets are absolute within the scanned buffer. ``dict_start`` marks
    the start of the owning object's dictionary region (just after
    ``obj``), so ``data[dict_start:keyword_start]`` holds the stream
    dictionary.
    """

    dict_start: int
    keyword_start: int
    body_start: int
    body_end: int
    endstream_start: int
    end: int
    declared_length: Optional[int]

    @property
    def body_length(self) -> int:
        return self.body_end - self.body_start


def _eol_at(data: bytes, pos: int) -> int:
    """Length of the end-of-line sequence starting at ``pos`` (0 if none)."""
    for eol in _EOLS:
        if data.startswith(eol, pos):
            return len(eol)
    return 0


def _eol_before(data: bytes, pos: int, floor: int) -> int:
    """Length of the end-of-line sequence ending at ``pos`` (0 if none)."""
    for eol in _EOLS:
        start = pos - len(eol)
        if start >= floor and data[start:pos] == eol:
            return len(eol)
    return 0


def declared_length(dictionary: bytes) -> Optional[int]:
    """Last direct /Length value in a stream dictionary, if any."""
    matches = list(DIRECT_LENGTH_RE.finditer(dictionary))
    if not matches:
        return None
    return int(matches[-1].group(2))


def find_stream_spans(data: bytes) -> List[StreamSpan]:
    """
    Locate every terminated stream in ``data``.

    When the dictionary declares a direct /Length that lands exactly on
    the end-of-line before ``endstream``, that length is trusted.
    Otherwise the body is bounded by the end-of-line sequences around it.
    Streams with no ``endstream`` before their ``endobj`` are not
    reported; see ``find_unterminated_streams``.
    """
    spans: List[StreamSpan] = []
    previous_end = 0

    for match in _STREAM_SPAN_RE.finditer(data):
        keyword_start = match.start(1)
        endstream_start = match.end() - len(b"endstream")

        obj_pos = data.rfind(b"obj", previous_end, keyword_start)
        dict_start = obj_pos + 3 if obj_pos != -1 else previous_end
        length = declared_length(data[dict_start:keyword_start])

        body_start = keyword_start + len(b"stream")
        body_start += _eol_at(data, body_start)

        body_end = None
        if length is not None:
            candidate = body_start + length
            if (
                candidate <= endstream_start
                and data[candidate:endstream_start] in (b"",) + _EOLS
            ):
                body_end = candidate

        if body_end is None:
            body_end = endstream_start - _eol_before(
                data, endstream_start, body_start
            )

        spans.append(
            StreamSpan(
                dict_start=dict_start,
                keyword_start=keyword_start,
                body_start=body_start,
                body_end=body_end,
                endstream_start=endstream_start,
                end=match.end(),
                declared_length=length,
            )
        )
        previous_end = match.end()

    return spans


def find_unterminated_streams(data: bytes) -> List[int]:
    """
    Offsets of 'stream' keywords whose object ends without 'endstream'.

    Uses the same dictionary anchor as ``find_stream_spans``.
    """
    covered = find_stream_spans(data)
    starts = {span.keyword_start for span in covered}
    offsets: List[int] = []

    for match in STREAM_START_RE.finditer(data):
        pos = match.start(1)
        if pos in starts:
            continue
        if any(span.keyword_start <= pos < span.end for span in covered):
            continue
        endobj = data.find(b"endobj", pos)
        if endobj == -1:
            continue
        if data.find(b"endstream", pos, endobj) == -1:
            offsets.append(pos)

    return offsets


def is_binary_body(dictionary: bytes, body: bytes) -> bool:
    """
    True when a stream body must be treated as opaque bytes.

    Filtered streams are always binary. Unfiltered bodies are binary when
    fewer than TEXTUAL_RATIO of their bytes are printable ASCII.
    """
    if b"/Filter" in dictionary:
        return True
    if not body:
        return False
    printable = sum(1 for b in body if b in _PRINTABLE)
    return printable / len(body) < TEXTUAL_RATIO


def set_direct_length(dictionary_region: bytes, length: int) -> bytes:
    """
    Rewrite the last direct /Length in the region to ``length``.

    Only the part after the region's last ``obj`` keyword is searched, so
    an earlier object's /Length is never touched. Regions without a
    direct /Length are returned unchanged.
    """
    obj_pos = dictionary_region.rfind(b"obj")
    floor = obj_pos + 3 if obj_pos != -1 else 0

    matches = list(DIRECT_LENGTH_RE.finditer(dictionary_region, floor))
    if not matches:
        return dictionary_region

    last = matches[-1]
    if int(last.group(2)) == length:
        return dictionary_region

    return (
        dictionary_region[: last.start(2)]
        + str(length).encode("ascii")
        + dictionary_region[last.end(2):]
    )


BodyFn = Callable[[bytes, bytes], bytes]
StructureFn = Callable[[bytes], bytes]


def rewrite_streams(
    data: bytes,
    *,
    body_fn: Optional[BodyFn] = None,
    structure_fn: Optional[StructureFn] = None,
    ensure_delimiters: bool = False,
    recalculate_lengths: bool = False,
) -> bytes:
    """
    Rebuild ``data`` segment by segment around its stream spans.

    - ``structure_fn`` is applied to every region outside stream bodies.
    - ``body_fn(body, dictionary)`` is applied to every stream body.
    - ``ensure_delimiters`` inserts a newline after ``stream`` and before
      ``endstream`` where missing.
    - A body whose bytes changed always gets its direct /Length updated;
      ``recalculate_lengths`` extends that to every stream.

    With no options the output is byte-identical to the input.
    """
    spans = find_stream_spans(data)
    out = bytearray()
    cursor = 0

    for span in spans:
        structure = data[cursor:span.keyword_start]
        dictionary = data[span.dict_start:span.keyword_start]
        if structure_fn is not None:
            structure = structure_fn(structure)

        body = data[span.body_start:span.body_end]
        new_body = body_fn(body, dictionary) if body_fn is not None else body

        lead = data[span.keyword_start + len(b"stream"):span.body_start]
        trail = data[span.body_end:span.endstream_start]

        if ensure_delimiters:
            if not lead:
                lead = b"\n"
            if not trail and new_body:
                trail = b"\n"

        if recalculate_lengths or new_body != body:
            structure = set_direct_length(structure, len(new_body))

        out += structure
        out += b"stream" + lead + new_body + trail + b"endstream"
        cursor = span.end

    tail = data[cursor:]
    if structure_fn is not None:
        tail = structure_fn(tail)
    out += tail

    return bytes(out)


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectLocation:
    """An indirect object definition and the offset of its first byte."""

    number: int
    generation: int
    offset: int
    end: int


def scan_objects(data: bytes) -> List[ObjectLocation]:
    """
    Every ``<n> <g> obj ... endobj`` block, in file order.

    Offsets come from the match position during the scan, so objects with
    byte-identical serializations still get their own offsets.
    """
    return [
        ObjectLocation(
            number=int(m.group(1)),
            generation=int(m.group(2)),
            offset=m.start(),
            end=m.end(),
        )
        for m in OBJECT_RE.finditer(data)
    ]


def find_catalog(data: bytes, objects: List[ObjectLocation]) -> Optional[ObjectLocation]:
    for obj in reversed(objects):
        if CATALOG_RE.search(data, obj.offset, obj.end):
            return obj
    return None


def find_balanced_dictionary(data: bytes, start: int) -> Optional[Tuple[int, int]]:
    """
    (begin, end) of the ``<< ... >>`` dictionary opening at or after
    ``start``, honoring nesting. None if unbalanced.
    """
    begin = data.find(b"<<", start)
    if begin == -1:
        return None

    depth = 0
    pos = begin
    while pos < len(data) - 1:
        pair = data[pos:pos + 2]
        if pair == b"<<":
            depth += 1
            pos += 2
            continue
        if pair == b">>":
            depth -= 1
            pos += 2
            if depth == 0:
                return begin, pos
            continue
        pos += 1

    return None
