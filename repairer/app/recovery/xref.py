"""
Cross-reference table rebuild.

Scans every ``<n> <g> obj ... endobj`` block, recording each object's
offset from its match position, and writes a classic xref table with one
subsection per contiguous run of object numbers:

    xref
    0 <count>
    0000000000 65535 f
    <offset> <generation> n
    ...
    <first number of next run> <count>
    ...
    trailer
    << /Size <highest object number + 1> ... >>
    startxref
    <offset of 'xref'>
    %%EOF

Gaps in the numbering are simply left out of the table, so a sparse or
very large object number costs one entry, not one entry per missing
number. A table that would hold more than ``max_entries`` entries is
refused. When an object number is defined more than once, the last
definition wins, as it would after an incremental update.

The table is inserted before the trailing ``%%EOF`` when the buffer
really ends with one; otherwise it is appended with a fresh ``%%EOF``.
Existing bytes before the insertion point are never modified, so the
recorded offsets stay correct.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from repairer.app.config import DEFAULT_CONFIG
from repairer.app.recovery.transform import TransformOutcome, never_raises
from repairer.app.utils.pdf_bytes import (
    ObjectLocation,
    TRAILER_KEYWORD_RE,
    find_balanced_dictionary,
    find_catalog,
    scan_objects,
)

logger = logging.getLogger(__name__)


FREE_HEAD_ENTRY = b"0000000000 65535 f \n"

_SIZE_RE = re.compile(rb"/Size\s+\d+")
_PREV_RE = re.compile(rb"/Prev\s+\d+")
_TRAILING_WS = b" \t\r\n\x00"


def _entry(offset: int, generation: int) -> bytes:
    # Always 20 bytes: 10 + 1 + 5 + 1 + 1 + 2-byte end of line.
    return b"%010d %05d n \n" % (offset, generation)


def _latest_definitions(objects: List[ObjectLocation]) -> Dict[int, ObjectLocation]:
    latest: Dict[int, ObjectLocation] = {}
    for obj in objects:
        # Object 0 is always the head of the free list.
        if obj.number > 0:
            latest[obj.number] = obj
    return latest


def _build_subsections(
    latest: Dict[int, ObjectLocation],
) -> List[Tuple[int, List[bytes]]]:
    """(first object number, entries) for each contiguous run."""
    subsections: List[Tuple[int, List[bytes]]] = [(0, [FREE_HEAD_ENTRY])]
    expected = 1

    for number in sorted(latest):
        obj = latest[number]
        if number != expected:
            subsections.append((number, []))
        subsections[-1][1].append(_entry(obj.offset, obj.generation))
        expected = number + 1

    return subsections


def _serialize_table(subsections: List[Tuple[int, List[bytes]]]) -> bytes:
    out = bytearray(b"xref\n")
    for first, entries in subsections:
        out += b"%d %d\n" % (first, len(entries))
        out += b"".join(entries)
    return bytes(out)


def _trailer_dictionary(
    data: bytes, objects: List[ObjectLocation], size: int
) -> bytes:
    """
    Reuse the last trailer dictionary when one survives, with /Size
    rewritten and /Prev dropped. Otherwise synthesize one pointing at the
    catalog.
    """
    existing: Optional[bytes] = None
    matches = list(TRAILER_KEYWORD_RE.finditer(data))
    if matches:
        bounds = find_balanced_dictionary(data, matches[-1].end())
        if bounds is not None:
            existing = data[bounds[0]:bounds[1]]

    entries = [b"/Size %d" % size]
    catalog = find_catalog(data, objects)

    if existing is None:
        if catalog is not None:
            entries.append(b"/Root %d %d R" % (catalog.number, catalog.generation))
        return b"<< " + b" ".join(entries) + b" >>"

    existing = _PREV_RE.sub(b"", existing)
    if _SIZE_RE.search(existing):
        existing = _SIZE_RE.sub(entries.pop(0), existing, count=1)
    if catalog is not None and b"/Root" not in existing:
        entries.append(b"/Root %d %d R" % (catalog.number, catalog.generation))
    if not entries:
        return existing
    return b"<< " + b" ".join(entries) + b" " + existing[2:].lstrip()


@never_raises
def rebuild_xref(
    data: bytes, *, max_entries: int = DEFAULT_CONFIG.MAX_XREF_ENTRIES
) -> TransformOutcome:
    objects = scan_objects(data)
    latest = _latest_definitions(objects)
    if not latest:
        logger.debug("No indirect objects found; nothing to index")
        return TransformOutcome(recovered_data=data, success=False)

    entry_count = len(latest) + 1
    if entry_count > max_entries:
        logger.warning(
            "Refusing xref rebuild: %d entries exceed the ceiling of %d",
            entry_count,
            max_entries,
        )
        return TransformOutcome(recovered_data=data, success=False)

    subsections = _build_subsections(latest)
    size = max(latest) + 1

    stripped = data.rstrip(_TRAILING_WS)
    if stripped.endswith(b"%%EOF"):
        insert_at = len(stripped) - len(b"%%EOF")
        suffix = data[insert_at:]
    else:
        insert_at = len(data)
        suffix = b"%%EOF\n"

    head = data[:insert_at]
    if head and head[-1:] not in (b"\n", b"\r"):
        head += b"\n"

    xref_offset = len(head)
    section = (
        _serialize_table(subsections)
        + b"trailer\n"
        + _trailer_dictionary(data, objects, size)
        + b"\nstartxref\n%d\n" % xref_offset
    )

    logger.debug(
        "Rebuilt xref: %d entries in %d subsection(s), size=%d, table at offset %d",
        entry_count,
        len(subsections),
        size,
        xref_offset,
    )
    return TransformOutcome(recovered_data=head + section + suffix, success=True)
