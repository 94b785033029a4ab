"""
Tests for the Recovery Engine.

Coverage matrix:

  dispatch    unsupported kind, string kinds, exception boundary
  header      always succeeds, prepends %PDF-1.7
  xref        offsets from the scan, duplicates, %%EOF placement
  streams     delimiter insertion, /Length recalculation, closing
              unterminated streams, no-op on well-formed streams
  text        control chars, broken hex strings, malformed octal,
              binary bodies untouched
  image       image streams replaced by a stub
  encryption  inline and indirect /Encrypt removed
"""

import re
from unittest.mock import patch

import pytest

from repairer.app.config import RepairerConfig
from repairer.app.recovery.content import IMAGE_STUB
from repairer.app.recovery.engine import (
    MESSAGE_PARTIAL,
    MESSAGE_SUCCESS,
    RECOVERY_TRANSFORMS,
    apply_recovery_strategy,
)
from repairer.app.recovery.transform import TransformOutcome
from repairer.app.schemas.errors import ErrorKind
from repairer.tests.fixtures.pdf_factory import (
    CATALOG,
    FONT,
    IMAGE_PIXELS,
    PAGE,
    PAGES,
    TEXT_CONTENT,
    bare_stream_delimiters_pdf,
    build_pdf,
    image_pdf,
    stream_object,
    structure_only_pdf,
    text_pdf,
    unterminated_stream_pdf,
    without_startxref,
)


def _xref_entries(pdf_bytes: bytes):
    """Entries of the last xref table, as (offset, generation, type)."""
    start = pdf_bytes.rindex(b"\nxref\n") + 1
    table = pdf_bytes[start:pdf_bytes.index(b"trailer", start)]
    return [
        (int(m.group(1)), int(m.group(2)), m.group(3))
        for m in re.finditer(rb"(\d{10}) (\d{5}) ([fn])", table)
    ]


def _startxref(pdf_bytes: bytes) -> int:
    tail = pdf_bytes[pdf_bytes.rindex(b"startxref"):]
    return int(tail.split()[1])


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def test_unsupported_kind_returns_input_unchanged():
    pdf_bytes = text_pdf()
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_FONT)

    assert result.success is False
    assert result.applied_strategy == "none"
    assert result.recovered_data == pdf_bytes


def test_unknown_kind_string_returns_none_strategy():
    result = apply_recovery_strategy(b"%PDF-1.7", "NOT_A_KIND")

    assert result.success is False
    assert result.applied_strategy == "none"
    assert result.error_kind is None


def test_kind_may_be_given_as_string():
    result = apply_recovery_strategy(b"garbage", "MISSING_HEADER")

    assert result.success is True
    assert result.error_kind == ErrorKind.MISSING_HEADER


def test_exception_in_transform_is_caught_at_boundary():
    def explode(data):
        raise RuntimeError("boom")

    pdf_bytes = text_pdf()
    with patch.dict(
        RECOVERY_TRANSFORMS,
        {ErrorKind.MISSING_XREF: ("Cross-reference table rebuild", explode)},
    ):
        result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF)

    assert result.success is False
    assert result.message == "Recovery failed: boom"
    assert result.applied_strategy == "failed"
    assert result.recovered_data == pdf_bytes


def test_non_bytes_input_is_caught_at_boundary():
    result = apply_recovery_strategy("not bytes", ErrorKind.MISSING_HEADER)

    assert result.success is False
    assert result.message.startswith("Recovery failed:")
    assert result.recovered_data == b""


def test_failing_helper_degrades_to_partial_result():
    pdf_bytes = text_pdf()
    with patch(
        "repairer.app.recovery.streams.rewrite_streams",
        side_effect=RuntimeError("broken"),
    ):
        result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISMATCHED_STREAM)

    assert result.success is False
    assert result.message == MESSAGE_PARTIAL
    assert result.applied_strategy == "Stream delimiter correction"
    assert result.recovered_data == pdf_bytes


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("pdf_bytes", [b"", b"garbage", text_pdf()])
def test_header_reconstruction_always_succeeds(pdf_bytes):
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_HEADER)

    assert result.success is True
    assert result.message == MESSAGE_SUCCESS
    assert result.applied_strategy == "Header reconstruction"
    assert result.recovered_data.startswith(b"%PDF-1.7\n%")
    assert result.recovered_data.endswith(pdf_bytes)


# ---------------------------------------------------------------------------
# Xref rebuild
# ---------------------------------------------------------------------------

def test_rebuilt_xref_points_at_every_object():
    damaged = text_pdf(with_xref=False)
    result = apply_recovery_strategy(damaged, ErrorKind.MISSING_XREF)
    data = result.recovered_data

    assert result.success is True
    assert result.applied_strategy == "Cross-reference table rebuild"

    entries = _xref_entries(data)
    assert entries[0] == (0, 65535, b"f")
    assert len(entries) == 6
    for number, (offset, generation, kind) in enumerate(entries[1:], start=1):
        assert kind == b"n"
        assert data[offset:].startswith(b"%d %d obj" % (number, generation))

    assert data[_startxref(data):].startswith(b"xref\n0 6\n")


def test_rebuilt_xref_entries_are_twenty_bytes():
    data = apply_recovery_strategy(
        structure_only_pdf(), ErrorKind.MISSING_XREF
    ).recovered_data
    start = data.rindex(b"\nxref\n0 3\n") + len(b"\nxref\n0 3\n")
    table = data[start:data.index(b"trailer", start)]

    assert len(table) == 3 * 20


def test_redefined_object_uses_last_definition():
    # Byte-identical redefinition of object 2 appended after the first.
    update = b"2 0 obj\n<< /Type /Pages /Kids [] /Count 0 >>\nendobj\n"
    pdf_bytes = structure_only_pdf() + update

    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF)
    entries = _xref_entries(result.recovered_data)

    assert entries[2][0] == pdf_bytes.rindex(b"2 0 obj")
    assert entries[2][0] != pdf_bytes.index(b"2 0 obj")


def test_gaps_split_the_table_into_subsections():
    pdf_bytes = structure_only_pdf().replace(b"2 0 obj", b"4 0 obj")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF).recovered_data
    table = data[_startxref(data):data.rindex(b"trailer")]

    assert table.startswith(b"xref\n0 2\n0000000000 65535 f \n")
    assert b"\n4 1\n%010d 00000 n \n" % pdf_bytes.index(b"4 0 obj") in table
    assert [e[2] for e in _xref_entries(data)] == [b"f", b"n", b"n"]
    assert b"/Size 5" in data[data.rindex(b"trailer"):]


def test_large_object_number_costs_one_entry():
    pdf_bytes = (
        b"%PDF-1.7\n3000000 0 obj\n<< /Type /Catalog /Pages 1 0 R >>\nendobj\n"
    )
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF)
    data = result.recovered_data

    assert result.success is True
    assert len(data) < len(pdf_bytes) + 200
    assert b"xref\n0 1\n0000000000 65535 f \n3000000 1\n" in data
    assert _xref_entries(data)[1] == (pdf_bytes.index(b"3000000 0 obj"), 0, b"n")
    assert b"/Size 3000001" in data
    assert b"/Root 3000000 0 R" in data


def test_xref_rebuild_over_entry_ceiling_is_refused():
    pdf_bytes = text_pdf(with_xref=False)
    result = apply_recovery_strategy(
        pdf_bytes,
        ErrorKind.MISSING_XREF,
        config=RepairerConfig(MAX_XREF_ENTRIES=3),
    )

    assert result.success is False
    assert result.message == MESSAGE_PARTIAL
    assert result.recovered_data == pdf_bytes


def test_xref_inserted_before_existing_eof():
    pdf_bytes = structure_only_pdf()
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF).recovered_data

    assert data.startswith(pdf_bytes[: pdf_bytes.rindex(b"%%EOF")])
    assert data.count(b"%%EOF") == 1
    assert data.endswith(b"%%EOF\n")


def test_xref_appended_with_eof_when_missing():
    pdf_bytes = without_startxref(structure_only_pdf())
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF).recovered_data

    assert data.startswith(pdf_bytes)
    assert data.endswith(b"%%EOF\n")
    assert data[_startxref(data):].startswith(b"xref\n")


def test_trailer_gets_size_and_root():
    pdf_bytes = build_pdf([CATALOG, PAGES], trailer=b"<< /Prev 12345 >>")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.MISSING_XREF).recovered_data
    trailer = data[data.rindex(b"trailer"):]

    assert b"/Size 3" in trailer
    assert b"/Root 1 0 R" in trailer
    assert b"/Prev" not in trailer


def test_xref_rebuild_without_objects_is_partial():
    result = apply_recovery_strategy(b"%PDF-1.7\n%%EOF\n", ErrorKind.MISSING_XREF)

    assert result.success is False
    assert result.message == MESSAGE_PARTIAL


# ---------------------------------------------------------------------------
# Stream delimiters
# ---------------------------------------------------------------------------

def test_well_formed_streams_are_left_byte_identical():
    pdf_bytes = text_pdf()
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISMATCHED_STREAM)

    assert result.success is True
    assert result.recovered_data == pdf_bytes


def test_binary_stream_with_exact_length_is_untouched():
    body = b"\x00\x01\nendstreax\r\n\xff" * 10
    pdf_bytes = build_pdf([CATALOG, PAGES, stream_object(body, b"/Filter /FlateDecode ")])

    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISMATCHED_STREAM)

    assert result.recovered_data == pdf_bytes


def test_missing_newlines_are_inserted_and_length_recomputed():
    result = apply_recovery_strategy(
        bare_stream_delimiters_pdf(), ErrorKind.MISMATCHED_STREAM
    )

    assert b"<< /Length 5 >>\nstream\nBT ET\nendstream" in result.recovered_data


def test_stale_length_is_recomputed():
    pdf_bytes = text_pdf().replace(b"/Length 36", b"/Length 7")
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISMATCHED_STREAM)

    assert result.recovered_data == text_pdf()


def test_stream_word_inside_literal_string_is_not_a_stream():
    catalog = b"<< /Type /Catalog /Title (stream test) /Pages 2 0 R >>"
    pdf_bytes = build_pdf(
        [catalog, PAGES, PAGE, stream_object(TEXT_CONTENT), FONT]
    )

    result = apply_recovery_strategy(pdf_bytes, ErrorKind.MISMATCHED_STREAM)

    assert result.success is True
    assert result.recovered_data == pdf_bytes
    assert b"(stream test) /Pages 2 0 R >>\nendobj" in result.recovered_data


def test_unterminated_stream_is_closed():
    result = apply_recovery_strategy(
        unterminated_stream_pdf(), ErrorKind.MISMATCHED_STREAM
    )

    assert b"stream\nBT ET\nendstream\nendobj" in result.recovered_data


# ---------------------------------------------------------------------------
# Text content
# ---------------------------------------------------------------------------

def test_control_characters_are_stripped_and_length_updated():
    pdf_bytes = text_pdf(b"BT (Hel\x01lo\x7f) Tj ET")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_TEXT).recovered_data

    assert b"/Length 16 >>\nstream\nBT (Hello) Tj ET\nendstream" in data


def test_broken_hex_string_becomes_literal_string():
    pdf_bytes = text_pdf(b"BT <Hello World> Tj <48656C6C6F> Tj ET")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_TEXT).recovered_data

    assert b"(Hello World) Tj <48656C6C6F> Tj" in data
    assert b"<< /Type /Catalog" in data


def test_malformed_octal_escape_is_removed():
    pdf_bytes = text_pdf(b"BT (A\\999B\\101) Tj ET")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_TEXT).recovered_data

    assert b"(AB\\101)" in data


def test_binary_stream_body_is_not_sanitized():
    body = b"\x01\x02<zz>\x03" * 8
    pdf_bytes = build_pdf(
        [CATALOG, PAGES, stream_object(body, b"/Filter /FlateDecode ")]
    )
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_TEXT).recovered_data

    assert body in data


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def test_image_stream_is_replaced_by_stub():
    pdf_bytes = image_pdf()
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_IMAGE)
    data = result.recovered_data

    assert result.success is True
    assert result.applied_strategy == "Image data recovery"
    assert IMAGE_STUB in data
    assert IMAGE_PIXELS not in data
    assert b"6 0 obj\n" + IMAGE_STUB + b"\nendobj" in data
    # Non-image content stream survives.
    assert b"BT /F1 12 Tf" in data


def test_document_without_images_is_unchanged():
    pdf_bytes = text_pdf()
    result = apply_recovery_strategy(pdf_bytes, ErrorKind.CORRUPTED_IMAGE)

    assert result.recovered_data == pdf_bytes


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------

def test_indirect_encrypt_reference_is_removed():
    pdf_bytes = text_pdf(trailer=b"<< /Size 6 /Root 1 0 R /Encrypt 9 0 R >>")
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.BROKEN_ENCRYPTION).recovered_data

    assert b"/Encrypt" not in data
    assert b"<< /Size 6 /Root 1 0 R  >>" in data


def test_inline_encrypt_dictionary_is_removed():
    trailer = (
        b"<< /Size 6 /Root 1 0 R "
        b"/Encrypt << /Filter /Standard /V 1 /CF << /StdCF << >> >> >> >>"
    )
    pdf_bytes = text_pdf(trailer=trailer)
    data = apply_recovery_strategy(pdf_bytes, ErrorKind.BROKEN_ENCRYPTION).recovered_data

    assert b"/Encrypt" not in data
    assert b"/Standard" not in data
    assert b"<< /Size 6 /Root 1 0 R  >>" in data


def test_transform_outcome_is_immutable():
    outcome = TransformOutcome(recovered_data=b"x", success=True)

    with pytest.raises(Exception):
        outcome.success = False
