from unittest.mock import patch

import pytest

from repairer.app.checks.parser_verification import verify_parseable
from repairer.app.coordinator.orchestrator import repair
from repairer.tests.fixtures.pdf_factory import (
    pikepdf_blank_pdf,
    structure_only_pdf,
    text_pdf,
)


def test_pikepdf_output_is_parseable():
    result = verify_parseable(pikepdf_blank_pdf(pages=3))

    assert result.parseable is True
    assert result.error is None
    assert result.page_count == 3


def test_hand_built_pdf_is_parseable():
    result = verify_parseable(text_pdf())

    assert result.parseable is True
    assert result.page_count == 1


def test_garbage_is_not_parseable():
    result = verify_parseable(b"not a pdf at all")

    assert result.parseable is False
    assert result.error


def test_repaired_header_is_parseable():
    repaired = repair(structure_only_pdf(header=b"%PDF-X\n")).repaired_bytes

    assert verify_parseable(repaired).parseable is True


def test_logic_errors_propagate():
    with patch(
        "repairer.app.checks.parser_verification.pikepdf.open",
        side_effect=AttributeError("bug"),
    ):
        with pytest.raises(AttributeError):
            verify_parseable(text_pdf())
