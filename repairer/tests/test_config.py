import pytest
from pydantic import ValidationError

from repairer.app.config import RepairerConfig


def test_defaults():
    config = RepairerConfig()

    assert config.MAX_PDF_SIZE_MB == 500
    assert config.MIN_PDF_SIZE_BYTES == 100
    assert config.HEADER_SCAN_BYTES == 1024
    assert config.MAX_XREF_ENTRIES == 1_000_000
    assert config.max_stream_size_bytes == 100 * 1024 * 1024
    assert config.ENABLE_PARSER_VERIFICATION is False
    assert config.STRIP_ENCRYPTION_ON_FAILURE is False


def test_from_env(monkeypatch):
    monkeypatch.setenv("REPAIRER_MAX_PDF_SIZE_MB", "5")
    monkeypatch.setenv("REPAIRER_MIN_PDF_SIZE_BYTES", "64")
    monkeypatch.setenv("REPAIRER_ENABLE_PARSER_VERIFICATION", "true")

    config = RepairerConfig.from_env()

    assert config.max_pdf_size_bytes == 5 * 1024 * 1024
    assert config.MIN_PDF_SIZE_BYTES == 64
    assert config.ENABLE_PARSER_VERIFICATION is True
    assert config.STRIP_ENCRYPTION_ON_FAILURE is False


@pytest.mark.parametrize("field", ["MAX_PDF_SIZE_MB", "MAX_XREF_ENTRIES", "HEADER_SCAN_BYTES"])
def test_non_positive_limits_are_rejected(field):
    with pytest.raises(ValidationError):
        RepairerConfig(**{field: 0})


def test_floor_above_ceiling_is_rejected():
    with pytest.raises(ValidationError):
        RepairerConfig(MAX_PDF_SIZE_MB=1, MIN_PDF_SIZE_BYTES=2 * 1024 * 1024)


def test_config_is_frozen():
    config = RepairerConfig()

    with pytest.raises(ValidationError):
        config.MAX_PDF_SIZE_MB = 1
