"""
Runtime configuration for the PDF repair engine.

This module centralizes the resource ceilings and feature switches used by
the validator, classifier, recovery engine and orchestrator. Values are
environment-driven, parsed once, and read-only at runtime.

Configuration MUST NOT introduce non-deterministic behavior: the same
buffer under the same configuration always yields the same result.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator, ValidationInfo


class RepairerConfig(BaseModel):
    """
    Runtime configuration for the repair engine.

    Constructed directly in tests, or via ``from_env()`` at startup.
    """

    # ------------------------------------------------------------------
    # Caller-side limits (enforced before the engine is invoked)
    # ------------------------------------------------------------------

    MAX_PDF_SIZE_MB: int = Field(
        500,
        description=(
            "Maximum accepted upload size in megabytes. Enforced by the "
            "caller (HTTP layer), never inside the engine."
        ),
    )

    # ------------------------------------------------------------------
    # Engine limits
    # ------------------------------------------------------------------

    MIN_PDF_SIZE_BYTES: int = Field(
        100,
        description="Sanity floor below which the orchestrator rejects input",
    )

    HEADER_SCAN_BYTES: int = Field(
        1024,
        description="Number of leading bytes scanned for the %PDF-x.y signature",
    )

    MAX_XREF_ENTRIES: int = Field(
        1_000_000,
        description=(
            "Upper bound on the declared entry count of an xref subsection "
            "and on the entries a rebuilt xref table may hold"
        ),
    )

    MAX_STREAM_SIZE_MB: int = Field(
        100,
        description="Upper bound on the size of a single stream region",
    )

    # ------------------------------------------------------------------
    # Optional behavior
    # ------------------------------------------------------------------

    ENABLE_PARSER_VERIFICATION: bool = Field(
        False,
        description=(
            "Open the repaired bytes with pikepdf after revalidation. "
            "Reported only; never gates the repair outcome."
        ),
    )

    STRIP_ENCRYPTION_ON_FAILURE: bool = Field(
        False,
        description=(
            "Allow the orchestrator to strip /Encrypt entries from invalid "
            "documents without an explicit caller request."
        ),
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator(
        "MAX_PDF_SIZE_MB",
        "MIN_PDF_SIZE_BYTES",
        "HEADER_SCAN_BYTES",
        "MAX_XREF_ENTRIES",
        "MAX_STREAM_SIZE_MB",
    )
    @classmethod
    def limits_must_be_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("MIN_PDF_SIZE_BYTES")
    @classmethod
    def floor_below_ceiling(cls, v: int, info: ValidationInfo) -> int:
        ceiling_mb = info.data.get("MAX_PDF_SIZE_MB")
        if ceiling_mb is not None and v > ceiling_mb * 1024 * 1024:
            raise ValueError(
                "MIN_PDF_SIZE_BYTES exceeds the MAX_PDF_SIZE_MB ceiling."
            )
        return v

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def max_pdf_size_bytes(self) -> int:
        return self.MAX_PDF_SIZE_MB * 1024 * 1024

    @property
    def max_stream_size_bytes(self) -> int:
        return self.MAX_STREAM_SIZE_MB * 1024 * 1024

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RepairerConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            MAX_PDF_SIZE_MB=int(
                os.getenv("REPAIRER_MAX_PDF_SIZE_MB", "500")
            ),
            MIN_PDF_SIZE_BYTES=int(
                os.getenv("REPAIRER_MIN_PDF_SIZE_BYTES", "100")
            ),
            HEADER_SCAN_BYTES=int(
                os.getenv("REPAIRER_HEADER_SCAN_BYTES", "1024")
            ),
            MAX_XREF_ENTRIES=int(
                os.getenv("REPAIRER_MAX_XREF_ENTRIES", "1000000")
            ),
            MAX_STREAM_SIZE_MB=int(
                os.getenv("REPAIRER_MAX_STREAM_SIZE_MB", "100")
            ),
            ENABLE_PARSER_VERIFICATION=env_bool(
                "REPAIRER_ENABLE_PARSER_VERIFICATION", False
            ),
            STRIP_ENCRYPTION_ON_FAILURE=env_bool(
                "REPAIRER_STRIP_ENCRYPTION_ON_FAILURE", False
            ),
        )

    model_config = {
        "frozen": True,
    }


DEFAULT_CONFIG = RepairerConfig()
