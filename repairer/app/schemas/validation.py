"""
Structure validation result schemas.

A ValidationResult is produced once per validation pass and is never
merged across passes. Re-validation after repair produces a fresh result.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from repairer.app.schemas.errors import StructuralError


class CheckOutcome(BaseModel):
    """
    Outcome of one structural sub-check (header, xref or streams).
    """

    valid: bool
    error: Optional[StructuralError] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def error_iff_invalid(self):
        if self.valid and self.error is not None:
            raise ValueError("A passing check must not carry an error")
        if not self.valid and self.error is None:
            raise ValueError("A failing check must carry an error")
        return self


class ValidationDetails(BaseModel):
    """Per-check pass/fail flags."""

    header_ok: bool
    xref_ok: bool
    stream_ok: bool

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class ValidationResult(BaseModel):
    """
    Result of one Structure Validator pass.

    ``valid`` is the conjunction of the three detail flags. Advisories are
    non-gating observations (missing %%EOF, duplicate objects, ...) and
    are mirrored as plain strings in ``warnings``.
    """

    valid: bool = Field(
        ...,
        description="True iff header, xref and stream checks all passed",
    )

    errors: List[StructuralError] = Field(
        default_factory=list,
        description="Gating structural errors, in check order",
    )

    warnings: List[str] = Field(
        default_factory=list,
        description="Human-readable non-gating observations",
    )

    advisories: List[StructuralError] = Field(
        default_factory=list,
        description="Structured form of the non-gating observations",
    )

    details: ValidationDetails

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def valid_matches_details(self):
        expected = (
            self.details.header_ok
            and self.details.xref_ok
            and self.details.stream_ok
        )
        if self.valid and not expected:
            raise ValueError(
                "ValidationResult cannot be valid while a sub-check failed"
            )
        return self

    @property
    def error_messages(self) -> List[str]:
        return [e.message for e in self.errors]
