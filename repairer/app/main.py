"""
FastAPI entrypoint for the PDF repair service.

Thin upload handler in front of the repair engine. It enforces the
caller-side input ceiling (the engine itself assumes bounded input),
invokes the engine, and returns its structured results.

It contains no repair logic.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import uuid4

from fastapi import FastAPI, File, Form, UploadFile, HTTPException
from fastapi.responses import JSONResponse

from repairer.app.checks.corruption_classification import check_corruption
from repairer.app.checks.structure_validation import validate_structure
from repairer.app.config import RepairerConfig
from repairer.app.coordinator.orchestrator import RepairOrchestrator
from repairer.app.schemas.corruption import CorruptionReport
from repairer.app.schemas.errors import ErrorKind
from repairer.app.schemas.recovery import RepairResult
from repairer.app.schemas.validation import ValidationResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="PDF Repair Service",
    description="Structural validation and best-effort repair of PDF files",
    version="0.3.0",
)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup_event() -> None:
    """
    Configuration is loaded once and treated as immutable for the lifetime
    of the process.
    """
    config = RepairerConfig.from_env()

    app.state.config = config
    app.state.orchestrator = RepairOrchestrator(config=config)


# ---------------------------------------------------------------------------
# Upload handling
# ---------------------------------------------------------------------------

async def read_pdf_upload(pdf: UploadFile) -> bytes:
    """
    Read an uploaded PDF, enforcing content type, non-emptiness and the
    configured size ceiling.
    """
    if pdf.content_type != "application/pdf":
        raise HTTPException(
            status_code=400,
            detail="Only application/pdf content is supported",
        )

    try:
        pdf_bytes = await pdf.read()
    except Exception as exc:
        raise HTTPException(
            status_code=400,
            detail="Failed to read uploaded PDF",
        ) from exc

    if not pdf_bytes:
        raise HTTPException(
            status_code=400,
            detail="Uploaded PDF is empty",
        )

    # ------------------------------------------------------------------
    # Hard resource safety limit (the engine does not bound its input)
    # ------------------------------------------------------------------
    config: RepairerConfig = app.state.config

    if len(pdf_bytes) > config.max_pdf_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=(
                f"PDF exceeds maximum allowed size of "
                f"{config.MAX_PDF_SIZE_MB} MB"
            ),
        )

    return pdf_bytes


def parse_requested(requested: Optional[List[str]]) -> List[ErrorKind]:
    kinds: List[ErrorKind] = []
    for name in requested or []:
        try:
            kinds.append(ErrorKind(name))
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown error kind: {name}",
            ) from exc
    return kinds


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate the structure of a PDF",
)
async def validate_document(
    pdf: UploadFile = File(..., description="PDF file to validate"),
) -> ValidationResult:
    pdf_bytes = await read_pdf_upload(pdf)
    return validate_structure(pdf_bytes, app.state.config)


@app.post(
    "/classify",
    response_model=CorruptionReport,
    summary="Classify corruption in a PDF",
)
async def classify_document(
    pdf: UploadFile = File(..., description="PDF file to classify"),
) -> CorruptionReport:
    pdf_bytes = await read_pdf_upload(pdf)
    return check_corruption(pdf_bytes, app.state.config)


@app.post(
    "/repair",
    response_model=RepairResult,
    summary="Repair a PDF",
)
async def repair_document(
    pdf: UploadFile = File(..., description="PDF file to repair"),
    requested: Optional[List[str]] = Form(
        None,
        description="Additional recovery categories to apply",
    ),
) -> RepairResult:
    """
    Repaired bytes are returned base64-encoded in ``repaired_bytes``.
    A rejected input is a 200 response with ``state == "rejected"``.
    """
    pdf_bytes = await read_pdf_upload(pdf)
    kinds = parse_requested(requested)

    orchestrator: RepairOrchestrator = app.state.orchestrator
    repair_id = str(uuid4())
    result = orchestrator.repair(pdf_bytes, repair_id=repair_id, requested=kinds)

    logger.info(
        "Repair %s finished: state=%s valid=%s",
        repair_id,
        result.state.value,
        result.is_valid,
    )
    return result


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "service": "repairer",
        }
    )
