from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class RepairEventType(str, Enum):
    """
    Progression events emitted during one repair request.

    One REPAIR_STARTED and one REPAIR_COMPLETED bracket every request.
    STRATEGY_APPLIED is emitted once per transform the orchestrator ran,
    in application order. A rejected request emits INPUT_REJECTED and
    skips the validation and repair events.
    """

    REPAIR_STARTED = "repair_started"
    INPUT_REJECTED = "input_rejected"

    VALIDATION_COMPLETED = "validation_completed"
    CLASSIFICATION_COMPLETED = "classification_completed"
    STRATEGY_APPLIED = "strategy_applied"
    REVALIDATION_COMPLETED = "revalidation_completed"

    REPAIR_COMPLETED = "repair_completed"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class RepairEvent(BaseModel):
    """
    An immutable observation of a state transition within the
    orchestrator. Events never carry PDF bytes.
    """

    event_id: UUID = Field(default_factory=uuid4)
    repair_id: str = Field(..., description="The repair request identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: RepairEventType

    # Optional contextual metadata (strategy, counts, severity, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
