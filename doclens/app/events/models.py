from __future__ import annotations

import json
from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite)
# ----------------------------------------------------------------------
class PipelineEventType(str, Enum):
    """
    Progress events emitted while a comparison or verification runs.

    NOTE:
    Events are observational. Adding an entry must never change how a
    run behaves.
    """

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    PIPELINE_STARTED = "pipeline_started"
    PIPELINE_COMPLETED = "pipeline_completed"
    PIPELINE_FAILED = "pipeline_failed"

    # ------------------------------------------------------------------
    # Stages (extraction, analysis, validation)
    # ------------------------------------------------------------------
    STAGE_STARTED = "stage_started"
    STAGE_COMPLETED = "stage_completed"
    STAGE_SKIPPED = "stage_skipped"
    STAGE_DEGRADED = "stage_degraded"

    # ------------------------------------------------------------------
    # Generator calls
    # ------------------------------------------------------------------
    LLM_CALL_STARTED = "llm_call_started"
    LLM_CALL_RETRY = "llm_call_retry"
    LLM_CALL_COMPLETED = "llm_call_completed"
    LLM_CALL_FAILED = "llm_call_failed"

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"

    # ------------------------------------------------------------------
    # Presentation / Streaming Only (Non-terminal)
    # ------------------------------------------------------------------
    REPORT_READY = "report_ready"


TERMINAL_EVENT_TYPES = frozenset(
    {
        PipelineEventType.PIPELINE_COMPLETED,
        PipelineEventType.PIPELINE_FAILED,
        PipelineEventType.VERIFICATION_COMPLETED,
        PipelineEventType.VERIFICATION_FAILED,
    }
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class PipelineEvent(BaseModel):
    """
    An immutable observation of a state transition within a run.
    """

    event_id: UUID = Field(default_factory=uuid4)
    run_id: str = Field(..., description="Identifier of the comparison run")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: PipelineEventType

    # Optional contextual metadata (stage, attempt, usage, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_sse_payload(self) -> str:
        """
        Render the event as a single Server-Sent Events message.
        """
        data = json.dumps(
            self.model_dump(mode="json"),
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
