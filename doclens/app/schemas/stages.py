"""
Stage and pipeline result models.

Each stage produces exactly one result object, priced with the stage's
own model pricing. The pipeline result aggregates them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

from doclens.app.schemas.comparison import ComparisonResult
from doclens.app.schemas.documents import DocumentEncodingError
from doclens.app.schemas.usage import TokenUsage


VALIDITY_THRESHOLD = 70


class PipelineStage(str, Enum):
    """
    Orchestrator states. Transitions only move forward.
    """

    EXTRACTION = "extraction"
    ANALYSIS = "analysis"
    VALIDATION = "validation"
    DONE = "done"


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------

class DocumentRecord(BaseModel):
    """Fields extracted from one document by the extraction stage."""

    document_index: int = Field(..., ge=0)
    document_type: str = "Unknown Document"
    fields: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class ExtractionResult(BaseModel):
    stage: Literal["extraction"] = "extraction"

    document_records: List[DocumentRecord] = Field(default_factory=list)
    document_types: List[str] = Field(default_factory=list)
    field_index: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Field name -> values observed across documents",
    )
    raw_text: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage.zero)

    encoding_errors: List[DocumentEncodingError] = Field(default_factory=list)
    degraded: bool = Field(
        False,
        description="True when this result was substituted after a failure",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def field_names(self) -> List[str]:
        """
        Every extracted field name, de-duplicated, in first-seen order.
        """
        names: Dict[str, None] = dict.fromkeys(self.field_index)
        for record in self.document_records:
            names.update(dict.fromkeys(record.fields))
        return list(names)


# ----------------------------------------------------------------------
# Analysis
# ----------------------------------------------------------------------

class AnalysisResult(BaseModel):
    stage: Literal["analysis"] = "analysis"

    comparison: ComparisonResult
    raw_text: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage.zero)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

class ValidationResult(BaseModel):
    stage: Literal["validation"] = "validation"

    comparison: ComparisonResult
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Heuristic confidence of the validated result",
    )
    reported_confidence: Optional[int] = Field(
        None,
        ge=0,
        le=100,
        description="Confidence percentage stated by the model itself",
    )
    reasoning_trace: Optional[str] = None
    raw_text: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage.zero)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def is_valid(self) -> bool:
        return (
            self.reported_confidence is not None
            and self.reported_confidence >= VALIDITY_THRESHOLD
        )


# ----------------------------------------------------------------------
# Pipeline
# ----------------------------------------------------------------------

class PipelineResult(BaseModel):
    """
    Final output of one comparison run.
    """

    run_id: Optional[str] = None
    result: ComparisonResult
    extraction: ExtractionResult
    analysis: AnalysisResult
    validation: Optional[ValidationResult] = None

    total_usage: TokenUsage
    processing_time: float = Field(0.0, ge=0.0, description="Seconds")
    stages_executed: List[PipelineStage] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def confidence(self) -> Optional[float]:
        return self.validation.confidence if self.validation else None
