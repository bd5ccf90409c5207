"""
DocumentVerificationReport schema.

The cross-document discrepancy report returned by the verification
engine. Field aliases follow the camelCase names used in the JSON the
generator is asked to produce, so a reply validates directly.

IMPORTANT:
- consistency_score and risk_assessment are independent generator
  outputs. Neither is derived from the other.
- metadata is stamped by the engine after parsing; whatever the
  generator wrote there is overwritten.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from doclens.app.schemas.usage import TokenUsage


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DiscrepancyCategory(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    MINOR = "minor"


class InsightCategory(str, Enum):
    COMPLIANCE = "compliance"
    OPERATIONAL = "operational"
    FINANCIAL = "financial"
    CUSTOMS = "customs"


class InsightSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class _ReportModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Report sections
# ---------------------------------------------------------------------------

class VerificationSummary(_ReportModel):
    shipment_identifier: str = ""
    document_count: int = Field(0, ge=0)
    document_types: List[str] = Field(default_factory=list)
    consistency_score: float = Field(..., ge=0.0, le=1.0)
    risk_assessment: RiskLevel
    expert_summary: str = ""


class DiscrepancyDocument(_ReportModel):
    document_name: str
    value: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def value_as_text(cls, v: Any) -> Optional[str]:
        # Generators emit weights and amounts as bare numbers
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (dict, list)):
            return json.dumps(v, ensure_ascii=False)
        return str(v)


class Discrepancy(_ReportModel):
    field_name: str
    category: DiscrepancyCategory
    impact: str = ""
    documents: List[DiscrepancyDocument] = Field(default_factory=list)
    recommendation: str = ""


class Insight(_ReportModel):
    title: str
    description: str = ""
    category: InsightCategory
    severity: InsightSeverity


class Recommendation(_ReportModel):
    action: str
    priority: RecommendationPriority
    reasoning: str = ""


class ReportMetadata(_ReportModel):
    analysis_timestamp: Optional[datetime] = None
    processing_time: Optional[float] = Field(None, ge=0.0, description="Seconds")


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

class DocumentVerificationReport(_ReportModel):
    """
    Structured verification report over a set of extracted documents.
    """

    summary: VerificationSummary
    discrepancies: List[Discrepancy] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)

    usage: TokenUsage = Field(default_factory=TokenUsage.zero)

    @property
    def critical_discrepancies(self) -> List[Discrepancy]:
        return [
            d for d in self.discrepancies
            if d.category == DiscrepancyCategory.CRITICAL
        ]
