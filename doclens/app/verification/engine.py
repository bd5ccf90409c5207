"""
Cross-document verification engine.

Turns two or more successful single-document extractions into a
DocumentVerificationReport with one strict-JSON generator request.

IMPORTANT:
- The executor's retry is the only retry. Parse and schema failures
  propagate; no fallback report is fabricated.
- Report metadata is stamped here after parsing.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from doclens.app.config import StageModelConfig
from doclens.app.errors import InsufficientInput, SchemaViolation
from doclens.app.events import (
    PipelineEvent,
    PipelineEventType,
    PipelineEventEmitter,
    NullEventEmitter,
)
from doclens.app.generation.cost import compute_cost
from doclens.app.generation.request import ContentBlock, GenerationRequest
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.parsing.json_extractor import extract_json, require_fields
from doclens.app.prompts.prompt_fragment import PromptFragment
from doclens.app.schemas.documents import DocumentExtraction
from doclens.app.schemas.verification_report import (
    DocumentVerificationReport,
    ReportMetadata,
)

logger = logging.getLogger(__name__)

MIN_DOCUMENTS = 2

REQUIRED_REPORT_FIELDS = (
    "summary",
    "summary.consistencyScore",
    "summary.riskAssessment",
    "discrepancies",
)

REPORT_SCHEMA: Dict[str, Any] = {
    "summary": {
        "shipmentIdentifier": "string",
        "documentCount": "number",
        "documentTypes": ["string"],
        "consistencyScore": "number between 0.0 and 1.0",
        "riskAssessment": "low | medium | high",
        "expertSummary": "string",
    },
    "discrepancies": [
        {
            "fieldName": "string",
            "category": "critical | important | minor",
            "impact": "string",
            "documents": [{"documentName": "string", "value": "string"}],
            "recommendation": "string",
        }
    ],
    "insights": [
        {
            "title": "string",
            "description": "string",
            "category": "compliance | operational | financial | customs",
            "severity": "info | warning | critical",
        }
    ],
    "recommendations": [
        {
            "action": "string",
            "priority": "high | medium | low",
            "reasoning": "string",
        }
    ],
}


def format_document(extraction: DocumentExtraction) -> str:
    data = json.dumps(extraction.data, ensure_ascii=False, indent=2)
    return (
        "<document>\n"
        f"  <fileName>{extraction.file_name}</fileName>\n"
        f"  <documentType>{extraction.document_type}</documentType>\n"
        "  <extractionConfidence>"
        f"{extraction.extraction_confidence:.2f}"
        "</extractionConfidence>\n"
        f"  <extractedData>\n{data}\n  </extractedData>\n"
        "</document>"
    )


def _schema_violation(exc: ValidationError) -> SchemaViolation:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())) or "report"
    return SchemaViolation(
        field,
        detail=first.get("msg"),
        original_error=exc,
    )


class VerificationEngine:
    """
    Produces a discrepancy report for a set of extracted documents.
    """

    STAGE = "verification"

    def __init__(
        self,
        *,
        executor: StageExecutor,
        model: StageModelConfig,
        prompt: PromptFragment,
    ) -> None:
        self._executor = executor
        self._model = model
        self._prompt = prompt

    def build_request(
        self,
        extractions: Sequence[DocumentExtraction],
    ) -> GenerationRequest:
        prompt_text = self._prompt.render(
            documents="\n\n".join(format_document(e) for e in extractions),
            schema=json.dumps(REPORT_SCHEMA, indent=2),
        )
        return GenerationRequest(
            blocks=[ContentBlock.from_text(prompt_text)],
            model=self._model.model,
            max_tokens=self._model.max_tokens,
            temperature=self._model.temperature,
            stage=self.STAGE,
        )

    async def verify(
        self,
        extractions: Sequence[DocumentExtraction],
        *,
        run_id: Optional[str] = None,
        emitter: Optional[PipelineEventEmitter] = None,
    ) -> DocumentVerificationReport:
        usable: List[DocumentExtraction] = [e for e in extractions if e.usable]
        if len(usable) < MIN_DOCUMENTS:
            raise InsufficientInput(
                required=MIN_DOCUMENTS,
                received=len(usable),
                message=(
                    "At least two documents must be successfully extracted "
                    "to run verification."
                ),
            )

        emitter = emitter or NullEventEmitter()
        started = time.perf_counter()

        if run_id is not None:
            await emitter.emit(
                PipelineEvent(
                    run_id=run_id,
                    event_type=PipelineEventType.VERIFICATION_STARTED,
                    details={
                        "documents": len(usable),
                        "skipped": len(extractions) - len(usable),
                    },
                )
            )

        try:
            report = await self._verify(usable, run_id=run_id, emitter=emitter)
        except Exception as exc:
            logger.error("Verification failed: %s", exc)
            if run_id is not None:
                await emitter.emit(
                    PipelineEvent(
                        run_id=run_id,
                        event_type=PipelineEventType.VERIFICATION_FAILED,
                        details={
                            "error_type": type(exc).__name__,
                            "message": str(exc),
                        },
                    )
                )
            raise

        processing_time = time.perf_counter() - started
        report = report.model_copy(
            update={
                "metadata": ReportMetadata(
                    analysis_timestamp=datetime.now(timezone.utc),
                    processing_time=processing_time,
                ),
            }
        )

        logger.info(
            "Verified %d documents in %.2fs: consistency=%.2f risk=%s "
            "discrepancies=%d cost=$%.6f",
            len(usable),
            processing_time,
            report.summary.consistency_score,
            report.summary.risk_assessment.value,
            len(report.discrepancies),
            report.usage.cost,
        )

        if run_id is not None:
            await emitter.emit(
                PipelineEvent(
                    run_id=run_id,
                    event_type=PipelineEventType.VERIFICATION_COMPLETED,
                    details={
                        "consistency_score": report.summary.consistency_score,
                        "risk_assessment": report.summary.risk_assessment.value,
                        "discrepancies": len(report.discrepancies),
                        "usage": report.usage.model_dump(),
                    },
                )
            )

        return report

    async def _verify(
        self,
        extractions: Sequence[DocumentExtraction],
        *,
        run_id: Optional[str],
        emitter: PipelineEventEmitter,
    ) -> DocumentVerificationReport:
        response = await self._executor.execute(
            self.build_request(extractions),
            run_id=run_id,
            emitter=emitter,
        )
        usage = compute_cost(response.usage, self._model.pricing)

        payload = extract_json(response.text)
        require_fields(payload, REQUIRED_REPORT_FIELDS)
        payload.pop("metadata", None)
        payload.pop("usage", None)

        try:
            report = DocumentVerificationReport.model_validate(payload)
        except ValidationError as exc:
            raise _schema_violation(exc) from exc

        return report.model_copy(update={"usage": usage})
