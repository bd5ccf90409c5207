import json

import anyio
import pytest

from doclens.app.config import DEFAULT_STAGE_MODELS
from doclens.app.errors import InsufficientInput, MalformedResponse, SchemaViolation
from doclens.app.events.models import PipelineEventType
from doclens.app.prompts.prompt_fragment import load_prompt
from doclens.app.schemas.documents import DocumentExtraction
from doclens.app.schemas.verification_report import (
    DiscrepancyCategory,
    RiskLevel,
)
from doclens.app.verification.engine import VerificationEngine
from doclens.tests.fake_generator import ListEmitter, ScriptedGenerator
from doclens.tests.helpers import REPORT_REPLY, make_executor


def _extraction(name: str, *, success: bool = True) -> DocumentExtraction:
    return DocumentExtraction(
        file_name=name,
        document_type="invoice",
        success=success,
        data={"invoiceNumber": "INV-001"} if success else None,
        extraction_confidence=0.8,
        error=None if success else "boom",
    )


def _engine(generator) -> VerificationEngine:
    return VerificationEngine(
        executor=make_executor(generator),
        model=DEFAULT_STAGE_MODELS["verification"],
        prompt=load_prompt("verification"),
    )


def _verify(engine, extractions, **kwargs):
    async def _go():
        return await engine.verify(extractions, **kwargs)

    return anyio.run(_go)


def test_requires_two_successful_extractions():
    generator = ScriptedGenerator([REPORT_REPLY])
    engine = _engine(generator)

    with pytest.raises(InsufficientInput) as exc_info:
        _verify(engine, [_extraction("a.pdf"), _extraction("b.pdf", success=False)])

    assert exc_info.value.received == 1
    assert "two documents" in str(exc_info.value)
    assert generator.calls == 0


def test_report_is_parsed_and_stamped():
    generator = ScriptedGenerator([REPORT_REPLY])
    emitter = ListEmitter()

    report = _verify(
        _engine(generator),
        [_extraction("invoice.pdf"), _extraction("packing.pdf")],
        run_id="verify-1",
        emitter=emitter,
    )

    assert report.summary.consistency_score == pytest.approx(0.72)
    assert report.summary.risk_assessment == RiskLevel.MEDIUM
    assert report.discrepancies[0].category == DiscrepancyCategory.CRITICAL
    assert len(report.critical_discrepancies) == 1
    assert report.discrepancies[0].documents[1].value == "118 kg"

    # Generator-supplied metadata is replaced
    assert report.metadata.analysis_timestamp is not None
    assert report.metadata.analysis_timestamp.tzinfo is not None
    assert report.metadata.processing_time < 999999
    assert report.usage.input == 100

    assert emitter.types()[0] == PipelineEventType.VERIFICATION_STARTED.value
    assert emitter.types()[-1] == PipelineEventType.VERIFICATION_COMPLETED.value


def test_request_embeds_documents_and_schema():
    generator = ScriptedGenerator([REPORT_REPLY])

    _verify(_engine(generator), [_extraction("invoice.pdf"), _extraction("packing.pdf")])

    (request,) = generator.requests
    text = request.blocks[0].text
    assert text.count("<document>") == 2
    assert "<extractionConfidence>0.80</extractionConfidence>" in text
    assert '"consistencyScore"' in text
    assert request.temperature == pytest.approx(0.1)


def test_only_successful_extractions_are_sent():
    generator = ScriptedGenerator([REPORT_REPLY])

    _verify(
        _engine(generator),
        [
            _extraction("invoice.pdf"),
            _extraction("broken.pdf", success=False),
            _extraction("packing.pdf"),
        ],
    )

    text = generator.requests[0].blocks[0].text
    assert "broken.pdf" not in text


def test_missing_required_field_is_schema_violation():
    reply = json.dumps({"summary": {"consistencyScore": 0.5}, "discrepancies": []})
    emitter = ListEmitter()

    with pytest.raises(SchemaViolation) as exc_info:
        _verify(
            _engine(ScriptedGenerator([reply])),
            [_extraction("a.pdf"), _extraction("b.pdf")],
            run_id="verify-2",
            emitter=emitter,
        )

    assert exc_info.value.field == "summary.riskAssessment"
    assert emitter.types()[-1] == PipelineEventType.VERIFICATION_FAILED.value


def test_invalid_value_is_schema_violation_naming_path():
    reply = json.dumps(
        {
            "summary": {"consistencyScore": 1.7, "riskAssessment": "low"},
            "discrepancies": [],
        }
    )

    with pytest.raises(SchemaViolation) as exc_info:
        _verify(
            _engine(ScriptedGenerator([reply])),
            [_extraction("a.pdf"), _extraction("b.pdf")],
        )

    assert exc_info.value.field == "summary.consistencyScore"


def test_non_json_reply_propagates():
    with pytest.raises(MalformedResponse):
        _verify(
            _engine(ScriptedGenerator(["I cannot compare these."])),
            [_extraction("a.pdf"), _extraction("b.pdf")],
        )


def test_report_serializes_with_camel_case_aliases():
    report = _verify(
        _engine(ScriptedGenerator([REPORT_REPLY])),
        [_extraction("a.pdf"), _extraction("b.pdf")],
    )

    dumped = report.model_dump(by_alias=True, mode="json")

    assert dumped["summary"]["consistencyScore"] == pytest.approx(0.72)
    assert "analysisTimestamp" in dumped["metadata"]


def test_numeric_discrepancy_values_become_text():
    reply = json.dumps(
        {
            "summary": {"consistencyScore": 0.4, "riskAssessment": "high"},
            "discrepancies": [
                {
                    "fieldName": "totalAmount",
                    "category": "critical",
                    "documents": [
                        {"documentName": "a.pdf", "value": 1500},
                        {"documentName": "b.pdf", "value": 1499.5},
                        {"documentName": "c.pdf", "value": {"amount": 1500}},
                    ],
                }
            ],
        }
    )

    report = _verify(
        _engine(ScriptedGenerator([reply])),
        [_extraction("a.pdf"), _extraction("b.pdf")],
    )

    values = [d.value for d in report.discrepancies[0].documents]
    assert values == ["1500", "1499.5", '{"amount": 1500}']
