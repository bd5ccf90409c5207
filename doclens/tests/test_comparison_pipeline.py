import anyio
import pytest

from doclens.app.errors import InsufficientInput, TransportError
from doclens.app.events.models import PipelineEventType
from doclens.app.schemas.stages import PipelineStage
from doclens.app.schemas.usage import TokenUsage
from doclens.tests.fake_generator import ListEmitter, ScriptedGenerator
from doclens.tests.helpers import (
    ANALYSIS_REPLY,
    EXTRACTION_REPLY,
    VALIDATION_REPLY,
    make_pipeline,
    sample_documents,
)


def _run(pipeline, documents, **kwargs):
    async def _go():
        return await pipeline.run(documents, **kwargs)

    return anyio.run(_go)


def test_full_run_executes_three_stages():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY, VALIDATION_REPLY])
    pipeline = make_pipeline(generator)

    result = _run(pipeline, sample_documents())

    assert generator.calls == 3
    assert result.stages_executed == [
        PipelineStage.EXTRACTION,
        PipelineStage.ANALYSIS,
        PipelineStage.VALIDATION,
    ]
    assert result.result == result.validation.comparison
    assert result.validation.reported_confidence == 85
    assert result.validation.is_valid
    assert result.validation.reasoning_trace == (
        "I compared every field against the source text."
    )
    assert 0.5 <= result.confidence <= 1.0


def test_extraction_payload_is_mapped():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY])
    pipeline = make_pipeline(generator, SKIP_VALIDATION=True)

    extraction = _run(pipeline, sample_documents()).extraction

    assert [r.document_index for r in extraction.document_records] == [1, 2]
    assert extraction.document_types == ["Invoice", "Packing List"]
    assert extraction.field_index["Gross Weight"] == ["120 kg", "118 kg"]
    assert extraction.encoding_errors == []
    assert not extraction.degraded


def test_total_usage_is_sum_of_executed_stages():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY, VALIDATION_REPLY])
    result = _run(make_pipeline(generator), sample_documents())

    expected = TokenUsage.total(
        [result.extraction.usage, result.analysis.usage, result.validation.usage]
    )
    assert result.total_usage.input == expected.input == 300
    assert result.total_usage.output == expected.output == 150
    assert result.total_usage.cost == pytest.approx(expected.cost)
    assert result.total_usage.cost == pytest.approx(3 * 0.00105)


def test_skip_validation_returns_analysis_verbatim():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY])
    pipeline = make_pipeline(generator, SKIP_VALIDATION=True)

    result = _run(pipeline, sample_documents())

    assert generator.calls == 2
    assert result.validation is None
    assert result.confidence is None
    assert result.result == result.analysis.comparison
    assert result.stages_executed == [PipelineStage.EXTRACTION, PipelineStage.ANALYSIS]
    assert result.total_usage == result.extraction.usage + result.analysis.usage


def test_skip_flag_can_be_overridden_per_run():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY])
    pipeline = make_pipeline(generator)

    result = _run(pipeline, sample_documents(), skip_validation=True)

    assert result.validation is None
    assert generator.calls == 2


def test_empty_document_list_is_rejected():
    pipeline = make_pipeline(ScriptedGenerator([]))

    with pytest.raises(InsufficientInput):
        _run(pipeline, [])


def test_stage_requests_carry_expected_content():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY, VALIDATION_REPLY])
    _run(make_pipeline(generator), sample_documents(), comparison_type="logistics")

    extraction, analysis, validation = generator.requests

    # Documents first, cache hint on the last document and the instructions
    assert [b.cache_hint for b in extraction.blocks] == [False, True, True]
    assert extraction.blocks[0].text.startswith("Document 1: invoice-001.txt")
    assert extraction.thinking_budget is None

    assert len(analysis.blocks) == 1
    analysis_text = analysis.blocks[0].text
    assert "INV-001" in analysis_text
    assert "- Gross Weight: 120 kg, 118 kg" in analysis_text
    assert "Reconcile shipper, consignee" in analysis_text

    assert validation.thinking_budget == 32000
    texts = [b.text for b in validation.blocks]
    assert texts[2].startswith("Extracted Document Data:")
    assert texts[3].startswith("Analysis Result:")
    assert sum(1 for b in validation.blocks if b.cache_hint) <= 4


def test_events_bracket_the_run():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY, VALIDATION_REPLY])
    emitter = ListEmitter()

    _run(make_pipeline(generator), sample_documents(), run_id="run-7", emitter=emitter)

    types = emitter.types()
    assert types[0] == PipelineEventType.PIPELINE_STARTED.value
    assert types[-1] == PipelineEventType.PIPELINE_COMPLETED.value
    completed = [
        e.details["stage"]
        for e in emitter.events
        if e.event_type == PipelineEventType.STAGE_COMPLETED
    ]
    assert completed == ["extraction", "analysis", "validation"]
    assert all(e.run_id == "run-7" for e in emitter.events)


def test_skipped_validation_is_reported():
    generator = ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY])
    emitter = ListEmitter()

    _run(
        make_pipeline(generator, SKIP_VALIDATION=True),
        sample_documents(),
        run_id="run-8",
        emitter=emitter,
    )

    skipped = [
        e for e in emitter.events if e.event_type == PipelineEventType.STAGE_SKIPPED
    ]
    assert [e.details["stage"] for e in skipped] == ["validation"]


def test_analysis_failure_propagates_and_is_reported():
    generator = ScriptedGenerator([EXTRACTION_REPLY, TransportError("down")])
    emitter = ListEmitter()
    pipeline = make_pipeline(generator, MAX_ATTEMPTS=1, DEGRADE_STRATEGY="fixture")

    with pytest.raises(TransportError):
        _run(pipeline, sample_documents(), run_id="run-9", emitter=emitter)

    assert emitter.types()[-1] == PipelineEventType.PIPELINE_FAILED.value
    assert emitter.events[-1].details["error_type"] == "TransportError"
