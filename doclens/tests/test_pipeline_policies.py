import json

import anyio
import pytest

from doclens.app.errors import MalformedResponse, SchemaViolation, TransportError
from doclens.app.events.models import PipelineEventType
from doclens.app.pipeline.policies import (
    FixtureStrategy,
    ParseRetryPolicy,
    build_degrade_strategy,
    guess_document_type,
)
from doclens.tests.fake_generator import ListEmitter, ScriptedGenerator
from doclens.tests.helpers import (
    ANALYSIS_REPLY,
    EXTRACTION_REPLY,
    make_pipeline,
    sample_documents,
)


def _run(pipeline, **kwargs):
    async def _go():
        return await pipeline.run(sample_documents(), **kwargs)

    return anyio.run(_go)


# ----------------------------------------------------------------------
# Parse-retry policy
# ----------------------------------------------------------------------

def test_malformed_extraction_propagates_without_reissue():
    generator = ScriptedGenerator(["Sorry, I cannot help with that."])
    pipeline = make_pipeline(generator)

    with pytest.raises(MalformedResponse):
        _run(pipeline)

    # Parse failures are not transport failures; the executor does not retry
    assert generator.calls == 1


def test_reissue_policy_sends_request_again_and_charges_both_calls():
    generator = ScriptedGenerator(["not json", EXTRACTION_REPLY, ANALYSIS_REPLY])
    pipeline = make_pipeline(
        generator,
        PARSE_RETRY_POLICY="reissue_request",
        SKIP_VALIDATION=True,
    )

    result = _run(pipeline)

    assert generator.calls == 3
    assert generator.requests[0] == generator.requests[1]
    assert result.extraction.usage.input == 200
    assert result.extraction.usage.output == 100
    assert result.total_usage.input == 300


def test_reissue_policy_gives_up_after_second_malformed_reply():
    generator = ScriptedGenerator(["not json", "still not json"])
    pipeline = make_pipeline(generator, PARSE_RETRY_POLICY="reissue_request")

    with pytest.raises(MalformedResponse):
        _run(pipeline)

    assert generator.calls == 2


def test_policy_issue_counts():
    assert ParseRetryPolicy.NONE.max_issues == 1
    assert ParseRetryPolicy.REISSUE_REQUEST.max_issues == 2


# ----------------------------------------------------------------------
# Degrade strategies
# ----------------------------------------------------------------------

def test_rethrow_strategy_aborts_on_extraction_failure():
    generator = ScriptedGenerator([TransportError("down")])
    pipeline = make_pipeline(generator, MAX_ATTEMPTS=1)

    with pytest.raises(TransportError):
        _run(pipeline)


def test_fixture_strategy_continues_with_placeholder_extraction():
    generator = ScriptedGenerator([TransportError("down"), ANALYSIS_REPLY])
    emitter = ListEmitter()
    pipeline = make_pipeline(
        generator,
        MAX_ATTEMPTS=1,
        DEGRADE_STRATEGY="fixture",
        SKIP_VALIDATION=True,
    )

    result = _run(pipeline, run_id="run-degraded", emitter=emitter)

    extraction = result.extraction
    assert extraction.degraded
    assert extraction.usage.cost == 0.0
    assert [r.document_type for r in extraction.document_records] == [
        "Invoice",
        "Packing List",
    ]
    assert extraction.document_records[0].fields == {
        "File Name": "invoice-001.txt",
        "Error": "Extraction failed: down",
    }
    # Degraded extraction contributes no usage
    assert result.total_usage == result.analysis.usage

    degraded = [
        e for e in emitter.events if e.event_type == PipelineEventType.STAGE_DEGRADED
    ]
    assert degraded[0].details["strategy"] == "fixture"


def test_schema_violation_in_extraction_payload():
    reply = json.dumps({"documentData": {"not": "a list"}})
    pipeline = make_pipeline(ScriptedGenerator([reply]))

    with pytest.raises(SchemaViolation) as exc_info:
        _run(pipeline)

    assert exc_info.value.field == "documentData"


def test_missing_document_index_defaults_to_position():
    reply = json.dumps(
        {"documentData": [{"fields": {"a": 1}}, {"documentIndex": "x", "fields": {}}]}
    )
    generator = ScriptedGenerator([reply, ANALYSIS_REPLY])

    result = _run(make_pipeline(generator, SKIP_VALIDATION=True))

    records = result.extraction.document_records
    assert [r.document_index for r in records] == [1, 2]
    assert result.extraction.document_types == ["Unknown Document"] * 2
    assert result.extraction.field_index == {}


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("INVOICE_2024.pdf", "Invoice"),
        ("purchase-order.pdf", "Purchase Order"),
        ("bill of lading.pdf", "Bill of Lading"),
        ("packing.xlsx", "Packing List"),
        ("manifest.csv", "Manifest"),
        ("delivery.txt", "Delivery Order"),
        ("notes.txt", "Unknown Document"),
    ],
)
def test_guess_document_type(file_name, expected):
    assert guess_document_type(file_name) == expected


def test_unknown_degrade_strategy_is_rejected():
    assert isinstance(build_degrade_strategy("fixture"), FixtureStrategy)

    with pytest.raises(ValueError):
        build_degrade_strategy("mock")
