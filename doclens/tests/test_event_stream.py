import json

import anyio

from doclens.app.events import MemoryQueueEventEmitter, PipelineEvent, PipelineEventType
from doclens.tests.fake_generator import ListEmitter, ScriptedGenerator
from doclens.tests.helpers import (
    ANALYSIS_REPLY,
    EXTRACTION_REPLY,
    make_pipeline,
    sample_documents,
)


def _event(event_type: PipelineEventType, **details) -> PipelineEvent:
    return PipelineEvent(run_id="run-1", event_type=event_type, details=details or None)


def test_sse_payload_format():
    payload = _event(PipelineEventType.STAGE_STARTED, stage="extraction").to_sse_payload()

    assert payload.startswith("event: stage_started\ndata: ")
    assert payload.endswith("\n\n")

    data = json.loads(payload.split("data: ", 1)[1])
    assert data["run_id"] == "run-1"
    assert data["details"] == {"stage": "extraction"}


async def _drain(emitter: MemoryQueueEventEmitter, events) -> list:
    for event in events:
        await emitter.emit(event)
    return [e.event_type async for e in emitter.stream()]


def test_queue_closes_on_terminal_event():
    emitter = MemoryQueueEventEmitter()

    async def _go():
        return await _drain(
            emitter,
            [
                _event(PipelineEventType.PIPELINE_STARTED),
                _event(PipelineEventType.PIPELINE_FAILED),
                _event(PipelineEventType.REPORT_READY),
            ],
        )

    received = anyio.run(_go)

    assert received == [
        PipelineEventType.PIPELINE_STARTED,
        PipelineEventType.PIPELINE_FAILED,
    ]
    assert emitter.closed


def test_queue_can_stay_open_past_terminal_event():
    emitter = MemoryQueueEventEmitter(close_on_terminal=False)

    async def _go():
        await emitter.emit(_event(PipelineEventType.PIPELINE_COMPLETED))
        assert not emitter.closed
        await emitter.emit(_event(PipelineEventType.REPORT_READY))
        await emitter.close()
        return [e.event_type async for e in emitter.stream()]

    assert anyio.run(_go) == [
        PipelineEventType.PIPELINE_COMPLETED,
        PipelineEventType.REPORT_READY,
    ]


def test_pipeline_events_arrive_in_stage_order():
    emitter = ListEmitter()
    pipeline = make_pipeline(
        ScriptedGenerator([EXTRACTION_REPLY, ANALYSIS_REPLY]),
        SKIP_VALIDATION=True,
    )

    async def _go():
        await pipeline.run(sample_documents(), run_id="run-7", emitter=emitter)

    anyio.run(_go)

    stage_events = [
        (e.event_type, e.details["stage"])
        for e in emitter.events
        if e.event_type.value.startswith("stage_")
    ]
    assert stage_events == [
        (PipelineEventType.STAGE_STARTED, "extraction"),
        (PipelineEventType.STAGE_COMPLETED, "extraction"),
        (PipelineEventType.STAGE_STARTED, "analysis"),
        (PipelineEventType.STAGE_COMPLETED, "analysis"),
        (PipelineEventType.STAGE_SKIPPED, "validation"),
    ]
    assert {e.run_id for e in emitter.events} == {"run-7"}
