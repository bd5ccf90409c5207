"""
FastAPI entrypoint for the DocLens comparison service.

This module defines the public HTTP interface: multi-document
comparison (plain and streaming), single-document extraction and
cross-document verification.

The application is stateless between requests. Documents arrive already
decoded (text) or base64-encoded (PDF, image); nothing is read from disk
and nothing is persisted.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ConfigDict
from starlette.responses import Response

from doclens.app.config import PipelineConfig
from doclens.app.errors import (
    AuthError,
    DocLensError,
    InsufficientInput,
    MalformedResponse,
    SchemaViolation,
    TransportError,
)
from doclens.app.events import (
    MemoryQueueEventEmitter,
    PipelineEvent,
    PipelineEventType,
)
from doclens.app.generation.anthropic_generator import AnthropicGenerator
from doclens.app.generation.azure_openai import AzureOpenAIGenerator
from doclens.app.generation.request import Generator
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.pipeline.assembler import build_comparison_pipeline
from doclens.app.pipeline.orchestrator import ComparisonPipeline
from doclens.app.schemas.documents import DocumentExtraction, SourceDocument
from doclens.app.schemas.stages import PipelineResult
from doclens.app.schemas.verification_report import DocumentVerificationReport
from doclens.app.verification.assembler import (
    build_document_extractor,
    build_verification_engine,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Presentation helpers (presentation-only)
# ---------------------------------------------------------------------------

def pretty_json(data: Any) -> str:
    """
    Pretty-print JSON for human-readable output.
    """
    return json.dumps(
        data,
        ensure_ascii=False,
        allow_nan=False,
        indent=2,
        separators=(", ", ": "),
    )


class PrettyJSONResponse(Response):
    """
    Pretty-printed JSON response for human-readable console output.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return pretty_json(content).encode("utf-8")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class DocumentPayload(BaseModel):
    """
    One document as sent by a client: decoded text, or base64 `data`
    (a bare string or a data URL) for PDF and image documents.
    """

    name: str = Field(..., min_length=1)
    document_type: str = "unknown"
    text: Optional[str] = None
    data: Optional[str] = Field(None, description="Base64 or data URL")
    media_type: str = "text/plain"

    model_config = ConfigDict(extra="forbid")

    def to_source(self) -> SourceDocument:
        if self.data is not None:
            return SourceDocument.from_base64(
                name=self.name,
                payload=self.data,
                media_type=self.media_type,
                document_type=self.document_type,
            )
        return SourceDocument(
            name=self.name,
            document_type=self.document_type,
            text=self.text,
            media_type=self.media_type,
        )


class CompareRequest(BaseModel):
    documents: List[DocumentPayload] = Field(default_factory=list)
    comparison_type: str = "general"
    skip_validation: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class ExtractRequest(BaseModel):
    documents: List[DocumentPayload] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class VerifyRequest(BaseModel):
    extractions: List[DocumentExtraction] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="DocLens Service",
    description="LLM-backed multi-document comparison and verification",
    version="0.3.0",
)


def build_generator(config: PipelineConfig) -> Optional[Generator]:
    """
    Construct the configured generator backend, or None when disabled.
    """
    if config.GENERATOR_PROVIDER == "azure_openai":
        return AzureOpenAIGenerator(
            endpoint=config.AZURE_OPENAI_ENDPOINT,
            deployment=config.AZURE_OPENAI_DEPLOYMENT,
            api_version=config.AZURE_OPENAI_API_VERSION,
            timeout_seconds=config.REQUEST_TIMEOUT_SECONDS,
        )

    if config.GENERATOR_PROVIDER == "anthropic":
        return AnthropicGenerator(
            api_key=config.ANTHROPIC_API_KEY.get_secret_value(),
            timeout_seconds=config.REQUEST_TIMEOUT_SECONDS,
        )

    return None


def configure_app(
    target: FastAPI,
    config: PipelineConfig,
    generator: Optional[Generator] = None,
) -> None:
    """
    Wire every component onto `target.state`.

    With no generator the service still starts; generation routes then
    answer 503.
    """
    target.state.config = config
    target.state.pipeline = None
    target.state.extractor = None
    target.state.verifier = None

    if generator is None:
        logger.warning(
            "Generator provider is '%s'; generation routes are disabled",
            config.GENERATOR_PROVIDER,
        )
        return

    executor = StageExecutor(
        generator,
        max_attempts=config.MAX_ATTEMPTS,
        base_delay=config.BASE_DELAY_SECONDS,
    )

    target.state.pipeline = build_comparison_pipeline(
        executor=executor,
        config=config,
    )
    target.state.extractor = build_document_extractor(
        executor=executor,
        config=config,
    )
    target.state.verifier = build_verification_engine(
        executor=executor,
        config=config,
    )


# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup_event() -> None:
    """
    Application startup hook.

    Configuration is loaded once and treated as immutable for the
    lifetime of the process.
    """
    config = PipelineConfig.from_env()
    configure_app(app, config, build_generator(config))


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

def error_status(exc: DocLensError) -> int:
    if isinstance(exc, InsufficientInput):
        return 422
    if isinstance(exc, AuthError):
        return 401
    if isinstance(exc, (MalformedResponse, SchemaViolation)):
        return 502
    if isinstance(exc, TransportError):
        return 503
    return 500


@app.exception_handler(DocLensError)
async def doclens_error_handler(request: Request, exc: DocLensError) -> JSONResponse:
    content = {
        "error": type(exc).__name__,
        "detail": exc.message,
    }
    if isinstance(exc, AuthError):
        content["hint"] = exc.hint
    if isinstance(exc, SchemaViolation):
        content["field"] = exc.field
    if isinstance(exc, MalformedResponse):
        content["preview"] = exc.preview

    return JSONResponse(status_code=error_status(exc), content=content)


# ---------------------------------------------------------------------------
# Route helpers
# ---------------------------------------------------------------------------

def _require(component: Optional[object], name: str) -> Any:
    if component is None:
        raise HTTPException(
            status_code=503,
            detail=f"{name} is unavailable: no generator provider is configured",
        )
    return component


def _source_documents(payloads: List[DocumentPayload]) -> List[SourceDocument]:
    config: PipelineConfig = app.state.config

    if len(payloads) > config.MAX_DOCUMENTS:
        raise HTTPException(
            status_code=413,
            detail=(
                f"At most {config.MAX_DOCUMENTS} documents are accepted "
                f"per request. Received {len(payloads)}."
            ),
        )

    documents: List[SourceDocument] = []
    for index, payload in enumerate(payloads):
        try:
            documents.append(payload.to_source())
        except ValueError as exc:
            raise HTTPException(
                status_code=422,
                detail=f"Document {index + 1} ({payload.name}) is invalid: {exc}",
            ) from exc
    return documents


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.post(
    "/compare",
    response_model=PipelineResult,
    response_class=PrettyJSONResponse,
    summary="Compare a set of documents",
)
async def compare_documents(body: CompareRequest) -> PipelineResult:
    pipeline: ComparisonPipeline = _require(
        app.state.pipeline, "Document comparison"
    )
    documents = _source_documents(body.documents)

    return await pipeline.run(
        documents,
        comparison_type=body.comparison_type,
        skip_validation=body.skip_validation,
        run_id=str(uuid4()),
    )


# ---------------------------------------------------------------------------
# Streaming comparison (SSE)
# ---------------------------------------------------------------------------

@app.post(
    "/compare/stream",
    summary="Compare a set of documents (streaming progress)",
)
async def compare_documents_stream(body: CompareRequest):
    """
    Run a comparison while streaming progress events.

    This endpoint is observational only:
    - Client disconnects do NOT cancel the run
    - Events do NOT influence execution
    - A final report_ready event carries the PipelineResult
    """
    pipeline: ComparisonPipeline = _require(
        app.state.pipeline, "Document comparison"
    )
    documents = _source_documents(body.documents)

    run_id = str(uuid4())
    emitter = MemoryQueueEventEmitter(close_on_terminal=False)

    # --------------------------------------------------------------
    # Background run
    # --------------------------------------------------------------
    async def run_pipeline_task() -> None:
        try:
            result = await pipeline.run(
                documents,
                comparison_type=body.comparison_type,
                skip_validation=body.skip_validation,
                run_id=run_id,
                emitter=emitter,
            )
            await emitter.emit(
                PipelineEvent(
                    run_id=run_id,
                    event_type=PipelineEventType.REPORT_READY,
                    details={"result": result.model_dump(mode="json")},
                )
            )
        except Exception:
            # Pipeline already emitted PIPELINE_FAILED
            logger.exception("Streaming comparison run %s failed", run_id)
        finally:
            await emitter.close()

    asyncio.create_task(run_pipeline_task())

    # --------------------------------------------------------------
    # SSE event stream
    # --------------------------------------------------------------
    async def event_stream():
        async for event in emitter.stream():
            yield event.to_sse_payload()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.post(
    "/extract",
    response_model=List[DocumentExtraction],
    response_class=PrettyJSONResponse,
    summary="Extract structured fields from each document",
)
async def extract_documents(body: ExtractRequest) -> List[DocumentExtraction]:
    extractor = _require(app.state.extractor, "Document extraction")
    documents = _source_documents(body.documents)

    return await extractor.extract_many(documents)


@app.post(
    "/verify",
    response_model=DocumentVerificationReport,
    response_class=PrettyJSONResponse,
    summary="Verify extracted documents against each other",
)
async def verify_documents(body: VerifyRequest) -> DocumentVerificationReport:
    verifier = _require(app.state.verifier, "Document verification")

    return await verifier.verify(body.extractions, run_id=str(uuid4()))


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    config: PipelineConfig = app.state.config
    return JSONResponse(
        content={
            "status": "ok",
            "service": "doclens",
            "generator": config.GENERATOR_PROVIDER,
        }
    )
