from __future__ import annotations

from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ConfigDict, PrivateAttr

from doclens.app.events import PipelineEventEmitter, NullEventEmitter
from doclens.app.generation.request import ContentBlock
from doclens.app.pipeline.content import encode_documents
from doclens.app.schemas.documents import DocumentEncodingError, SourceDocument
from doclens.app.schemas.stages import (
    AnalysisResult,
    ExtractionResult,
    PipelineStage,
    ValidationResult,
)

StageResult = Union[ExtractionResult, AnalysisResult, ValidationResult]


class PipelineContext(BaseModel):
    """
    Per-run state shared by the stages of one comparison run.

    Created by the orchestrator for each run and closed when the run
    ends, whether it succeeded or not. Nothing here outlives the run.

    IMPORTANT:
    - Inputs are immutable.
    - Runtime state (encoded documents, stage results) is private and
      only written by the orchestrator and the stages it runs.
    """

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    documents: List[SourceDocument] = Field(..., min_length=1)
    comparison_type: str = "general"
    run_id: Optional[str] = Field(
        None,
        description="Run identifier; events are emitted only when set",
    )

    # ------------------------------------------------------------------
    # Runtime-only plumbing (NOT model fields)
    # ------------------------------------------------------------------

    _emitter: PipelineEventEmitter = PrivateAttr(default_factory=NullEventEmitter)
    _document_blocks: Optional[List[ContentBlock]] = PrivateAttr(default=None)
    _encoding_errors: List[DocumentEncodingError] = PrivateAttr(
        default_factory=list
    )
    _results: Dict[PipelineStage, StageResult] = PrivateAttr(default_factory=dict)
    _closed: bool = PrivateAttr(default=False)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def create(
        cls,
        *,
        documents: List[SourceDocument],
        comparison_type: str = "general",
        run_id: Optional[str] = None,
        emitter: Optional[PipelineEventEmitter] = None,
    ) -> "PipelineContext":
        context = cls(
            documents=documents,
            comparison_type=comparison_type,
            run_id=run_id,
        )
        context._emitter = emitter or NullEventEmitter()
        return context

    @property
    def emitter(self) -> PipelineEventEmitter:
        return self._emitter

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Encoded documents (computed once per run)
    # ------------------------------------------------------------------

    async def document_blocks(
        self,
    ) -> Tuple[List[ContentBlock], List[DocumentEncodingError]]:
        if self._closed:
            raise RuntimeError("PipelineContext is closed")
        if self._document_blocks is None:
            blocks, errors = await encode_documents(self.documents)
            self._document_blocks = blocks
            self._encoding_errors = errors
        return list(self._document_blocks), list(self._encoding_errors)

    # ------------------------------------------------------------------
    # Stage results
    # ------------------------------------------------------------------

    def record(self, stage: PipelineStage, result: StageResult) -> None:
        if stage in self._results:
            raise RuntimeError(f"Stage {stage.value} already recorded")
        self._results[stage] = result

    def result(self, stage: PipelineStage) -> Optional[StageResult]:
        return self._results.get(stage)

    def executed_stages(self) -> List[PipelineStage]:
        return list(self._results)

    def close(self) -> None:
        self._document_blocks = None
        self._encoding_errors = []
        self._results = {}
        self._closed = True
