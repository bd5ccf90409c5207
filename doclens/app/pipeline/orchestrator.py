"""
Three-stage document comparison pipeline.

Runs extraction, analysis and (optionally) validation in strict order
over a single PipelineContext.

IMPORTANT:
- Stages only move forward. A stage never runs twice within a run.
- Only an extraction failure consults the degrade strategy. Analysis
  and validation failures abort the run.
- total_usage is the sum of the usage of executed stages. A degraded
  extraction contributes zero.
- Events are observational and only emitted when run_id is set.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from doclens.app.errors import InsufficientInput
from doclens.app.events import (
    PipelineEvent,
    PipelineEventType,
    PipelineEventEmitter,
    NullEventEmitter,
)
from doclens.app.pipeline.context import PipelineContext
from doclens.app.pipeline.policies import DegradeStrategy, RethrowStrategy
from doclens.app.pipeline.stages.analysis import AnalysisStage
from doclens.app.pipeline.stages.extraction import ExtractionStage
from doclens.app.pipeline.stages.validation import ValidationStage
from doclens.app.schemas.documents import SourceDocument
from doclens.app.schemas.stages import (
    ExtractionResult,
    PipelineResult,
    PipelineStage,
)
from doclens.app.schemas.usage import TokenUsage

logger = logging.getLogger(__name__)


class ComparisonPipeline:
    """
    Deterministic orchestrator for the comparison stages.

    This pipeline owns:
    - stage ordering and the skip-validation decision
    - failure policy for the extraction stage
    - aggregation of usage and timing

    It does NOT own:
    - prompts or output parsing (stages)
    - retry of generator calls (StageExecutor)
    """

    def __init__(
        self,
        *,
        extraction: ExtractionStage,
        analysis: AnalysisStage,
        validation: ValidationStage,
        degrade_strategy: Optional[DegradeStrategy] = None,
        skip_validation: bool = False,
    ) -> None:
        self._extraction = extraction
        self._analysis = analysis
        self._validation = validation
        self._degrade_strategy = degrade_strategy or RethrowStrategy()
        self.skip_validation = skip_validation

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def run(
        self,
        documents: List[SourceDocument],
        *,
        comparison_type: str = "general",
        skip_validation: Optional[bool] = None,
        run_id: Optional[str] = None,
        emitter: Optional[PipelineEventEmitter] = None,
    ) -> PipelineResult:
        if not documents:
            raise InsufficientInput(required=1, received=0)

        emitter = emitter or NullEventEmitter()
        skip = self.skip_validation if skip_validation is None else skip_validation
        started = time.perf_counter()

        context = PipelineContext.create(
            documents=documents,
            comparison_type=comparison_type,
            run_id=run_id,
            emitter=emitter,
        )

        await self._emit(
            context,
            PipelineEventType.PIPELINE_STARTED,
            {
                "documents": len(documents),
                "comparison_type": comparison_type,
                "skip_validation": skip,
            },
        )

        try:
            result = await self._run_stages(context, skip=skip, started=started)
        except Exception as exc:
            logger.error(
                "Comparison run %s failed: %s",
                run_id or "-",
                exc,
            )
            await self._emit(
                context,
                PipelineEventType.PIPELINE_FAILED,
                {
                    "error_type": type(exc).__name__,
                    "message": str(exc),
                },
            )
            raise
        finally:
            context.close()

        logger.info(
            "Comparison run %s completed in %.2fs: stages=%s cost=$%.6f "
            "cache_savings=$%.6f",
            run_id or "-",
            result.processing_time,
            ",".join(s.value for s in result.stages_executed),
            result.total_usage.cost,
            result.total_usage.cache_savings,
        )

        await self._emit(
            context,
            PipelineEventType.PIPELINE_COMPLETED,
            {
                "stages_executed": [s.value for s in result.stages_executed],
                "processing_time": result.processing_time,
                "usage": result.total_usage.model_dump(),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Stage sequencing
    # ------------------------------------------------------------------
    async def _run_stages(
        self,
        context: PipelineContext,
        *,
        skip: bool,
        started: float,
    ) -> PipelineResult:
        extraction = await self._run_extraction(context)
        context.record(PipelineStage.EXTRACTION, extraction)

        await self._emit_stage(
            context, PipelineEventType.STAGE_STARTED, PipelineStage.ANALYSIS
        )
        analysis = await self._analysis.run(context, extraction)
        context.record(PipelineStage.ANALYSIS, analysis)
        await self._emit_stage(
            context,
            PipelineEventType.STAGE_COMPLETED,
            PipelineStage.ANALYSIS,
            usage=analysis.usage,
        )

        validation = None
        if skip:
            logger.info("Validation stage skipped")
            await self._emit_stage(
                context, PipelineEventType.STAGE_SKIPPED, PipelineStage.VALIDATION
            )
        else:
            await self._emit_stage(
                context, PipelineEventType.STAGE_STARTED, PipelineStage.VALIDATION
            )
            validation = await self._validation.run(context, extraction, analysis)
            context.record(PipelineStage.VALIDATION, validation)
            await self._emit_stage(
                context,
                PipelineEventType.STAGE_COMPLETED,
                PipelineStage.VALIDATION,
                usage=validation.usage,
                confidence=validation.confidence,
            )

        final = validation.comparison if validation is not None else analysis.comparison
        stage_results = [extraction, analysis] + (
            [validation] if validation is not None else []
        )

        return PipelineResult(
            run_id=context.run_id,
            result=final,
            extraction=extraction,
            analysis=analysis,
            validation=validation,
            total_usage=TokenUsage.total(r.usage for r in stage_results),
            processing_time=time.perf_counter() - started,
            stages_executed=context.executed_stages(),
        )

    async def _run_extraction(self, context: PipelineContext) -> ExtractionResult:
        await self._emit_stage(
            context, PipelineEventType.STAGE_STARTED, PipelineStage.EXTRACTION
        )
        try:
            extraction = await self._extraction.run(context)
        except Exception as exc:
            logger.warning(
                "Extraction stage failed; applying '%s' strategy",
                self._degrade_strategy.name,
            )
            extraction = await self._degrade_strategy.on_extraction_failure(
                exc, context.documents
            )
            await self._emit_stage(
                context,
                PipelineEventType.STAGE_DEGRADED,
                PipelineStage.EXTRACTION,
                strategy=self._degrade_strategy.name,
                error_type=type(exc).__name__,
            )
            return extraction

        await self._emit_stage(
            context,
            PipelineEventType.STAGE_COMPLETED,
            PipelineStage.EXTRACTION,
            usage=extraction.usage,
            encoding_errors=len(extraction.encoding_errors),
        )
        return extraction

    # ------------------------------------------------------------------
    # Events (observational)
    # ------------------------------------------------------------------
    async def _emit(
        self,
        context: PipelineContext,
        event_type: PipelineEventType,
        details: Dict[str, Any],
    ) -> None:
        if context.run_id is None:
            return
        await context.emitter.emit(
            PipelineEvent(
                run_id=context.run_id,
                event_type=event_type,
                details=details,
            )
        )

    async def _emit_stage(
        self,
        context: PipelineContext,
        event_type: PipelineEventType,
        stage: PipelineStage,
        *,
        usage: Optional[TokenUsage] = None,
        **extra: Any,
    ) -> None:
        details: Dict[str, Any] = {"stage": stage.value, **extra}
        if usage is not None:
            details["usage"] = usage.model_dump()
        await self._emit(context, event_type, details)
