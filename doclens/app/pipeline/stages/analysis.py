from __future__ import annotations

import json

from doclens.app.generation.request import ContentBlock
from doclens.app.parsing.response_parser import parse_response
from doclens.app.pipeline.context import PipelineContext
from doclens.app.pipeline.stages.base import StageMixin
from doclens.app.prompts.instructions import comparison_instructions
from doclens.app.schemas.stages import (
    AnalysisResult,
    ExtractionResult,
    PipelineStage,
)


class AnalysisStage(StageMixin):
    """
    Stage 2: cross-document comparison.

    Works from the extraction result only; the original documents are
    not re-sent. The reply is markdown and goes through the response
    parser, so this stage never fails on output shape.
    """

    STAGE = PipelineStage.ANALYSIS

    def build_prompt(
        self,
        extraction: ExtractionResult,
        comparison_type: str,
    ) -> str:
        document_data = json.dumps(
            [r.model_dump(mode="json") for r in extraction.document_records],
            ensure_ascii=False,
            indent=2,
        )
        field_lines = "\n".join(
            f"- {name}: {', '.join(values)}"
            for name, values in extraction.field_index.items()
        )
        return self._prompt.render(
            document_data=document_data,
            document_types=", ".join(extraction.document_types),
            field_lines=field_lines or "- (none)",
            type_instructions=comparison_instructions(comparison_type),
        )

    async def run(
        self,
        context: PipelineContext,
        extraction: ExtractionResult,
    ) -> AnalysisResult:
        prompt_text = self.build_prompt(extraction, context.comparison_type)

        response, usage = await self._execute(
            self._request([ContentBlock.from_text(prompt_text, cache_hint=True)]),
            context,
        )

        return AnalysisResult(
            comparison=parse_response(response.text),
            raw_text=response.text,
            usage=usage,
        )
