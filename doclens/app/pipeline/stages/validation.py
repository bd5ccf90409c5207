from __future__ import annotations

import json
import re
from typing import Optional, Tuple

from doclens.app.generation.request import ContentBlock
from doclens.app.parsing.response_parser import parse_response
from doclens.app.pipeline.confidence import score_confidence
from doclens.app.pipeline.context import PipelineContext
from doclens.app.pipeline.stages.base import StageMixin
from doclens.app.schemas.stages import (
    AnalysisResult,
    ExtractionResult,
    PipelineStage,
    ValidationResult,
)


_THINKING_RE = re.compile(
    r"THINKING PROCESS:(.*?)(?=FINAL VALIDATION RESULTS:|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_FINAL_RE = re.compile(r"FINAL VALIDATION RESULTS:(.*)", re.IGNORECASE | re.DOTALL)

_REPORTED_CONFIDENCE_RES = (
    re.compile(r"confidence\s+score:?\s*(\d+)%", re.IGNORECASE),
    re.compile(r"confidence:?\s*(\d+)%", re.IGNORECASE),
    re.compile(r"score:?\s*(\d+)%", re.IGNORECASE),
)


def split_validation_text(text: str) -> Tuple[Optional[str], str]:
    """
    Split a reply into its THINKING PROCESS and FINAL VALIDATION RESULTS
    parts. Without the final marker the whole text is the result.
    """
    thinking = _THINKING_RE.search(text)
    final = _FINAL_RE.search(text)
    return (
        thinking.group(1).strip() if thinking else None,
        final.group(1).strip() if final else text,
    )


def reported_confidence(text: str) -> Optional[int]:
    """
    The confidence percentage the model stated, capped at 100.
    """
    for pattern in _REPORTED_CONFIDENCE_RES:
        match = pattern.search(text)
        if match:
            return min(int(match.group(1)), 100)
    return None


class ValidationStage(StageMixin):
    """
    Stage 3: validation of extraction and analysis against the sources.

    Re-sends the original documents with both earlier results and asks
    for a reasoned validation. Uses the configured thinking budget.
    """

    STAGE = PipelineStage.VALIDATION

    async def run(
        self,
        context: PipelineContext,
        extraction: ExtractionResult,
        analysis: AnalysisResult,
    ) -> ValidationResult:
        blocks, _ = await context.document_blocks()

        extracted = json.dumps(
            [r.model_dump(mode="json") for r in extraction.document_records],
            ensure_ascii=False,
            indent=2,
        )
        analyzed = json.dumps(
            analysis.comparison.model_dump(mode="json"),
            ensure_ascii=False,
            indent=2,
        )

        blocks.extend(
            [
                ContentBlock.from_text(
                    f"Extracted Document Data:\n{extracted}", cache_hint=True
                ),
                ContentBlock.from_text(
                    f"Analysis Result:\n{analyzed}", cache_hint=True
                ),
                ContentBlock.from_text(self._prompt.text, cache_hint=True),
            ]
        )

        response, usage = await self._execute(
            self._request(blocks, with_thinking=True),
            context,
        )

        thinking, final_text = split_validation_text(response.text)
        comparison = parse_response(final_text)

        return ValidationResult(
            comparison=comparison,
            confidence=score_confidence(comparison, extraction),
            reported_confidence=reported_confidence(final_text),
            reasoning_trace=response.reasoning or thinking,
            raw_text=response.text,
            usage=usage,
        )
