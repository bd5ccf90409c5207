"""
Verification assembler.

Wires the document extractor and the verification engine to their
model configuration and prompts. Does not construct executors.
"""

from __future__ import annotations

from typing import Callable

from doclens.app.config import PipelineConfig
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.prompts.prompt_fragment import PromptFragment, load_prompt
from doclens.app.verification.engine import VerificationEngine
from doclens.app.verification.extractor import DocumentExtractor


def build_verification_engine(
    *,
    executor: StageExecutor,
    config: PipelineConfig,
    prompt_factory: Callable[[str], PromptFragment] = load_prompt,
) -> VerificationEngine:
    return VerificationEngine(
        executor=executor,
        model=config.VERIFICATION,
        prompt=prompt_factory("verification"),
    )


def build_document_extractor(
    *,
    executor: StageExecutor,
    config: PipelineConfig,
    prompt_factory: Callable[[str], PromptFragment] = load_prompt,
) -> DocumentExtractor:
    return DocumentExtractor(
        executor=executor,
        model=config.DOCUMENT_EXTRACTION,
        prompt=prompt_factory("document_extraction"),
    )
