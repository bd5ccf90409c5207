"""
Comparison pipeline assembler.

Builds the concrete ComparisonPipeline from an already-constructed
StageExecutor and the runtime configuration.

This module:
- wires stages to their model configuration and prompts
- selects the parse-retry and degrade policies named in config

It does NOT:
- construct generators or executors
- contain stage logic
"""

from __future__ import annotations

from typing import Callable

from doclens.app.config import PipelineConfig
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.pipeline.orchestrator import ComparisonPipeline
from doclens.app.pipeline.policies import ParseRetryPolicy, build_degrade_strategy
from doclens.app.pipeline.stages.analysis import AnalysisStage
from doclens.app.pipeline.stages.extraction import ExtractionStage
from doclens.app.pipeline.stages.validation import ValidationStage
from doclens.app.prompts.prompt_fragment import PromptFragment, load_prompt


def build_comparison_pipeline(
    *,
    executor: StageExecutor,
    config: PipelineConfig,
    prompt_factory: Callable[[str], PromptFragment] = load_prompt,
) -> ComparisonPipeline:
    """
    Assemble the three-stage comparison pipeline.

    Args:
        executor: StageExecutor shared by every stage
        config: Runtime configuration
        prompt_factory: Callable(stage) -> PromptFragment
    """
    parse_retry_policy = ParseRetryPolicy(config.PARSE_RETRY_POLICY)

    return ComparisonPipeline(
        extraction=ExtractionStage(
            executor=executor,
            model=config.EXTRACTION,
            prompt=prompt_factory("extraction"),
            parse_retry_policy=parse_retry_policy,
        ),
        analysis=AnalysisStage(
            executor=executor,
            model=config.ANALYSIS,
            prompt=prompt_factory("analysis"),
        ),
        validation=ValidationStage(
            executor=executor,
            model=config.VALIDATION,
            prompt=prompt_factory("validation"),
        ),
        degrade_strategy=build_degrade_strategy(config.DEGRADE_STRATEGY),
        skip_validation=config.SKIP_VALIDATION,
    )
