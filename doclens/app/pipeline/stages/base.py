from __future__ import annotations

import logging
from typing import Callable, List, Tuple, TypeVar

from doclens.app.config import StageModelConfig
from doclens.app.errors import MalformedResponse
from doclens.app.generation.cost import compute_cost
from doclens.app.generation.request import (
    ContentBlock,
    GenerationRequest,
    GenerationResponse,
)
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.pipeline.context import PipelineContext
from doclens.app.pipeline.policies import ParseRetryPolicy
from doclens.app.prompts.prompt_fragment import PromptFragment
from doclens.app.schemas.stages import PipelineStage
from doclens.app.schemas.usage import TokenUsage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageMixin:
    """
    Shared request building, execution and pricing for pipeline stages.

    A stage owns its prompt, its model configuration and how its reply
    is parsed. Retry of transport failures belongs to the executor;
    re-issuing on unparseable output belongs to the ParseRetryPolicy.
    """

    STAGE: PipelineStage

    def __init__(
        self,
        *,
        executor: StageExecutor,
        model: StageModelConfig,
        prompt: PromptFragment,
        parse_retry_policy: ParseRetryPolicy = ParseRetryPolicy.NONE,
    ) -> None:
        self._executor = executor
        self._model = model
        self._prompt = prompt
        self._parse_retry_policy = parse_retry_policy

    @property
    def stage(self) -> PipelineStage:
        return self.STAGE

    def _request(
        self,
        blocks: List[ContentBlock],
        *,
        with_thinking: bool = False,
    ) -> GenerationRequest:
        return GenerationRequest(
            blocks=blocks,
            model=self._model.model,
            max_tokens=self._model.max_tokens,
            temperature=self._model.temperature,
            thinking_budget=(
                self._model.thinking_budget if with_thinking else None
            ),
            stage=self.STAGE.value,
        )

    async def _execute(
        self,
        request: GenerationRequest,
        context: PipelineContext,
    ) -> Tuple[GenerationResponse, TokenUsage]:
        response = await self._executor.execute(
            request,
            run_id=context.run_id,
            emitter=context.emitter,
        )
        return response, compute_cost(response.usage, self._model.pricing)

    async def _execute_parsed(
        self,
        request: GenerationRequest,
        context: PipelineContext,
        parse: Callable[[str], T],
    ) -> Tuple[T, GenerationResponse, TokenUsage]:
        """
        Execute and parse, re-issuing the request on MalformedResponse
        when the parse-retry policy allows it.
        """
        usage = TokenUsage.zero()
        max_issues = self._parse_retry_policy.max_issues

        issue = 1
        while True:
            response, call_usage = await self._execute(request, context)
            usage = usage + call_usage
            try:
                return parse(response.text), response, usage
            except MalformedResponse as exc:
                if issue >= max_issues:
                    raise
                logger.warning(
                    "Stage %s reply could not be parsed (%s); re-issuing request",
                    self.STAGE.value,
                    exc,
                )
                issue += 1
