"""
Stage executor: generator calls with bounded retry and jittered backoff.

IMPORTANT:
- Attempts are bounded by count only; there is no total-time budget.
- The wait after failed attempt n (0-based) is
  base_delay * 2**n * jitter, with jitter uniform in [0.5, 1.0].
- No wait follows the final attempt; its error is re-raised unchanged.
- AuthError is never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from doclens.app.errors import AuthError
from doclens.app.events import (
    PipelineEvent,
    PipelineEventType,
    PipelineEventEmitter,
    NullEventEmitter,
)
from doclens.app.generation.request import (
    GenerationRequest,
    GenerationResponse,
    Generator,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, BaseException, float], Awaitable[None]]


# ----------------------------------------------------------------------
# Backoff
# ----------------------------------------------------------------------

class wait_jittered_exponential(wait_base):
    """
    Exponential backoff scaled by a random factor in [0.5, 1.0].
    """

    def __init__(
        self,
        base_delay: float,
        *,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.base_delay = base_delay
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        failed_attempt = retry_state.attempt_number - 1
        jitter = 0.5 + self.rng() * 0.5
        return self.base_delay * (2 ** failed_attempt) * jitter


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    on_retry: Optional[RetryHook] = None,
) -> T:
    """
    Await `operation` until it succeeds or `max_attempts` calls failed.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    async def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if on_retry is not None:
            await on_retry(retry_state.attempt_number, error, delay)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_jittered_exponential(base_delay, rng=rng),
        retry=retry_if_not_exception_type(AuthError),
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=True,
    )

    async def attempt() -> T:
        # tenacity only awaits coroutine functions
        return await operation()

    return await retrying(attempt)


# ----------------------------------------------------------------------
# Stage executor
# ----------------------------------------------------------------------

class StageExecutor:
    """
    Runs one GenerationRequest against a Generator with retry.

    The executor owns the retry policy and call telemetry. It does NOT
    parse output or price usage.
    """

    def __init__(
        self,
        generator: Generator,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._generator = generator
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        request: GenerationRequest,
        *,
        run_id: Optional[str] = None,
        emitter: Optional[PipelineEventEmitter] = None,
    ) -> GenerationResponse:
        emitter = emitter or NullEventEmitter()

        if run_id is not None:
            await emitter.emit(
                PipelineEvent(
                    run_id=run_id,
                    event_type=PipelineEventType.LLM_CALL_STARTED,
                    details={
                        "stage": request.stage,
                        "model": request.model,
                        "blocks": len(request.blocks),
                    },
                )
            )

        async def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.warning(
                "Generator call for stage %s failed (attempt %d/%d): %s. "
                "Retrying in %.2fs",
                request.stage,
                attempt,
                self.max_attempts,
                error,
                delay,
            )
            if run_id is not None:
                await emitter.emit(
                    PipelineEvent(
                        run_id=run_id,
                        event_type=PipelineEventType.LLM_CALL_RETRY,
                        details={
                            "stage": request.stage,
                            "attempt": attempt,
                            "delay_seconds": delay,
                            "error": str(error),
                        },
                    )
                )

        try:
            response = await execute_with_retry(
                lambda: self._generator.generate(request),
                self.max_attempts,
                self.base_delay,
                sleep=self._sleep,
                rng=self._rng,
                on_retry=on_retry,
            )
        except Exception as exc:
            logger.error(
                "Generator call for stage %s failed: %s",
                request.stage,
                exc,
            )
            if run_id is not None:
                await emitter.emit(
                    PipelineEvent(
                        run_id=run_id,
                        event_type=PipelineEventType.LLM_CALL_FAILED,
                        details={
                            "stage": request.stage,
                            "error_type": type(exc).__name__,
                        },
                    )
                )
            raise

        logger.debug(
            "Generator call for stage %s completed (%d input, %d output tokens)",
            request.stage,
            response.usage.billed_input_tokens,
            response.usage.output_tokens,
        )

        if run_id is not None:
            await emitter.emit(
                PipelineEvent(
                    run_id=run_id,
                    event_type=PipelineEventType.LLM_CALL_COMPLETED,
                    details={
                        "stage": request.stage,
                        "input_tokens": response.usage.input_tokens,
                        "output_tokens": response.usage.output_tokens,
                        "cache_write_tokens": response.usage.cache_write_tokens,
                        "cache_read_tokens": response.usage.cache_read_tokens,
                    },
                )
            )

        return response
