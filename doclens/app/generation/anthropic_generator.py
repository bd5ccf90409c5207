"""
Anthropic Messages API generator.

Maps cache hints to ephemeral cache_control markers, forwards the
reasoning budget as extended thinking, and reports cache creation and
cache read tokens separately so they can be priced.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import anthropic

from doclens.app.errors import AuthError, TransportError
from doclens.app.generation.request import (
    ContentBlock,
    GenerationRequest,
    GenerationResponse,
)
from doclens.app.schemas.usage import RawUsage

logger = logging.getLogger(__name__)

# Extended thinking requires budget >= 1024 and budget < max_tokens
MIN_THINKING_BUDGET = 1024


class AnthropicGenerator:
    """
    Generator backed by the Anthropic Messages API.
    """

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )

    # ------------------------------------------------------------------
    # Request translation
    # ------------------------------------------------------------------

    @staticmethod
    def _to_content(block: ContentBlock) -> Dict[str, Any]:
        if block.type in ("document", "image"):
            content: Dict[str, Any] = {
                "type": block.type,
                "source": {
                    "type": "base64",
                    "media_type": block.media_type,
                    "data": block.data,
                },
            }
        else:
            content = {"type": "text", "text": block.text or ""}

        if block.cache_hint:
            content["cache_control"] = {"type": "ephemeral"}
        return content

    @staticmethod
    def thinking_budget(request: GenerationRequest) -> int | None:
        if not request.thinking_budget:
            return None
        budget = min(request.thinking_budget, request.max_tokens - 1)
        if budget < MIN_THINKING_BUDGET:
            logger.warning(
                "Thinking disabled for stage %s: max_tokens %d leaves no room "
                "for a %d-token budget",
                request.stage,
                request.max_tokens,
                MIN_THINKING_BUDGET,
            )
            return None
        if budget != request.thinking_budget:
            logger.info(
                "Thinking budget for stage %s capped at %d (max_tokens %d)",
                request.stage,
                budget,
                request.max_tokens,
            )
        return budget

    def build_params(self, request: GenerationRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [self._to_content(b) for b in request.blocks],
                }
            ],
        }
        if request.system:
            params["system"] = request.system

        budget = self.thinking_budget(request)
        if budget is not None:
            # temperature must be left unset when thinking is enabled
            params["thinking"] = {"type": "enabled", "budget_tokens": budget}
        elif request.temperature is not None:
            params["temperature"] = request.temperature
        return params

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            message = await self._client.messages.create(
                **self.build_params(request)
            )

        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as exc:
            raise AuthError(
                "Authentication error: the generator rejected the API key.",
                hint="Please check your Claude API key.",
                original_error=exc,
            ) from exc

        except anthropic.RateLimitError as exc:
            raise TransportError(
                "Rate limit exceeded: too many requests to the generator.",
                status_code=429,
                original_error=exc,
            ) from exc

        except anthropic.APITimeoutError as exc:
            raise TransportError(
                "Request timed out: the generator took too long to respond.",
                original_error=exc,
            ) from exc

        except anthropic.APIConnectionError as exc:
            raise TransportError(
                "Network error: could not reach the generator.",
                original_error=exc,
            ) from exc

        except anthropic.APIStatusError as exc:
            raise TransportError(
                f"Generator returned HTTP {exc.status_code}: {exc.message}",
                status_code=exc.status_code,
                original_error=exc,
            ) from exc

        text_parts: List[str] = []
        reasoning_parts: List[str] = []
        for block in message.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "thinking":
                reasoning_parts.append(block.thinking)

        return GenerationResponse(
            text="".join(text_parts),
            reasoning="\n\n".join(reasoning_parts) or None,
            usage=self._usage(message.usage),
            model=message.model,
        )

    @staticmethod
    def _usage(usage: Any) -> RawUsage:
        if usage is None:
            return RawUsage()
        return RawUsage(
            input_tokens=getattr(usage, "input_tokens", None) or 0,
            output_tokens=getattr(usage, "output_tokens", None) or 0,
            cache_write_tokens=(
                getattr(usage, "cache_creation_input_tokens", None) or 0
            ),
            cache_read_tokens=getattr(usage, "cache_read_input_tokens", None) or 0,
        )
