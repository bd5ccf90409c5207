"""
Azure OpenAI generator (Entra ID authentication).

Translates GenerationRequest content blocks into chat messages and the
chat completion back into a GenerationResponse.

IMPORTANT:
- No API keys: authentication uses DefaultAzureCredential.
- SDK-level retries are disabled; the stage executor owns retry.
- Prompt tokens served from cache are reported as cache reads. Azure
  does not report cache writes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import openai
from azure.identity import (
    DefaultAzureCredential,
    get_bearer_token_provider,
)
from azure.core.exceptions import (
    ServiceResponseTimeoutError,
    HttpResponseError,
    ClientAuthenticationError,
)
from openai import AsyncAzureOpenAI

from doclens.app.errors import AuthError, TransportError
from doclens.app.generation.request import (
    ContentBlock,
    GenerationRequest,
    GenerationResponse,
)
from doclens.app.schemas.usage import RawUsage

logger = logging.getLogger(__name__)


class AzureOpenAIGenerator:
    """
    Generator backed by an Azure OpenAI chat deployment.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        deployment: str,
        api_version: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._deployment = deployment

        credential = DefaultAzureCredential()
        token_provider = get_bearer_token_provider(
            credential,
            "https://cognitiveservices.azure.com/.default",
        )

        self._client = AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            azure_ad_token_provider=token_provider,
            api_version=api_version,
            timeout=timeout_seconds,
            max_retries=0,
        )

    # ------------------------------------------------------------------
    # Request translation
    # ------------------------------------------------------------------

    @staticmethod
    def _to_part(block: ContentBlock) -> Dict[str, Any]:
        if block.type == "document":
            return {
                "type": "file",
                "file": {
                    "filename": block.document_name or "document.pdf",
                    "file_data": f"data:{block.media_type};base64,{block.data}",
                },
            }
        if block.type == "image":
            return {
                "type": "image_url",
                "image_url": {
                    "url": f"data:{block.media_type};base64,{block.data}",
                },
            }
        return {"type": "text", "text": block.text or ""}

    def build_messages(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append(
            {
                "role": "user",
                "content": [self._to_part(b) for b in request.blocks],
            }
        )
        return messages

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        kwargs: Dict[str, Any] = {
            "model": self._deployment,
            "messages": self.build_messages(request),
            "max_tokens": request.max_tokens,
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        try:
            response = await self._client.chat.completions.create(**kwargs)

        except ClientAuthenticationError as exc:
            raise AuthError(
                "Azure credential could not be obtained.",
                hint="Check the managed identity or Azure CLI login.",
                original_error=exc,
            ) from exc

        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise AuthError(
                "Azure OpenAI rejected the request credentials.",
                original_error=exc,
            ) from exc

        except openai.APITimeoutError as exc:
            raise TransportError(
                "Request timed out: the generator took too long to respond.",
                original_error=exc,
            ) from exc

        except openai.APIConnectionError as exc:
            raise TransportError(
                "Network error: could not reach the generator.",
                original_error=exc,
            ) from exc

        except openai.APIStatusError as exc:
            raise TransportError(
                f"Generator returned HTTP {exc.status_code}: {exc.message}",
                status_code=exc.status_code,
                original_error=exc,
            ) from exc

        except (ServiceResponseTimeoutError, HttpResponseError) as exc:
            raise TransportError(str(exc), original_error=exc) from exc

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice is not None else ""

        return GenerationResponse(
            text=text,
            usage=self._usage(response),
            model=getattr(response, "model", None) or self._deployment,
        )

    @staticmethod
    def _usage(response: Any) -> RawUsage:
        usage = getattr(response, "usage", None)
        if usage is None:
            return RawUsage()

        prompt_tokens = getattr(usage, "prompt_tokens", None) or 0
        cached_tokens = 0
        details = getattr(usage, "prompt_tokens_details", None)
        if details is not None:
            cached_tokens = getattr(details, "cached_tokens", None) or 0

        return RawUsage(
            input_tokens=max(prompt_tokens - cached_tokens, 0),
            output_tokens=getattr(usage, "completion_tokens", None) or 0,
            cache_read_tokens=cached_tokens,
        )
