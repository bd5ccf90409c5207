"""
Generator boundary types.

Every generator backend takes a GenerationRequest and returns a
GenerationResponse. Adapters translate these to and from their vendor
SDK; nothing past this module sees a vendor type.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Protocol

from pydantic import BaseModel, Field, ConfigDict

from doclens.app.schemas.usage import RawUsage


class ContentBlock(BaseModel):
    """
    One ordered piece of request content.

    `error` blocks stand in for a document that could not be encoded, so
    the generator (and the caller) can see it was not silently dropped.
    """

    type: Literal["text", "document", "image", "error"] = "text"
    text: Optional[str] = None
    media_type: Optional[str] = None
    data: Optional[str] = Field(
        None,
        description="Base64 payload for document and image blocks",
    )
    cache_hint: bool = Field(
        False,
        description="Ask the backend to cache the prompt prefix up to here",
    )
    document_name: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def from_text(cls, text: str, *, cache_hint: bool = False) -> "ContentBlock":
        return cls(type="text", text=text, cache_hint=cache_hint)


class GenerationRequest(BaseModel):
    blocks: List[ContentBlock]
    model: str
    max_tokens: int = Field(..., ge=1)
    system: Optional[str] = None
    temperature: Optional[float] = None
    thinking_budget: Optional[int] = None
    stage: str = Field("generation", description="Diagnostic label only")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class GenerationResponse(BaseModel):
    text: str
    usage: RawUsage = Field(default_factory=RawUsage)
    reasoning: Optional[str] = Field(
        None,
        description="Reasoning output returned separately by the backend",
    )
    model: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class Generator(Protocol):
    """
    Interface of an LLM text-generation backend.

    Implementations raise AuthError for rejected credentials and
    TransportError for every other call failure.
    """

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        ...
