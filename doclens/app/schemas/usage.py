"""
Token usage and pricing models.

RawUsage is what a generator reports for one call. TokenUsage is the
priced, additive form carried by every stage result and by the pipeline
total.

IMPORTANT:
- TokenUsage.input counts every billed prompt token, including cache
  writes and cache reads.
- TokenUsage values are combined with `+` only; the pipeline total is
  always the pointwise sum of the executed stages.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field, ConfigDict


class RawUsage(BaseModel):
    """Token counts reported by the generator for a single call."""

    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    cache_write_tokens: int = Field(
        0,
        ge=0,
        description="Prompt tokens written to the provider-side cache",
    )
    cache_read_tokens: int = Field(
        0,
        ge=0,
        description="Prompt tokens served from the provider-side cache",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def billed_input_tokens(self) -> int:
        return (
            self.input_tokens
            + self.cache_write_tokens
            + self.cache_read_tokens
        )

    def __add__(self, other: "RawUsage") -> "RawUsage":
        return RawUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_write_tokens=self.cache_write_tokens + other.cache_write_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
        )


class ModelPricing(BaseModel):
    """Per-million token prices for one model."""

    input_per_million: float = Field(..., ge=0)
    output_per_million: float = Field(..., ge=0)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class TokenUsage(BaseModel):
    """
    Priced token usage for a stage or a whole run.
    """

    input: int = Field(0, ge=0, description="Billed prompt tokens")
    output: int = Field(0, ge=0, description="Generated tokens")
    cost: float = Field(0.0, ge=0, description="Total cost in USD")
    cache_savings: float = Field(
        0.0,
        ge=0,
        description="Cost avoided by serving prompt tokens from cache",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def zero(cls) -> "TokenUsage":
        return cls()

    @classmethod
    def total(cls, usages: Iterable["TokenUsage"]) -> "TokenUsage":
        result = cls.zero()
        for usage in usages:
            result = result + usage
        return result

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input=self.input + other.input,
            output=self.output + other.output,
            cost=self.cost + other.cost,
            cache_savings=self.cache_savings + other.cache_savings,
        )
