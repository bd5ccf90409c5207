"""
Runtime configuration for the DocLens comparison service.

This module centralizes environment-driven configuration: which generator
backend is used, the model and pricing of every pipeline stage, and the
retry, degrade and parse-retry policies of the orchestrator.

Configuration is read once at startup and is immutable afterwards.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationInfo,
    field_validator,
)

from doclens.app.schemas.usage import ModelPricing


# ----------------------------------------------------------------------
# Per-stage model configuration
# ----------------------------------------------------------------------

class StageModelConfig(BaseModel):
    """
    Model selection and pricing for a single pipeline stage.
    """

    model: str = Field(..., description="Model or deployment identifier")
    max_tokens: int = Field(4096, ge=1)
    input_per_million: float = Field(3.0, ge=0)
    output_per_million: float = Field(15.0, ge=0)
    thinking_budget: Optional[int] = Field(
        None,
        ge=0,
        description="Reasoning token budget, when the backend supports it",
    )
    temperature: Optional[float] = Field(None, ge=0, le=1)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def pricing(self) -> ModelPricing:
        return ModelPricing(
            input_per_million=self.input_per_million,
            output_per_million=self.output_per_million,
        )


DEFAULT_ANALYSIS_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_VALIDATION_MODEL = "claude-3-7-sonnet-20250219"

DEFAULT_STAGE_MODELS = {
    "extraction": StageModelConfig(
        model=DEFAULT_ANALYSIS_MODEL,
        max_tokens=4096,
    ),
    "analysis": StageModelConfig(
        model=DEFAULT_ANALYSIS_MODEL,
        max_tokens=4096,
    ),
    "validation": StageModelConfig(
        model=DEFAULT_VALIDATION_MODEL,
        max_tokens=16000,
        thinking_budget=32000,
    ),
    "verification": StageModelConfig(
        model=DEFAULT_ANALYSIS_MODEL,
        max_tokens=4000,
        temperature=0.1,
    ),
    "document_extraction": StageModelConfig(
        model=DEFAULT_ANALYSIS_MODEL,
        max_tokens=4000,
        temperature=0.1,
    ),
}


class PipelineConfig(BaseModel):
    """
    Runtime configuration for the DocLens service.
    """

    # ------------------------------------------------------------------
    # Generator backend
    # ------------------------------------------------------------------

    GENERATOR_PROVIDER: str = Field(
        "disabled",
        description="Generator backend identifier",
    )

    REQUEST_TIMEOUT_SECONDS: float = Field(
        60.0,
        gt=0,
        description="Transport timeout passed to the generator SDK",
    )

    # ------------------------------------------------------------------
    # Stage models
    # ------------------------------------------------------------------

    EXTRACTION: StageModelConfig = DEFAULT_STAGE_MODELS["extraction"]
    ANALYSIS: StageModelConfig = DEFAULT_STAGE_MODELS["analysis"]
    VALIDATION: StageModelConfig = DEFAULT_STAGE_MODELS["validation"]
    VERIFICATION: StageModelConfig = DEFAULT_STAGE_MODELS["verification"]
    DOCUMENT_EXTRACTION: StageModelConfig = DEFAULT_STAGE_MODELS[
        "document_extraction"
    ]

    # ------------------------------------------------------------------
    # Orchestration policy
    # ------------------------------------------------------------------

    SKIP_VALIDATION: bool = Field(
        False,
        description="Skip the validation stage; the analysis result is final",
    )

    MAX_ATTEMPTS: int = Field(
        3,
        ge=1,
        description="Generator call attempts per stage before giving up",
    )

    BASE_DELAY_SECONDS: float = Field(
        1.0,
        ge=0,
        description="Base delay of the jittered exponential backoff",
    )

    PARSE_RETRY_POLICY: str = Field(
        "none",
        description="Whether malformed JSON output re-issues the stage request",
    )

    DEGRADE_STRATEGY: str = Field(
        "rethrow",
        description="What the pipeline does when the extraction stage fails",
    )

    MAX_DOCUMENTS: int = Field(
        20,
        ge=1,
        description="Upper bound on documents accepted per request",
    )

    # ------------------------------------------------------------------
    # External services
    # ------------------------------------------------------------------

    AZURE_OPENAI_ENDPOINT: str = Field(
        "",
        validate_default=True,
        description="Azure OpenAI endpoint URL",
    )

    AZURE_OPENAI_DEPLOYMENT: str = Field(
        "",
        description="Azure OpenAI deployment name",
    )

    AZURE_OPENAI_API_VERSION: str = Field(
        "",
        description="Azure OpenAI API version",
    )

    ANTHROPIC_API_KEY: Optional[SecretStr] = Field(
        None,
        validate_default=True,
        description="Anthropic API key",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("GENERATOR_PROVIDER")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        allowed = {"disabled", "azure_openai", "anthropic"}
        if v not in allowed:
            raise ValueError(
                f"Unsupported GENERATOR_PROVIDER '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return v

    @field_validator("PARSE_RETRY_POLICY")
    @classmethod
    def validate_parse_retry_policy(cls, v: str) -> str:
        allowed = {"none", "reissue_request"}
        if v not in allowed:
            raise ValueError(
                f"Unsupported PARSE_RETRY_POLICY '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return v

    @field_validator("DEGRADE_STRATEGY")
    @classmethod
    def validate_degrade_strategy(cls, v: str) -> str:
        allowed = {"rethrow", "fixture"}
        if v not in allowed:
            raise ValueError(
                f"Unsupported DEGRADE_STRATEGY '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return v

    @field_validator("AZURE_OPENAI_ENDPOINT")
    @classmethod
    def azure_endpoint_required(cls, v: str, info: ValidationInfo) -> str:
        if info.data.get("GENERATOR_PROVIDER") == "azure_openai" and not v:
            raise ValueError(
                "GENERATOR_PROVIDER is azure_openai but "
                "AZURE_OPENAI_ENDPOINT is not configured."
            )
        return v

    @field_validator("ANTHROPIC_API_KEY")
    @classmethod
    def anthropic_key_required(
        cls, v: Optional[SecretStr], info: ValidationInfo
    ) -> Optional[SecretStr]:
        if info.data.get("GENERATOR_PROVIDER") == "anthropic" and (
            v is None or not v.get_secret_value()
        ):
            raise ValueError(
                "GENERATOR_PROVIDER is anthropic but "
                "ANTHROPIC_API_KEY is not configured."
            )
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        def env_stage(name: str, default: StageModelConfig) -> StageModelConfig:
            prefix = f"DOCLENS_{name}_"
            thinking = os.getenv(prefix + "THINKING_BUDGET")
            temperature = os.getenv(prefix + "TEMPERATURE")
            return StageModelConfig(
                model=os.getenv(prefix + "MODEL", default.model),
                max_tokens=int(
                    os.getenv(prefix + "MAX_TOKENS", str(default.max_tokens))
                ),
                input_per_million=float(
                    os.getenv(
                        prefix + "INPUT_PRICE", str(default.input_per_million)
                    )
                ),
                output_per_million=float(
                    os.getenv(
                        prefix + "OUTPUT_PRICE", str(default.output_per_million)
                    )
                ),
                thinking_budget=(
                    int(thinking) if thinking else default.thinking_budget
                ),
                temperature=(
                    float(temperature) if temperature else default.temperature
                ),
            )

        anthropic_key = os.getenv("ANTHROPIC_API_KEY")

        return cls(
            GENERATOR_PROVIDER=os.getenv(
                "DOCLENS_GENERATOR_PROVIDER", "disabled"
            ),
            REQUEST_TIMEOUT_SECONDS=float(
                os.getenv("DOCLENS_REQUEST_TIMEOUT_SECONDS", "60")
            ),
            EXTRACTION=env_stage("EXTRACTION", DEFAULT_STAGE_MODELS["extraction"]),
            ANALYSIS=env_stage("ANALYSIS", DEFAULT_STAGE_MODELS["analysis"]),
            VALIDATION=env_stage("VALIDATION", DEFAULT_STAGE_MODELS["validation"]),
            VERIFICATION=env_stage(
                "VERIFICATION", DEFAULT_STAGE_MODELS["verification"]
            ),
            DOCUMENT_EXTRACTION=env_stage(
                "DOCUMENT_EXTRACTION",
                DEFAULT_STAGE_MODELS["document_extraction"],
            ),
            SKIP_VALIDATION=env_bool("DOCLENS_SKIP_VALIDATION", False),
            MAX_ATTEMPTS=int(os.getenv("DOCLENS_MAX_ATTEMPTS", "3")),
            BASE_DELAY_SECONDS=float(
                os.getenv("DOCLENS_BASE_DELAY_SECONDS", "1.0")
            ),
            PARSE_RETRY_POLICY=os.getenv(
                "DOCLENS_PARSE_RETRY_POLICY", "none"
            ),
            DEGRADE_STRATEGY=os.getenv("DOCLENS_DEGRADE_STRATEGY", "rethrow"),
            MAX_DOCUMENTS=int(os.getenv("DOCLENS_MAX_DOCUMENTS", "20")),
            AZURE_OPENAI_ENDPOINT=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
            AZURE_OPENAI_DEPLOYMENT=os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
            AZURE_OPENAI_API_VERSION=os.getenv("AZURE_OPENAI_API_VERSION", ""),
            ANTHROPIC_API_KEY=(
                SecretStr(anthropic_key) if anthropic_key else None
            ),
        )

    model_config = {
        "frozen": True,
    }
