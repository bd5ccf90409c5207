import pytest
from pydantic import ValidationError

from doclens.app.config import PipelineConfig


def test_defaults_follow_stage_table():
    config = PipelineConfig()

    assert config.GENERATOR_PROVIDER == "disabled"
    assert config.EXTRACTION.max_tokens == 4096
    assert config.VALIDATION.max_tokens == 16000
    assert config.VALIDATION.thinking_budget == 32000
    assert config.VERIFICATION.max_tokens == 4000
    assert config.ANALYSIS.pricing.input_per_million == 3.0
    assert config.ANALYSIS.pricing.output_per_million == 15.0
    assert config.MAX_ATTEMPTS == 3
    assert config.PARSE_RETRY_POLICY == "none"
    assert config.DEGRADE_STRATEGY == "rethrow"


def test_from_env_reads_overrides(monkeypatch):
    monkeypatch.setenv("DOCLENS_SKIP_VALIDATION", "true")
    monkeypatch.setenv("DOCLENS_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DOCLENS_DEGRADE_STRATEGY", "fixture")
    monkeypatch.setenv("DOCLENS_ANALYSIS_MODEL", "custom-model")
    monkeypatch.setenv("DOCLENS_ANALYSIS_INPUT_PRICE", "1.5")
    monkeypatch.setenv("DOCLENS_VALIDATION_THINKING_BUDGET", "2048")

    config = PipelineConfig.from_env()

    assert config.SKIP_VALIDATION is True
    assert config.MAX_ATTEMPTS == 5
    assert config.DEGRADE_STRATEGY == "fixture"
    assert config.ANALYSIS.model == "custom-model"
    assert config.ANALYSIS.input_per_million == 1.5
    assert config.ANALYSIS.max_tokens == 4096
    assert config.VALIDATION.thinking_budget == 2048


def test_unknown_provider_is_rejected():
    with pytest.raises(ValidationError):
        PipelineConfig(GENERATOR_PROVIDER="openai_direct")


def test_azure_provider_requires_endpoint():
    with pytest.raises(ValidationError, match="AZURE_OPENAI_ENDPOINT"):
        PipelineConfig(GENERATOR_PROVIDER="azure_openai")


def test_anthropic_provider_requires_key(monkeypatch):
    monkeypatch.setenv("DOCLENS_GENERATOR_PROVIDER", "anthropic")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(ValidationError, match="ANTHROPIC_API_KEY"):
        PipelineConfig.from_env()


@pytest.mark.parametrize(
    "field, value",
    [
        ("PARSE_RETRY_POLICY", "always"),
        ("DEGRADE_STRATEGY", "mock"),
        ("MAX_ATTEMPTS", 0),
    ],
)
def test_invalid_policies_are_rejected(field, value):
    with pytest.raises(ValidationError):
        PipelineConfig(**{field: value})


def test_config_is_immutable():
    config = PipelineConfig()

    with pytest.raises(ValidationError):
        config.MAX_ATTEMPTS = 7
