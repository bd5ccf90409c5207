from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from string import Template

from pydantic import BaseModel, Field, ConfigDict


PROMPTS_DIR = Path(__file__).parent


class PromptFragment(BaseModel):
    """
    Immutable, versioned prompt text for one stage.

    Placeholders use `$name` syntax so JSON braces in the text need no
    escaping.
    """

    stage: str = Field(..., description="Stage identifier (e.g. analysis)")
    version: str = Field("1.0", description="Prompt version")
    text: str = Field(..., description="Prompt content")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def prompt_id(self) -> str:
        return f"{self.stage}:{self.version}"

    def render(self, **values: str) -> str:
        """
        Substitute every placeholder. Missing values raise KeyError.
        """
        return Template(self.text).substitute(values)


@lru_cache(maxsize=None)
def load_prompt(stage: str) -> PromptFragment:
    """
    Load the packaged prompt file for `stage`.
    """
    path = PROMPTS_DIR / f"{stage}.txt"
    if not path.exists():
        raise RuntimeError(f"Prompt file not found: {path}")

    return PromptFragment(
        stage=stage,
        text=path.read_text(encoding="utf-8"),
    )
