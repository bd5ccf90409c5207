"""
Comparison result schema.

A ComparisonResult is the parsed form of one generator reply: the
markdown tables it contained plus nine named narrative sections.

IMPORTANT:
- `sections` always holds exactly the nine SECTION_NAMES.
- A section the reply did not provide holds the placeholder text
  "No {name} information provided." verbatim.
- Table rows shorter than the header row are padded with empty cells.
  Longer rows are kept as-is.
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field, ConfigDict, ValidationInfo, field_validator


SECTION_NAMES = (
    "verification",
    "validation",
    "review",
    "analysis",
    "summary",
    "insights",
    "recommendations",
    "risks",
    "issues",
)

DEFAULT_TABLE_TITLE = "Comparison Table"


def placeholder(name: str) -> str:
    return f"No {name} information provided."


class ComparisonTable(BaseModel):
    """
    A single markdown table recovered from generator output.
    """

    title: str = DEFAULT_TABLE_TITLE
    headers: List[str]
    rows: List[List[str]] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @field_validator("rows")
    @classmethod
    def pad_short_rows(
        cls, v: List[List[str]], info: ValidationInfo
    ) -> List[List[str]]:
        width = len(info.data.get("headers") or [])
        return [
            row + [""] * (width - len(row)) if len(row) < width else row
            for row in v
        ]

    def to_markdown(self, *, include_title: bool = True) -> str:
        lines: List[str] = []
        if include_title:
            lines.extend([f"### {self.title}", ""])
        lines.append(_markdown_row(self.headers))
        lines.append(_markdown_row(["---"] * len(self.headers)))
        lines.extend(_markdown_row(row) for row in self.rows)
        return "\n".join(lines)


def _markdown_row(cells: List[str]) -> str:
    return "| " + " | ".join(cells) + " |"


class ComparisonResult(BaseModel):
    """
    Tables and named sections parsed from one generator reply.
    """

    tables: List[ComparisonTable] = Field(default_factory=list)
    sections: Dict[str, str] = Field(
        default_factory=dict,
        validate_default=True,
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @field_validator("sections")
    @classmethod
    def fill_missing_sections(cls, v: Dict[str, str]) -> Dict[str, str]:
        unknown = set(v) - set(SECTION_NAMES)
        if unknown:
            raise ValueError(f"Unknown section names: {sorted(unknown)}")
        return {name: v.get(name) or placeholder(name) for name in SECTION_NAMES}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def section(self, name: str) -> str:
        return self.sections[name]

    def is_placeholder(self, name: str) -> bool:
        return self.sections[name] == placeholder(name)

    def present_sections(self) -> List[str]:
        return [n for n in SECTION_NAMES if not self.is_placeholder(n)]

    def to_markdown(self) -> str:
        """
        Render tables and non-placeholder sections back to markdown.
        """
        parts: List[str] = []
        if self.tables:
            parts.append("## Comparison Tables")
            parts.extend(t.to_markdown() for t in self.tables)
        for name in self.present_sections():
            parts.append(f"## {name.capitalize()}\n{self.sections[name]}")
        return "\n\n".join(parts)
