"""
Heuristic confidence score for a validated comparison.

The score is a monotone signal, not a statistical estimate. It starts at
0.5 and rewards structure (tables, core sections), quoted evidence, and
reuse of field names that were actually extracted.
"""

from __future__ import annotations

import re
from typing import List

from doclens.app.schemas.comparison import ComparisonResult
from doclens.app.schemas.stages import ExtractionResult


BASE_SCORE = 0.5
TABLE_BONUS = 0.1
CORE_SECTIONS_BONUS = 0.1
QUOTES_MAX_BONUS = 0.1
FIELD_REUSE_MAX_BONUS = 0.2

CORE_SECTIONS = ("verification", "validation", "analysis", "summary")

_QUOTES_TAG_RE = re.compile(r"<quotes>(.*?)</quotes>", re.IGNORECASE | re.DOTALL)
_QUOTES_BLOCK_RE = re.compile(r"^Quotes:\n(.*?)\n\nAnalysis:", re.DOTALL)


def has_quotes(section_text: str) -> bool:
    """
    True when the section carries a non-empty quotes payload, either as
    raw `<quotes>` tags or as the parser's `Quotes:` block.
    """
    for pattern in (_QUOTES_TAG_RE, _QUOTES_BLOCK_RE):
        match = pattern.search(section_text)
        if match and match.group(1).strip():
            return True
    return False


def _visible_text(result: ComparisonResult) -> str:
    parts: List[str] = []
    for table in result.tables:
        parts.append(table.title)
        parts.extend(table.headers)
        for row in table.rows:
            parts.extend(row)
    parts.extend(result.section(name) for name in result.present_sections())
    return "\n".join(parts)


def score_confidence(
    validated: ComparisonResult,
    extraction: ExtractionResult,
) -> float:
    score = BASE_SCORE

    if validated.tables:
        score += TABLE_BONUS

    present = [n for n in CORE_SECTIONS if not validated.is_placeholder(n)]
    if len(present) == len(CORE_SECTIONS):
        score += CORE_SECTIONS_BONUS

    quoted = sum(1 for n in present if has_quotes(validated.section(n)))
    score += QUOTES_MAX_BONUS * quoted / len(CORE_SECTIONS)

    field_names = [n for n in extraction.field_names() if n]
    if field_names:
        text = _visible_text(validated)
        reused = sum(1 for name in field_names if name in text)
        score += FIELD_REUSE_MAX_BONUS * reused / len(field_names)

    return max(0.0, min(1.0, score))
