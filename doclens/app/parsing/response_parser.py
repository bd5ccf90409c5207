"""
Response parser for free-form generator replies.

IMPORTANT:
- parse_response() never raises. The worst case is a result with no
  tables and a placeholder in every section.
- Unexpected parser failures are logged, never silently dropped.
"""

from __future__ import annotations

import logging

from doclens.app.parsing.sections import extract_section
from doclens.app.parsing.tables import parse_tables
from doclens.app.schemas.comparison import ComparisonResult, SECTION_NAMES

logger = logging.getLogger(__name__)


def parse_response(raw_text: str) -> ComparisonResult:
    text = raw_text or ""

    try:
        tables = parse_tables(text)
    except Exception:
        logger.exception("Table parsing failed; continuing without tables")
        tables = []

    sections = {}
    for name in SECTION_NAMES:
        try:
            sections[name] = extract_section(text, name)
        except Exception:
            logger.exception("Section '%s' could not be parsed", name)

    result = ComparisonResult(tables=tables, sections=sections)

    missing = [n for n in SECTION_NAMES if result.is_placeholder(n)]
    if missing and text.strip():
        logger.debug(
            "Response provided no content for sections: %s",
            ", ".join(missing),
        )

    return result
