"""
Named section extraction.

Each matcher is an independent function `(text, name) -> str | None`.
`extract_section` tries them in SECTION_MATCHERS order and falls back
to the placeholder text.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Tuple

from doclens.app.schemas.comparison import placeholder


SectionMatcher = Callable[[str, str], Optional[str]]


def match_tagged(text: str, name: str) -> Optional[str]:
    """
    `<section_name>Name</section_name>` followed by `<quotes>` and
    `<analysis>` blocks. Prose between the tags is ignored.
    """
    pattern = re.compile(
        rf"<section_name>\s*{re.escape(name)}\s*</section_name>.*?"
        r"<quotes>(.*?)</quotes>.*?"
        r"<analysis>(.*?)</analysis>",
        re.IGNORECASE | re.DOTALL,
    )
    match = pattern.search(text)
    if not match:
        return None
    quotes, analysis = match.group(1).strip(), match.group(2).strip()
    return f"Quotes:\n{quotes}\n\nAnalysis:\n{analysis}"


def match_heading(text: str, name: str) -> Optional[str]:
    """
    `## Name` (or `### Name`) up to the next `##` heading.
    """
    pattern = re.compile(
        rf"^#{{2,3}}[ \t]+{re.escape(name)}[ \t]*:?[ \t]*\n(.*?)(?=^##[ \t]|\Z)",
        re.IGNORECASE | re.DOTALL | re.MULTILINE,
    )
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def match_label(text: str, name: str) -> Optional[str]:
    """
    `Name:` (optionally bold) up to a blank line or a new line that
    starts with a capital letter.
    """
    pattern = re.compile(
        rf"(?:^|\n)[ \t]*(?:\*\*)?(?i:{re.escape(name)})(?:\*\*)?[ \t]*:"
        r"(?:\*\*)?[ \t]*\n?(.*?)(?=\n[ \t]*\n|\n[A-Z]|\Z)",
        re.DOTALL,
    )
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


SECTION_MATCHERS: Tuple[SectionMatcher, ...] = (
    match_tagged,
    match_heading,
    match_label,
)


def extract_section(text: str, name: str) -> str:
    for matcher in SECTION_MATCHERS:
        found = matcher(text, name)
        if found:
            return found
    return placeholder(name)
