"""
JSON object extraction from generator replies.

The reply may wrap the object in prose or fenced code blocks. The
extractor slices from the first `{` to the last `}` and parses that.
It does not validate shape; callers use require_fields() for that.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable

from doclens.app.errors import MalformedResponse, SchemaViolation

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json(raw_text: str) -> Dict[str, Any]:
    """
    Locate and parse the JSON object embedded in `raw_text`.

    Raises:
        MalformedResponse: no object could be located or parsed.
    """
    text = _strip_fences(raw_text or "")

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise MalformedResponse(
            "No valid JSON object found in the generator response.",
            raw_text=raw_text or "",
        )

    candidate = _strip_fences(text[start:end + 1])

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        repaired = _TRAILING_COMMA_RE.sub(r"\1", candidate)
        if repaired == candidate:
            raise MalformedResponse(
                f"Generator response is not valid JSON: {exc.msg} "
                f"(line {exc.lineno}, column {exc.colno})",
                raw_text=raw_text,
                original_error=exc,
            ) from exc
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as repair_exc:
            raise MalformedResponse(
                f"Generator response is not valid JSON: {repair_exc.msg}",
                raw_text=raw_text,
                original_error=repair_exc,
            ) from repair_exc
        logger.warning("Removed trailing commas from generator JSON")

    if not isinstance(parsed, dict):
        raise MalformedResponse(
            "Generator response JSON is not an object.",
            raw_text=raw_text,
        )

    return parsed


def require_fields(obj: Dict[str, Any], paths: Iterable[str]) -> None:
    """
    Ensure every dotted path in `paths` exists in `obj`.

    Raises:
        SchemaViolation: naming the first missing path.
    """
    for path in paths:
        node: Any = obj
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                raise SchemaViolation(path)
            node = node[part]
