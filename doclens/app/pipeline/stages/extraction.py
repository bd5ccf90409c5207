from __future__ import annotations

from typing import Any, Dict, List

from doclens.app.errors import SchemaViolation
from doclens.app.generation.request import ContentBlock
from doclens.app.parsing.json_extractor import extract_json
from doclens.app.pipeline.context import PipelineContext
from doclens.app.pipeline.stages.base import StageMixin
from doclens.app.schemas.stages import (
    DocumentRecord,
    ExtractionResult,
    PipelineStage,
)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _records(payload: Dict[str, Any]) -> List[DocumentRecord]:
    entries = payload.get("documentData") or []
    if not isinstance(entries, list):
        raise SchemaViolation("documentData", detail="expected a list")

    records: List[DocumentRecord] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise SchemaViolation(
                f"documentData.{position}", detail="expected an object"
            )
        index = entry.get("documentIndex")
        fields = entry.get("fields") or {}
        if not isinstance(fields, dict):
            raise SchemaViolation(
                f"documentData.{position}.fields", detail="expected an object"
            )
        records.append(
            DocumentRecord(
                document_index=(
                    index if isinstance(index, int) and index >= 0
                    else position + 1
                ),
                document_type=_as_text(entry.get("documentType"))
                or "Unknown Document",
                fields=fields,
            )
        )
    return records


def _field_index(payload: Dict[str, Any]) -> Dict[str, List[str]]:
    raw = payload.get("extractedFields") or {}
    if not isinstance(raw, dict):
        raise SchemaViolation("extractedFields", detail="expected an object")
    return {
        str(name): [
            _as_text(v) for v in (values if isinstance(values, list) else [values])
        ]
        for name, values in raw.items()
    }


class ExtractionStage(StageMixin):
    """
    Stage 1: structured data extraction.

    Sends every document plus the extraction instructions and expects a
    single JSON object back.
    """

    STAGE = PipelineStage.EXTRACTION

    async def run(self, context: PipelineContext) -> ExtractionResult:
        blocks, encoding_errors = await context.document_blocks()
        blocks.append(ContentBlock.from_text(self._prompt.text, cache_hint=True))

        payload, response, usage = await self._execute_parsed(
            self._request(blocks),
            context,
            extract_json,
        )

        records = _records(payload)
        document_types = payload.get("documentTypes") or [
            r.document_type for r in records
        ]
        if not isinstance(document_types, list):
            raise SchemaViolation("documentTypes", detail="expected a list")

        return ExtractionResult(
            document_records=records,
            document_types=[_as_text(t) for t in document_types],
            field_index=_field_index(payload),
            raw_text=response.text,
            usage=usage,
            encoding_errors=encoding_errors,
        )
