"""
Single-document extraction feeding the verification engine.

Each document gets its own request with a document-type-specific
prompt. A failure for one document is recorded on its
DocumentExtraction and never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Sequence

from doclens.app.config import StageModelConfig
from doclens.app.generation.cost import compute_cost
from doclens.app.generation.request import ContentBlock, GenerationRequest
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.parsing.json_extractor import extract_json
from doclens.app.pipeline.content import encode_document
from doclens.app.prompts.instructions import (
    critical_fields_for,
    document_type_instructions,
)
from doclens.app.prompts.prompt_fragment import PromptFragment
from doclens.app.schemas.documents import DocumentExtraction, SourceDocument
from doclens.app.schemas.usage import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
ISSUE_PENALTY = 0.05

ATTACHED_CONTENT = "The document is attached to this message."


def _is_present(value: Any) -> bool:
    # Fields may come back as {"value": ..., "confidence": ...}
    if isinstance(value, dict) and "value" in value:
        value = value["value"]
    return value not in (None, "", [], {})


def extraction_confidence(
    critical_fields: Sequence[str],
    missing_fields: Sequence[str],
    issues: Sequence[str],
) -> float:
    """
    Share of critical fields present, less a fixed penalty per issue,
    clamped to [0, 1].
    """
    if not critical_fields:
        return DEFAULT_CONFIDENCE
    present = len(critical_fields) - len(missing_fields)
    score = present / len(critical_fields) - ISSUE_PENALTY * len(issues)
    return max(0.0, min(1.0, score))


class DocumentExtractor:
    """
    Extracts structured fields from one document per generator call.
    """

    STAGE = "document_extraction"

    def __init__(
        self,
        *,
        executor: StageExecutor,
        model: StageModelConfig,
        prompt: PromptFragment,
    ) -> None:
        self._executor = executor
        self._model = model
        self._prompt = prompt

    async def build_request(self, document: SourceDocument) -> GenerationRequest:
        block = await encode_document(document, 0)

        if block.type == "text":
            content = document.text if document.text is not None else block.text
            attachments: List[ContentBlock] = []
        else:
            content = ATTACHED_CONTENT
            attachments = [block]

        prompt_text = self._prompt.render(
            document_type=document.document_type,
            content=content,
            type_instructions=document_type_instructions(document.document_type),
        )
        return GenerationRequest(
            blocks=[*attachments, ContentBlock.from_text(prompt_text)],
            model=self._model.model,
            max_tokens=self._model.max_tokens,
            temperature=self._model.temperature,
            stage=self.STAGE,
        )

    async def extract(self, document: SourceDocument) -> DocumentExtraction:
        started = time.perf_counter()
        usage = TokenUsage.zero()

        try:
            response = await self._executor.execute(
                await self.build_request(document)
            )
            usage = compute_cost(response.usage, self._model.pricing)
            data = extract_json(response.text)
            return self._finalize(
                document,
                data,
                usage=usage,
                processing_time=time.perf_counter() - started,
            )
        except Exception as exc:
            logger.warning(
                "Extraction of %s failed: %s",
                document.name,
                exc,
            )
            return DocumentExtraction(
                file_name=document.name,
                document_type=document.document_type,
                success=False,
                error=str(exc) or type(exc).__name__,
                usage=usage,
                processing_time=time.perf_counter() - started,
            )

    async def extract_many(
        self,
        documents: Sequence[SourceDocument],
    ) -> List[DocumentExtraction]:
        """
        Extract every document concurrently; results keep input order.
        """
        return list(
            await asyncio.gather(*(self.extract(doc) for doc in documents))
        )

    # ------------------------------------------------------------------
    # Metadata and confidence
    # ------------------------------------------------------------------

    def _finalize(
        self,
        document: SourceDocument,
        data: Dict[str, Any],
        *,
        usage: TokenUsage,
        processing_time: float,
    ) -> DocumentExtraction:
        metadata = data.get("metadata")
        issues: List[str] = []

        if not isinstance(metadata, dict):
            metadata = {
                "extractionConfidence": DEFAULT_CONFIDENCE,
                "criticalFields": [],
                "missingFields": [],
                "issues": [],
            }
            issues.append("Response did not include extraction metadata")
        else:
            reported = metadata.get("issues") or []
            if isinstance(reported, str):
                reported = [reported]
            if isinstance(reported, list):
                issues.extend(str(i) for i in reported)
            else:
                logger.warning(
                    "Ignoring non-list issues in metadata for %s", document.name
                )

        critical_fields = critical_fields_for(document.document_type)
        missing_fields = [
            name for name in critical_fields if not _is_present(data.get(name))
        ]
        issues.extend(f"Missing critical field: {name}" for name in missing_fields)

        confidence = extraction_confidence(critical_fields, missing_fields, issues)

        data = {
            **data,
            "metadata": {
                **metadata,
                "documentType": document.document_type,
                "extractionConfidence": confidence,
                "criticalFields": critical_fields,
                "missingFields": missing_fields,
                "issues": issues,
            },
        }

        if missing_fields:
            logger.info(
                "%s is missing critical fields: %s",
                document.name,
                ", ".join(missing_fields),
            )

        return DocumentExtraction(
            file_name=document.name,
            document_type=document.document_type,
            success=True,
            data=data,
            extraction_confidence=confidence,
            critical_fields=critical_fields,
            missing_fields=missing_fields,
            issues=issues,
            usage=usage,
            processing_time=processing_time,
        )
