"""
Per-document request content encoding.

Documents are encoded concurrently. A document that fails to encode is
replaced by an `error` content block and reported as a
DocumentEncodingError; it is never dropped and never fails the stage.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import List, Sequence, Tuple

from doclens.app.generation.request import ContentBlock
from doclens.app.schemas.documents import DocumentEncodingError, SourceDocument

logger = logging.getLogger(__name__)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


async def encode_document(document: SourceDocument, index: int) -> ContentBlock:
    """
    Encode one document as a text, document or image content block.
    """
    if document.is_pdf or document.is_image:
        if document.data is not None:
            payload = await asyncio.to_thread(_b64, document.data)
        else:
            # data URL or bare base64 string
            payload = document.text.strip()
            if payload.startswith("data:") and "," in payload:
                payload = payload.split(",", 1)[1]
        return ContentBlock(
            type="document" if document.is_pdf else "image",
            media_type=document.media_type,
            data=payload,
            document_name=document.name,
        )

    if document.text is not None:
        text = document.text
    elif document.media_type.startswith("text/") or (
        document.media_type == "application/json"
    ):
        text = document.data.decode("utf-8")
    else:
        raise ValueError(
            f"Unsupported media type '{document.media_type}' without text content"
        )

    return ContentBlock(
        type="text",
        text=f"Document {index + 1}: {document.name}\n\n{text}",
        document_name=document.name,
    )


async def encode_documents(
    documents: Sequence[SourceDocument],
    *,
    cache_hint: bool = True,
) -> Tuple[List[ContentBlock], List[DocumentEncodingError]]:
    """
    Encode all documents concurrently, preserving order.

    When `cache_hint` is set, the last block carries the cache hint so
    the whole document prefix can be cached as one unit.
    """
    outcomes = await asyncio.gather(
        *(encode_document(doc, i) for i, doc in enumerate(documents)),
        return_exceptions=True,
    )

    blocks: List[ContentBlock] = []
    errors: List[DocumentEncodingError] = []

    for index, (document, outcome) in enumerate(zip(documents, outcomes)):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning(
                "Document %d (%s) could not be encoded: %s",
                index + 1,
                document.name,
                outcome,
            )
            errors.append(
                DocumentEncodingError(
                    document_index=index,
                    document_name=document.name,
                    message=str(outcome) or type(outcome).__name__,
                )
            )
            blocks.append(
                ContentBlock(
                    type="error",
                    text=(
                        f"Document {index + 1}: {document.name} could not be "
                        f"read ({outcome}). Treat it as unavailable."
                    ),
                    document_name=document.name,
                )
            )
        else:
            blocks.append(outcome)

    if cache_hint and blocks:
        blocks[-1] = blocks[-1].model_copy(update={"cache_hint": True})

    return blocks, errors
