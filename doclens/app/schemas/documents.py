"""
Source document and per-document extraction models.

A SourceDocument is already decoded by the caller: it carries either
plain text or raw bytes (PDF, image) plus a media type. Nothing in this
service reads files from disk.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from doclens.app.schemas.usage import TokenUsage


PDF_MEDIA_TYPE = "application/pdf"
IMAGE_MEDIA_TYPES = frozenset(
    {"image/png", "image/jpeg", "image/gif", "image/webp"}
)


class SourceDocument(BaseModel):
    """
    Immutable input document.
    """

    name: str = Field(..., min_length=1, description="File or display name")
    document_type: str = Field(
        "unknown",
        description="Caller-supplied document type label (e.g. invoice)",
    )
    text: Optional[str] = Field(
        None,
        description="Decoded text content",
    )
    data: Optional[bytes] = Field(
        None,
        description="Binary content for PDF or image documents",
    )
    media_type: str = Field("text/plain")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def content_required(self) -> "SourceDocument":
        if self.text is None and self.data is None:
            raise ValueError(
                f"Document '{self.name}' has neither text nor binary content."
            )
        return self

    @classmethod
    def from_base64(
        cls,
        *,
        name: str,
        payload: str,
        media_type: str,
        document_type: str = "unknown",
    ) -> "SourceDocument":
        """
        Build a binary document from a base64 string or data URL.
        """
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        return cls(
            name=name,
            document_type=document_type,
            data=base64.b64decode(payload, validate=True),
            media_type=media_type,
        )

    @property
    def is_pdf(self) -> bool:
        return self.media_type == PDF_MEDIA_TYPE

    @property
    def is_image(self) -> bool:
        return self.media_type in IMAGE_MEDIA_TYPES


class DocumentEncodingError(BaseModel):
    """
    A document that could not be turned into a request content block.
    """

    document_index: int = Field(..., ge=0)
    document_name: str
    message: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class DocumentExtraction(BaseModel):
    """
    Result of extracting a single document.

    Failed extractions are kept (success=False, error set) so a batch
    never loses track of a document.
    """

    file_name: str
    document_type: str = "unknown"
    success: bool
    data: Optional[Dict[str, Any]] = None

    extraction_confidence: float = Field(0.0, ge=0.0, le=1.0)
    critical_fields: List[str] = Field(default_factory=list)
    missing_fields: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)

    error: Optional[str] = None
    usage: TokenUsage = Field(default_factory=TokenUsage.zero)
    processing_time: float = Field(0.0, ge=0.0, description="Seconds")

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def usable(self) -> bool:
        return self.success and self.data is not None
