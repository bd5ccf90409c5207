"""
Error taxonomy for the DocLens comparison service.

Every failure that crosses a component boundary is one of these types.
Vendor SDK exceptions are classified by the generator adapters and never
leak past them.

IMPORTANT:
- TransportError is retryable; AuthError is not.
- MalformedResponse is raised by the JSON extractor only. The markdown
  response parser never raises.
- The original exception, when any, is kept as __cause__ and on
  `original_error` for diagnostics.
"""

from __future__ import annotations

from typing import Optional


class DocLensError(Exception):
    """Base class for all DocLens errors."""

    def __init__(
        self,
        message: str,
        *,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConfigurationError(DocLensError):
    """Invalid or incomplete runtime configuration."""


class TransportError(DocLensError):
    """
    Generator call failed at the network or service level.

    Retried by the stage executor; surfaced after attempts are exhausted.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class AuthError(DocLensError):
    """Generator rejected our credentials. Never retried."""

    DEFAULT_HINT = (
        "Check the generator API key or managed identity configuration."
    )

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.hint = hint or self.DEFAULT_HINT


class MalformedResponse(DocLensError):
    """Generator output could not be parsed into the expected JSON object."""

    PREVIEW_CHARS = 200

    def __init__(
        self,
        message: str,
        *,
        raw_text: str = "",
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.preview = raw_text[: self.PREVIEW_CHARS]


class InsufficientInput(DocLensError):
    """Fewer usable inputs than an operation requires."""

    def __init__(
        self,
        *,
        required: int,
        received: int,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message
            or f"At least {required} documents are required. Received {received}."
        )
        self.required = required
        self.received = received


class SchemaViolation(DocLensError):
    """Parsed JSON is missing a required field or has the wrong shape."""

    def __init__(
        self,
        field: str,
        *,
        detail: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        message = f"Response is missing or has an invalid field: '{field}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, original_error=original_error)
        self.field = field
