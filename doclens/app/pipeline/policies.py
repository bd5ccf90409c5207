"""
Orchestrator failure policies.

ParseRetryPolicy decides whether a stage re-issues its request when the
reply is not parseable JSON. DegradeStrategy decides what happens when
the extraction stage fails after retries.

IMPORTANT:
- Both are explicit, injected choices. Nothing here reads environment
  variables or module-level state.
- Only the extraction stage consults the degrade strategy. Analysis and
  validation failures always propagate.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, Sequence

from doclens.app.schemas.documents import SourceDocument
from doclens.app.schemas.stages import DocumentRecord, ExtractionResult

logger = logging.getLogger(__name__)


class ParseRetryPolicy(str, Enum):
    """
    NONE: a MalformedResponse propagates as-is.
    REISSUE_REQUEST: the stage request is issued once more; the usage of
    every issued request is charged to the stage.
    """

    NONE = "none"
    REISSUE_REQUEST = "reissue_request"

    @property
    def max_issues(self) -> int:
        return 2 if self is ParseRetryPolicy.REISSUE_REQUEST else 1


# ----------------------------------------------------------------------
# Degrade strategies
# ----------------------------------------------------------------------

class DegradeStrategy(Protocol):
    name: str

    async def on_extraction_failure(
        self,
        error: Exception,
        documents: Sequence[SourceDocument],
    ) -> ExtractionResult:
        """
        Return a substitute result, or raise to abort the run.
        """
        ...


class RethrowStrategy:
    """Abort the run with the original error."""

    name = "rethrow"

    async def on_extraction_failure(
        self,
        error: Exception,
        documents: Sequence[SourceDocument],
    ) -> ExtractionResult:
        raise error


class FixtureStrategy:
    """
    Continue with a placeholder extraction built from document names.

    The substitute carries no extracted values, only the guessed
    document type and the failure reason, and zero usage.
    """

    name = "fixture"

    async def on_extraction_failure(
        self,
        error: Exception,
        documents: Sequence[SourceDocument],
    ) -> ExtractionResult:
        logger.warning(
            "Extraction failed (%s); continuing with placeholder data for "
            "%d documents",
            error,
            len(documents),
        )
        return fixture_extraction(documents, error)


def guess_document_type(file_name: str) -> str:
    name = file_name.lower()

    if "invoice" in name or "inv-" in name or "inv_" in name:
        return "Invoice"
    if "po" in name or "purchase" in name or "order" in name:
        return "Purchase Order"
    if "bl" in name or "lading" in name or "bill of" in name:
        return "Bill of Lading"
    if "packing" in name or "pl-" in name or "pl_" in name:
        return "Packing List"
    if "manifest" in name:
        return "Manifest"
    if "delivery" in name or "do-" in name or "do_" in name:
        return "Delivery Order"
    return "Unknown Document"


def fixture_extraction(
    documents: Sequence[SourceDocument],
    error: Exception,
) -> ExtractionResult:
    records = [
        DocumentRecord(
            document_index=i + 1,
            document_type=guess_document_type(doc.name),
            fields={
                "File Name": doc.name,
                "Error": f"Extraction failed: {error}",
            },
        )
        for i, doc in enumerate(documents)
    ]
    return ExtractionResult(
        document_records=records,
        document_types=[r.document_type for r in records],
        field_index={
            "File Name": [doc.name for doc in documents],
        },
        raw_text=f"Extraction failed: {error}",
        degraded=True,
    )


DEGRADE_STRATEGIES = {
    RethrowStrategy.name: RethrowStrategy,
    FixtureStrategy.name: FixtureStrategy,
}


def build_degrade_strategy(name: str) -> DegradeStrategy:
    try:
        return DEGRADE_STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown degrade strategy '{name}'. "
            f"Allowed values: {sorted(DEGRADE_STRATEGIES)}"
        ) from None
