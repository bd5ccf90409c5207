import json
from typing import Any, List

from doclens.app.config import PipelineConfig
from doclens.app.generation.stage_executor import StageExecutor
from doclens.app.pipeline.assembler import build_comparison_pipeline
from doclens.app.pipeline.orchestrator import ComparisonPipeline
from doclens.app.prompts.prompt_fragment import PromptFragment
from doclens.app.schemas.documents import SourceDocument


def make_test_prompt(stage: str) -> PromptFragment:
    return PromptFragment(
        stage=stage,
        version="test",
        text="Test prompt text",
    )


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_executor(generator, *, max_attempts: int = 3, sleep=None) -> StageExecutor:
    return StageExecutor(
        generator,
        max_attempts=max_attempts,
        base_delay=1.0,
        sleep=sleep or RecordingSleep(),
        rng=lambda: 1.0,
    )


def make_pipeline(generator, **overrides: Any) -> ComparisonPipeline:
    config = PipelineConfig(**overrides)
    return build_comparison_pipeline(
        executor=make_executor(generator, max_attempts=config.MAX_ATTEMPTS),
        config=config,
    )


def sample_documents() -> List[SourceDocument]:
    return [
        SourceDocument(
            name="invoice-001.txt",
            document_type="invoice",
            text="Invoice No: INV-001\nTotal: 1,989.00 GBP\nGross weight: 120 kg",
        ),
        SourceDocument(
            name="packing_list.txt",
            document_type="packing_list",
            text="Invoice ref: INV-001\nPackages: 4\nGross weight: 118 kg",
        ),
    ]


# ----------------------------------------------------------------------
# Canned generator replies
# ----------------------------------------------------------------------

EXTRACTION_REPLY = "Here is the data:\n```json\n" + json.dumps(
    {
        "documentData": [
            {
                "documentIndex": 1,
                "documentType": "Invoice",
                "fields": {"Invoice Number": "INV-001", "Gross Weight": "120 kg"},
            },
            {
                "documentIndex": 2,
                "documentType": "Packing List",
                "fields": {"Invoice Number": "INV-001", "Gross Weight": "118 kg"},
            },
        ],
        "documentTypes": ["Invoice", "Packing List"],
        "extractedFields": {
            "Invoice Number": ["INV-001", "INV-001"],
            "Gross Weight": ["120 kg", "118 kg"],
        },
    },
    indent=2,
) + "\n```"

ANALYSIS_REPLY = """## Comparison Tables

### Weights

| Field | Invoice | Packing List |
|---|---|---|
| Gross Weight | 120 kg | 118 kg |
| Invoice Number | INV-001 |

## Analysis
The gross weight differs by 2 kg between the documents.

## Summary
Documents mostly agree.

## Risks
Weight mismatch may delay customs clearance.
"""

VALIDATION_REPLY = """THINKING PROCESS:
I compared every field against the source text.

FINAL VALIDATION RESULTS:

<section_name>Verification</section_name>
<quotes>"Gross weight: 120 kg"</quotes>
<analysis>Invoice Number and Gross Weight were checked.</analysis>

<section_name>Validation</section_name>
<quotes>"Gross weight: 118 kg"</quotes>
<analysis>The weight discrepancy is confirmed.</analysis>

<section_name>Analysis</section_name>
<quotes>"Invoice No: INV-001"</quotes>
<analysis>References match.</analysis>

<section_name>Summary</section_name>
<quotes>"Packages: 4"</quotes>
<analysis>One discrepancy found.</analysis>

| Field | Invoice | Packing List |
|---|---|---|
| Gross Weight | 120 kg | 118 kg |

Confidence score: 85%
"""

REPORT_REPLY = "```json\n" + json.dumps(
    {
        "summary": {
            "shipmentIdentifier": "AWB 098 LHR 80828764",
            "documentCount": 2,
            "documentTypes": ["invoice", "packing_list"],
            "consistencyScore": 0.72,
            "riskAssessment": "medium",
            "expertSummary": "Weights disagree.",
        },
        "discrepancies": [
            {
                "fieldName": "grossWeight",
                "category": "critical",
                "impact": "Customs may hold the shipment.",
                "documents": [
                    {"documentName": "invoice.pdf", "value": "120 kg"},
                    {"documentName": "packing.pdf", "value": "118 kg"},
                ],
                "recommendation": "Re-weigh the cargo.",
            }
        ],
        "insights": [
            {
                "title": "Weight variance",
                "description": "2 kg difference",
                "category": "customs",
                "severity": "warning",
            }
        ],
        "recommendations": [
            {"action": "Amend packing list", "priority": "high", "reasoning": "x"}
        ],
        "metadata": {"processingTime": 999999},
    }
) + "\n```"
