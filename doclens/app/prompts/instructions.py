"""
Prompt inserts keyed by comparison type and by document type.
"""

from __future__ import annotations

from typing import Dict, List


# ----------------------------------------------------------------------
# Comparison types (analysis stage)
# ----------------------------------------------------------------------

COMPARISON_INSTRUCTIONS: Dict[str, str] = {
    "general": (
        "Analyze the provided documents and extract key information. "
        "Focus on identifying discrepancies and important details."
    ),
    "invoice_packing": (
        "Compare the commercial invoice against the packing list. Check that "
        "item descriptions, quantities, package counts, gross and net weights "
        "and invoice references agree line by line."
    ),
    "logistics": (
        "Treat the documents as one shipment. Reconcile shipper, consignee, "
        "origin, destination, routing, waybill and container references, "
        "weights and package counts, and flag any commodity or HSN code "
        "mismatch as critical."
    ),
    "verification": (
        "Verify each document against the others. For every field that "
        "appears in more than one document, state whether the values agree "
        "and quote the differing values when they do not."
    ),
}


def comparison_instructions(comparison_type: str) -> str:
    key = (comparison_type or "general").lower().replace("-", "_")
    return COMPARISON_INSTRUCTIONS.get(key, COMPARISON_INSTRUCTIONS["general"])


# ----------------------------------------------------------------------
# Document types (single-document extraction)
# ----------------------------------------------------------------------

CRITICAL_FIELDS: Dict[str, List[str]] = {
    "invoice": ["invoiceNumber", "invoiceDate", "totalAmount", "seller", "buyer"],
    "air_waybill": [
        "awbNumber", "origin", "destination",
        "shipper", "consignee", "goodsDescription",
    ],
    "house_waybill": [
        "hawbNumber", "origin", "destination",
        "shipper", "consignee", "goodsDescription",
    ],
    "bill_of_entry": [
        "beNumber", "importerName", "importerCode",
        "assessableValue", "totalDuty",
    ],
    "packing_list": ["invoiceNumber", "packageCount", "grossWeight", "netWeight"],
    "delivery_note": ["deliveryNumber", "customerName", "deliveryDate", "items"],
}

DOCUMENT_TYPE_INSTRUCTIONS: Dict[str, str] = {
    "invoice": (
        "## INVOICE-SPECIFIC PATTERNS\n"
        "- Invoice numbers often appear as \"Invoice No: CD970077514\"\n"
        "- Currency codes appear next to amounts (e.g. \"1,989.00 GBP\")\n"
        "- Delivery terms may appear as \"FCA (Incoterms 2020)\""
    ),
    "house_waybill": (
        "## HAWB-SPECIFIC PATTERNS\n"
        "- HAWB numbers are typically short: \"448765\"\n"
        "- Master AWB numbers include airport codes: \"098 LHR 80828764\"\n"
        "- Look for \"FREIGHT COLLECT\" or \"FREIGHT PREPAID\" terms"
    ),
    "air_waybill": (
        "## MAWB-SPECIFIC PATTERNS\n"
        "- Master AWB numbers include airport codes: \"098 LHR 80828764\"\n"
        "- May reference multiple house waybills\n"
        "- Contains total weight for all consolidated shipments"
    ),
    "bill_of_entry": (
        "## BILL OF ENTRY-SPECIFIC PATTERNS\n"
        "- Contains customs duty calculations with HSN codes\n"
        "- Includes importer IEC code and other customs identifiers"
    ),
    "delivery_note": (
        "## DELIVERY NOTE-SPECIFIC PATTERNS\n"
        "- Contains package counts and delivery instructions\n"
        "- May reference related invoice or order numbers"
    ),
    "packing_list": (
        "## PACKING LIST-SPECIFIC PATTERNS\n"
        "- Lists dimensions and weights for each package\n"
        "- Often references related invoice numbers"
    ),
}

GENERAL_DOCUMENT_INSTRUCTIONS = (
    "## GENERAL DOCUMENT PATTERNS\n"
    "- Look for document title or type indicators at the top\n"
    "- Identify key reference numbers and dates\n"
    "- Extract monetary values with currency indicators"
)


def critical_fields_for(document_type: str) -> List[str]:
    return list(CRITICAL_FIELDS.get(document_type, []))


def document_type_instructions(document_type: str) -> str:
    return DOCUMENT_TYPE_INSTRUCTIONS.get(
        document_type, GENERAL_DOCUMENT_INSTRUCTIONS
    )
