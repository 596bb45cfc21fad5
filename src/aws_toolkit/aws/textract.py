"""Amazon Textract OCR, form extraction and invoice parsing."""

import logging
import re
from pathlib import Path
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)

EXPENSE_FIELD_KEYS: Final = {
    "TOTAL": "total",
    "TAX": "tax",
    "SUBTOTAL": "subtotal",
    "INVOICE_RECEIPT_ID": "invoice_number",
    "INVOICE_RECEIPT_DATE": "invoice_date",
    "VENDOR_NAME": "vendor",
    "RECEIVER_NAME": "receiver",
    "AMOUNT_PAID": "amount_paid",
    "AMOUNT_DUE": "amount_due",
}

INVOICE_CODE_PATTERN: Final = re.compile(r"(\d{10,12})")
AMOUNT_PATTERN: Final = re.compile(r"¥?(\d+\.\d{2})")
TAX_RATE_PATTERN: Final = re.compile(r"(\d+)%")
AMOUNT_TOLERANCE: Final = 0.01
CURRENCY: Final = "¥"


def parse_invoice_text(text: str) -> dict[str, str]:
    """Extract invoice fields from OCR text.

    The largest amount is taken as the total including tax. The tax is the
    smallest positive amount ``v`` for which another amount equals
    ``total - v`` within 0.01; that other amount is the pre-tax amount.

    Args:
        text: OCR text of an invoice.

    Returns:
        Any of invoice_code, tax_rate, total_with_tax, tax and amount.

    Example:
        >>> parse_invoice_text("No. 044031900111 Amount 100.00 13% Tax 13.00 Total 113.00")
        {'invoice_code': '044031900111', 'tax_rate': '13%', 'total_with_tax': '¥113.00',
         'tax': '¥13.00', 'amount': '¥100.00'}
    """
    result: dict[str, str] = {}

    code = INVOICE_CODE_PATTERN.search(text)
    if code:
        result["invoice_code"] = code.group(1)

    amounts = AMOUNT_PATTERN.findall(text)
    if not amounts:
        return result
    logger.debug(f"Found {len(amounts)} amount(s): {amounts}")

    rate = TAX_RATE_PATTERN.search(text)
    if rate:
        result["tax_rate"] = f"{rate.group(1)}%"

    if len(amounts) < 2:
        return result

    total = max(amounts, key=float)
    total_value = float(total)
    result["total_with_tax"] = f"{CURRENCY}{total}"

    best: tuple[str, str] | None = None
    for candidate in amounts:
        value = float(candidate)
        if not 0 < value < total_value:
            continue
        pre_tax = next(
            (a for a in amounts if abs(float(a) - (total_value - value)) < AMOUNT_TOLERANCE),
            None,
        )
        if pre_tax is not None and (best is None or value < float(best[0])):
            best = (candidate, pre_tax)

    if best is not None:
        result["tax"] = f"{CURRENCY}{best[0]}"
        result["amount"] = f"{CURRENCY}{best[1]}"
    return result


def _collect_text(
    block: dict[str, Any], blocks_by_id: dict[str, dict[str, Any]], relationship_type: str
) -> str:
    words = []
    for relationship in block.get("Relationships", []):
        if relationship["Type"] != relationship_type:
            continue
        for child_id in relationship["Ids"]:
            child = blocks_by_id.get(child_id)
            if child is not None and child.get("Text"):
                words.append(child["Text"])
    return " ".join(words)


def _field_text(field: dict[str, Any], part: str) -> str:
    return str(field.get(part, {}).get("Text", ""))


class TextractService:
    """Service for Textract document analysis of local files.

    Example:
        >>> textract = TextractService()
        >>> text = await textract.analyze_document("invoice.pdf")
        >>> fields = await textract.analyze_invoice("invoice.pdf")
        >>> fields["total_with_tax"]
        '¥113.00'
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("textract", settings=self.settings)

    async def analyze_document(self, file_path: str) -> str:
        """OCR a document and return its LINE blocks joined by newlines."""
        document = {"Bytes": Path(file_path).read_bytes()}
        try:
            response = await self.client.call("detect_document_text", Document=document)
        except Exception as e:
            logger.error(f"Failed to detect text in {file_path}: {e}")
            raise

        lines = [b.get("Text", "") for b in response.get("Blocks", []) if b["BlockType"] == "LINE"]
        logger.info(f"Extracted {len(lines)} line(s) from {file_path}")
        return "\n".join(lines)

    async def analyze_expense_document(self, file_path: str) -> dict[str, str]:
        """Extract summary fields and line items of an invoice or receipt.

        Known summary field types map to fixed keys (total, tax, vendor, ...).
        Other fields are keyed by their label when both label and value are
        present. Line items are joined under ``line_items``, one per line.
        """
        document = {"Bytes": Path(file_path).read_bytes()}
        try:
            response = await self.client.call("analyze_expense", Document=document)
        except Exception as e:
            logger.error(f"Failed to analyze expense document {file_path}: {e}")
            raise

        result: dict[str, str] = {}
        line_items: list[str] = []
        for expense in response.get("ExpenseDocuments", []):
            for field in expense.get("SummaryFields", []):
                field_type = _field_text(field, "Type") or "UNKNOWN"
                value = _field_text(field, "ValueDetection")
                label = _field_text(field, "LabelDetection") or field_type
                logger.debug(f"Summary field {field_type} ({label}): {value}")

                key = EXPENSE_FIELD_KEYS.get(field_type.upper())
                if key is not None:
                    result[key] = value
                elif label and value:
                    result[label] = value

            for group in expense.get("LineItemGroups", []):
                for item in group.get("LineItems", []):
                    parts = [
                        f"{_field_text(f, 'Type')}: {_field_text(f, 'ValueDetection')} | "
                        for f in item.get("LineItemExpenseFields", [])
                        if _field_text(f, "ValueDetection")
                    ]
                    if parts:
                        line_items.append("".join(parts))

        if line_items:
            result["line_items"] = "\n".join(line_items)

        logger.info(f"Extracted {len(result)} expense field(s) from {file_path}")
        return result

    async def analyze_document_forms(self, file_path: str) -> dict[str, str]:
        """Extract the key/value pairs of a form."""
        document = {"Bytes": Path(file_path).read_bytes()}
        try:
            response = await self.client.call(
                "analyze_document", Document=document, FeatureTypes=["FORMS"]
            )
        except Exception as e:
            logger.error(f"Failed to analyze form {file_path}: {e}")
            raise

        blocks = response.get("Blocks", [])
        blocks_by_id = {b["Id"]: b for b in blocks}
        pairs: dict[str, str] = {}
        for block in blocks:
            if block["BlockType"] != "KEY_VALUE_SET" or "KEY" not in block.get("EntityTypes", []):
                continue

            key = _collect_text(block, blocks_by_id, "CHILD")
            value = ""
            for relationship in block.get("Relationships", []):
                if relationship["Type"] != "VALUE":
                    continue
                for value_id in relationship["Ids"]:
                    value_block = blocks_by_id.get(value_id)
                    if value_block is not None:
                        value = _collect_text(value_block, blocks_by_id, "CHILD")

            if key.strip():
                pairs[key.strip()] = value.strip()

        logger.info(f"Extracted {len(pairs)} key/value pair(s) from {file_path}")
        return pairs

    async def analyze_invoice(self, file_path: str) -> dict[str, str]:
        """Parse an invoice from its OCR text, then add expense analysis fields.

        Fields found in the OCR text take precedence. If expense analysis
        fails, the OCR fields are returned alone.
        """
        text = await self.analyze_document(file_path)
        logger.debug(f"OCR text of {file_path}:\n{text}")
        result = parse_invoice_text(text)

        try:
            expense = await self.analyze_expense_document(file_path)
        except Exception as e:
            logger.warning(f"Expense analysis failed, using OCR fields only: {e}")
        else:
            for key, value in expense.items():
                if value and key not in result:
                    result[key] = value

        logger.info(f"Parsed {len(result)} invoice field(s) from {file_path}")
        return result

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
