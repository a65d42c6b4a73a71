"""Structured-extraction contract for invoice documents.

The document-understanding collaborator receives ``EXTRACTION_INSTRUCTIONS``
plus the (truncated) invoice text and must answer with a single JSON object:

    {"supplier": "...", "date": "YYYY-MM-DD", "invoiceNumber": "...",
     "totalGross": 123.45,
     "lines": [{"description": "...", "qty": 1, "unitPrice": 0, "lineTotal": 0}]}

Models like to wrap that object in Markdown fences or a sentence of prose;
``unwrap_payload`` strips such wrappers before parsing.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from avkosten.domain.money import ZERO, line_total, round2, to_decimal

DEFAULT_MAX_INPUT_CHARS = 6000

EXTRACTION_INSTRUCTIONS = """You are an invoice parser for AV installation projects (audio, video, lighting, control).
Extract the following from the invoice text:

1. Invoice metadata:
   - supplier: supplier / company name
   - date: invoice date (YYYY-MM-DD)
   - invoiceNumber: invoice number
   - totalGross: gross invoice total (number)

2. Line items (array "lines"):
   - description: short, precise article description
   - qty: quantity (number)
   - unitPrice: net unit price (number)
   - lineTotal: line total (number)

Answer ONLY with valid JSON: no Markdown, no backticks, no other text.
Example:
{"supplier":"Thomann","date":"2026-01-15","invoiceNumber":"TH-123","totalGross":1234.56,"lines":[{"description":"JBL Control 25-1","qty":4,"unitPrice":189.00,"lineTotal":756.00}]}

List shipping, packaging and similar charges as separate lines.
Use decimal points, never decimal commas, in numbers.
If you cannot determine a value, use sensible defaults (qty: 1, unitPrice: 0) instead of omitting it."""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class MalformedExtractionError(ValueError):
    """Raised when the extraction response does not satisfy the contract."""


@dataclass(frozen=True)
class ExtractedLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class ExtractedInvoice:
    supplier: str
    invoice_date: date | None
    invoice_number: str
    total_gross: Decimal
    lines: tuple[ExtractedLine, ...]


def build_user_message(text: str, max_chars: int = DEFAULT_MAX_INPUT_CHARS) -> str:
    """User message for the collaborator, with the invoice text truncated to ``max_chars``."""
    return f"Please parse this invoice:\n\n{text[:max_chars]}"


def unwrap_payload(raw: str) -> str:
    """Strip code fences and any prose around the outermost JSON object."""
    cleaned = _FENCE_RE.sub("", raw).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise MalformedExtractionError("Extraction response contains no JSON object")
    return cleaned[start : end + 1]


def _number(value: Any, default: Decimal, field_name: str) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return to_decimal(value, field_name)
    except ValueError as exc:
        raise MalformedExtractionError(str(exc)) from exc


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def _parse_line(raw: Any, index: int) -> ExtractedLine:
    if not isinstance(raw, dict):
        raise MalformedExtractionError(f"Line {index + 1} is not an object")
    quantity = _number(raw.get("qty"), Decimal("1"), f"line {index + 1} qty")
    if quantity == ZERO:
        quantity = Decimal("1")
    unit_price = _number(raw.get("unitPrice"), ZERO, f"line {index + 1} unitPrice")
    total = _number(raw.get("lineTotal"), ZERO, f"line {index + 1} lineTotal")
    if total == ZERO:
        total = line_total(quantity, unit_price)
    return ExtractedLine(
        description=str(raw.get("description") or "").strip(),
        quantity=quantity,
        unit_price=unit_price,
        line_total=round2(total),
    )


def parse_invoice_payload(raw: str) -> ExtractedInvoice:
    """
    Parse a collaborator response into an ``ExtractedInvoice``.

    Missing scalar fields fall back to empty/zero defaults; anything that is
    not a JSON object with a list of line objects is rejected.

    Raises:
        MalformedExtractionError: If the payload violates the contract.
    """
    try:
        data = json.loads(unwrap_payload(raw))
    except json.JSONDecodeError as exc:
        raise MalformedExtractionError(f"Extraction response is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise MalformedExtractionError("Extraction response is not a JSON object")

    raw_lines = data.get("lines") or []
    if not isinstance(raw_lines, list):
        raise MalformedExtractionError("'lines' must be a list")

    return ExtractedInvoice(
        supplier=str(data.get("supplier") or "").strip(),
        invoice_date=_parse_date(data.get("date")),
        invoice_number=str(data.get("invoiceNumber") or "").strip(),
        total_gross=_number(data.get("totalGross"), ZERO, "totalGross"),
        lines=tuple(_parse_line(line, i) for i, line in enumerate(raw_lines)),
    )
