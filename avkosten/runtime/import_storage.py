"""Storage of staged invoice imports awaiting review.

An invoice that made it through extraction is written to ``imports/staged/``
as an editable JSON draft. The draft carries the retained source document so
that a later commit can attach it to the new receipt.

Directory structure:
    imports/
    └── staged/   - extracted invoices, not yet committed
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from avkosten.domain.money import line_total, to_decimal
from avkosten.domain.project import SourceDocument, new_id
from avkosten.invoice.staging import StagedImport, StagedLine
from avkosten.runtime.logging import get_logger
from avkosten.runtime.paths import get_paths

logger = get_logger(__name__)

DRAFT_TYPE = "av-kostentracker-staged-import"
DRAFT_VERSION = 1


class DraftFormatError(ValueError):
    """Raised when a staged draft file cannot be decoded."""


def encode_staged_import(staged: StagedImport, document: SourceDocument | None = None) -> dict[str, Any]:
    return {
        "_type": DRAFT_TYPE,
        "_version": DRAFT_VERSION,
        "supplier": staged.supplier,
        "date": staged.invoice_date.isoformat(),
        "invoiceNumber": staged.invoice_number,
        "totalGross": str(staged.total_gross),
        "lines": [
            {
                "id": line.id,
                "include": line.include,
                "description": line.description,
                "qty": str(line.quantity),
                "unitPrice": str(line.unit_price),
                "lineTotal": str(line.line_total),
                "extractedTotal": None if line.extracted_total is None else str(line.extracted_total),
            }
            for line in staged.lines
        ],
        "source": None
        if document is None
        else {
            "fileName": document.filename,
            "pdfBase64": base64.b64encode(document.content).decode("ascii"),
        },
    }


def _decimal(value: Any, field_name: str) -> Decimal:
    try:
        return to_decimal(value, field_name)
    except ValueError as exc:
        raise DraftFormatError(str(exc)) from exc


def _decode_line(raw: Any, index: int) -> StagedLine:
    if not isinstance(raw, dict):
        raise DraftFormatError(f"Line {index + 1} is not an object")
    quantity = _decimal(raw.get("qty", 1), f"line {index + 1} qty")
    unit_price = _decimal(raw.get("unitPrice", 0), f"line {index + 1} unitPrice")
    extracted = raw.get("extractedTotal")
    include = raw.get("include", True)
    if not isinstance(include, bool):
        raise DraftFormatError(f"Line {index + 1} include must be true or false, got {include!r}")
    return StagedLine(
        id=str(raw.get("id") or new_id()),
        description=str(raw.get("description") or ""),
        quantity=quantity,
        unit_price=unit_price,
        # Editors change qty/unitPrice by hand; the total is always recomputed.
        line_total=line_total(quantity, unit_price),
        include=include,
        extracted_total=None if extracted is None else _decimal(extracted, f"line {index + 1} extractedTotal"),
    )


def decode_staged_import(data: Any) -> tuple[StagedImport, SourceDocument | None]:
    """
    Decode a draft dict into the staged import and its source document.

    Raises:
        DraftFormatError: If the draft is not a staged import or is malformed.
    """
    if not isinstance(data, dict) or data.get("_type") != DRAFT_TYPE:
        raise DraftFormatError("Not a staged invoice import")
    try:
        invoice_date = date.fromisoformat(str(data.get("date")))
    except ValueError as exc:
        raise DraftFormatError(f"Invalid date: {data.get('date')!r}") from exc
    raw_lines = data.get("lines") or []
    if not isinstance(raw_lines, list):
        raise DraftFormatError("'lines' must be a list")

    document = None
    source = data.get("source")
    if isinstance(source, dict) and source.get("pdfBase64"):
        try:
            content = base64.b64decode(source["pdfBase64"], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DraftFormatError("Invalid source document payload") from exc
        document = SourceDocument(filename=str(source.get("fileName") or ""), content=content)

    staged = StagedImport(
        supplier=str(data.get("supplier") or ""),
        invoice_date=invoice_date,
        invoice_number=str(data.get("invoiceNumber") or ""),
        total_gross=_decimal(data.get("totalGross", 0), "totalGross"),
        lines=[_decode_line(line, i) for i, line in enumerate(raw_lines)],
    )
    return staged, document


def generate_draft_filename(staged: StagedImport) -> str:
    """
    Generate filename for a staged draft.

    Format: YYYY-MM-DD_supplier_amount.json
    """
    date_str = staged.invoice_date.strftime("%Y-%m-%d")

    supplier_clean = staged.supplier.lower()
    supplier_clean = "".join(c if c.isalnum() else "_" for c in supplier_clean)
    supplier_clean = "_".join(filter(None, supplier_clean.split("_")))
    if not supplier_clean:
        supplier_clean = "unknown"
    if len(supplier_clean) > 30:
        supplier_clean = supplier_clean[:30]

    amount_str = f"{staged.total_gross:.2f}".replace(".", "_").replace("-", "m")

    return f"{date_str}_{supplier_clean}_{amount_str}.json"


def save_staged_import(staged: StagedImport, document: SourceDocument | None = None) -> Path:
    """Save a staged import to imports/staged/ and return its path."""
    staged_dir = get_paths().imports_staged
    staged_dir.mkdir(parents=True, exist_ok=True)

    filename = generate_draft_filename(staged)
    filepath = staged_dir / filename

    # Handle filename collisions by appending a counter
    counter = 1
    base_name = filename.rsplit(".", 1)[0]
    while filepath.exists():
        filepath = staged_dir / f"{base_name}_{counter}.json"
        counter += 1

    content = json.dumps(encode_staged_import(staged, document), ensure_ascii=False, indent=2)
    filepath.write_text(content, encoding="utf-8")
    logger.info("Saved staged import to %s", filepath)
    return filepath


def load_staged_import(path: Path) -> tuple[StagedImport, SourceDocument | None]:
    if not path.exists():
        raise FileNotFoundError(f"Staged import not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise DraftFormatError(f"{path.name} is not valid UTF-8: {exc.reason}") from exc
    except json.JSONDecodeError as exc:
        raise DraftFormatError(f"{path.name} is not valid JSON: {exc.msg}") from exc
    return decode_staged_import(data)


def list_staged_imports() -> list[Path]:
    """List all drafts in imports/staged/, oldest name first."""
    staged_dir = get_paths().imports_staged
    if not staged_dir.exists():
        return []
    return sorted(staged_dir.glob("*.json"))


def resolve_staged_import(name: str | None) -> Path | None:
    """
    Find a draft by path or file name; ``None`` picks the only draft there is.

    Returns None when nothing (or, for ``None``, more than one draft) matches.
    """
    if name is None:
        drafts = list_staged_imports()
        return drafts[0] if len(drafts) == 1 else None
    candidate = Path(name)
    if candidate.exists():
        return candidate
    candidate = get_paths().imports_staged / name
    return candidate if candidate.exists() else None


def delete_staged_import(path: Path) -> bool:
    """
    Delete a draft file.

    Returns:
        True if deleted, False if not found
    """
    if path.exists():
        path.unlink()
        logger.info("Deleted %s", path)
        return True
    return False
