"""Project snapshot envelope (de)serialization.

The envelope is a plain JSON-compatible dict:

    {"_version": 2, "_type": "av-kostentracker-project",
     "_savedAt": "<ISO timestamp>", "project": {...}}

Entity keys follow the established project file format (``gewerk``/``sub``
for category/subcategory, ``receiptLines``, ``pdfBase64``...), so files
written by earlier versions of the tracker load unchanged. File I/O lives in
``avkosten.runtime.project_storage``.
"""

from __future__ import annotations

import base64
import binascii
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from avkosten.domain.errors import SnapshotFormatError
from avkosten.domain.money import line_total, to_decimal
from avkosten.domain.project import (
    PROVENANCE_PDF_IMPORT,
    PlannedItem,
    Project,
    Receipt,
    ReceiptLine,
    SourceDocument,
    Taxonomy,
)

SNAPSHOT_TYPE = "av-kostentracker-project"
SNAPSHOT_VERSION = 2

# Note text the tracker has always put on imported receipts.
IMPORT_NOTE = "PDF-Import"


def _number(value: Decimal) -> int | float:
    """JSON number for a Decimal; integral values stay ints."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def encode_project(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "categories": project.taxonomy.to_mapping(),
        "items": [
            {
                "id": item.id,
                "name": item.name,
                "gewerk": item.category,
                "sub": item.subcategory,
                "qty": item.quantity,
                "unitPrice": _number(item.unit_price),
                "total": _number(item.planned_total),
                "notes": item.note,
            }
            for item in project.items
        ],
        "receipts": [_encode_receipt(receipt) for receipt in project.receipts],
        "receiptLines": [
            {
                "id": line.id,
                "receiptId": line.receipt_id,
                "description": line.description,
                "qty": _number(line.quantity),
                "unitPrice": _number(line.unit_price),
                "lineTotal": _number(line.line_total),
                "itemId": line.item_id,
            }
            for line in project.lines
        ],
    }


def _encode_receipt(receipt: Receipt) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": receipt.id,
        "supplier": receipt.supplier,
        "date": receipt.date.isoformat(),
        "number": receipt.number,
        "totalGross": _number(receipt.total_gross),
        "notes": receipt.note,
        "pdfBase64": None,
        "pdfFileName": None,
    }
    if receipt.document is not None:
        data["pdfBase64"] = base64.b64encode(receipt.document.content).decode("ascii")
        data["pdfFileName"] = receipt.document.filename
    if receipt.provenance:
        data["provenance"] = receipt.provenance
    return data


def encode_snapshot(project: Project, saved_at: datetime | None = None) -> dict[str, Any]:
    """Wrap a project in the versioned snapshot envelope."""
    saved_at = saved_at or datetime.now().astimezone()
    return {
        "_version": SNAPSHOT_VERSION,
        "_type": SNAPSHOT_TYPE,
        "_savedAt": saved_at.isoformat(),
        "project": encode_project(project),
    }


def _require(data: dict[str, Any], key: str, context: str) -> Any:
    if key not in data:
        raise SnapshotFormatError(f"{context}: missing '{key}'")
    return data[key]


def _as_list(value: Any, context: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotFormatError(f"{context} must be a list")
    return value


def _as_dict(value: Any, context: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SnapshotFormatError(f"{context} must be an object")
    return value


def _decimal(value: Any, context: str) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return to_decimal(value, context)
    except ValueError as exc:
        raise SnapshotFormatError(str(exc)) from exc


def _decode_taxonomy(value: Any) -> Taxonomy:
    mapping = _as_dict(value if value is not None else {}, "categories")
    categories: list[tuple[str, tuple[str, ...]]] = []
    for name, subs in mapping.items():
        sub_list = _as_list(subs, f"subcategories of {name}")
        categories.append((str(name), tuple(str(sub) for sub in sub_list)))
    return Taxonomy(tuple(categories))


def _decode_item(raw: Any) -> PlannedItem:
    data = _as_dict(raw, "item")
    context = f"item {data.get('id', '?')}"
    quantity = _decimal(data.get("qty", 1), f"{context} qty")
    if quantity != quantity.to_integral_value():
        raise SnapshotFormatError(f"{context}: qty must be a whole number")
    unit_price = _decimal(data.get("unitPrice", 0), f"{context} unitPrice")
    return PlannedItem(
        id=str(_require(data, "id", "item")),
        name=str(data.get("name", "")),
        category=str(data.get("gewerk", "")),
        subcategory=str(data.get("sub", "")),
        quantity=int(quantity),
        unit_price=unit_price,
        planned_total=line_total(int(quantity), unit_price),
        note=str(data.get("notes") or ""),
    )


def _decode_receipt(raw: Any) -> Receipt:
    data = _as_dict(raw, "receipt")
    receipt_id = str(_require(data, "id", "receipt"))
    context = f"receipt {receipt_id}"
    try:
        receipt_date = date.fromisoformat(str(_require(data, "date", context)))
    except ValueError as exc:
        raise SnapshotFormatError(f"{context}: invalid date {data.get('date')!r}") from exc

    document = None
    encoded = data.get("pdfBase64")
    if encoded:
        try:
            content = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SnapshotFormatError(f"{context}: invalid pdfBase64 payload") from exc
        document = SourceDocument(filename=str(data.get("pdfFileName") or ""), content=content)

    note = str(data.get("notes") or "")
    provenance = data.get("provenance")
    if provenance is None and note == IMPORT_NOTE:
        provenance = PROVENANCE_PDF_IMPORT
    return Receipt(
        id=receipt_id,
        supplier=str(data.get("supplier", "")),
        date=receipt_date,
        number=str(data.get("number") or ""),
        total_gross=_decimal(data.get("totalGross", 0), f"{context} totalGross"),
        note=note,
        document=document,
        provenance=str(provenance) if provenance else None,
    )


def _decode_line(raw: Any) -> ReceiptLine:
    data = _as_dict(raw, "receipt line")
    line_id = str(_require(data, "id", "receipt line"))
    context = f"receipt line {line_id}"
    quantity = _decimal(data.get("qty", 1), f"{context} qty")
    unit_price = _decimal(data.get("unitPrice", 0), f"{context} unitPrice")
    item_id = data.get("itemId")
    return ReceiptLine(
        id=line_id,
        receipt_id=str(_require(data, "receiptId", context)),
        description=str(data.get("description", "")),
        quantity=quantity,
        unit_price=unit_price,
        line_total=line_total(quantity, unit_price),
        item_id=str(item_id) if item_id else None,
    )


def decode_project(raw: Any) -> Project:
    data = _as_dict(raw, "project")
    return Project(
        id=str(_require(data, "id", "project")),
        name=str(data.get("name", "")),
        taxonomy=_decode_taxonomy(data.get("categories")),
        items=tuple(_decode_item(item) for item in _as_list(data.get("items"), "items")),
        receipts=tuple(_decode_receipt(r) for r in _as_list(data.get("receipts"), "receipts")),
        lines=tuple(_decode_line(line) for line in _as_list(data.get("receiptLines"), "receiptLines")),
    )


def decode_snapshot(envelope: Any) -> Project:
    """
    Verify the envelope and decode the project it carries.

    Raises:
        SnapshotFormatError: If ``_type`` is not a tracker project, the
            version is unsupported, or any entity is malformed.
    """
    if not isinstance(envelope, dict):
        raise SnapshotFormatError("Snapshot must be a JSON object")
    if envelope.get("_type") != SNAPSHOT_TYPE:
        raise SnapshotFormatError(f"Not a project file (_type={envelope.get('_type')!r})")
    version = envelope.get("_version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version > SNAPSHOT_VERSION:
        raise SnapshotFormatError(f"Unsupported project file version: {version!r}")
    if not envelope.get("project"):
        raise SnapshotFormatError("Snapshot has no project")
    return decode_project(envelope["project"])
