"""Receipt store operations: receipts, receipt lines and rate adjustment."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from avkosten.domain.errors import UnknownReferenceError, ValidationError
from avkosten.domain.money import DEFAULT_RATE, ZERO, apply_rate, line_total, to_decimal
from avkosten.domain.project import Project, Receipt, ReceiptLine, SourceDocument, new_id


def _as_decimal(value: object, field_name: str) -> Decimal:
    try:
        return to_decimal(value, field_name)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def create_receipt(
    project: Project,
    supplier: str,
    receipt_date: date,
    number: str = "",
    total_gross: Decimal = ZERO,
    note: str = "",
    receipt_id: str | None = None,
) -> Project:
    """Append a manually entered receipt without lines."""
    supplier = supplier.strip()
    if not supplier:
        raise ValidationError("Supplier must not be empty")
    receipt_id = receipt_id or new_id()
    if project.find_receipt(receipt_id) is not None:
        raise ValidationError(f"Duplicate receipt id: {receipt_id}")
    receipt = Receipt(
        id=receipt_id,
        supplier=supplier,
        date=receipt_date,
        number=number.strip(),
        total_gross=_as_decimal(total_gross, "total gross"),
        note=note,
    )
    return replace(project, receipts=project.receipts + (receipt,))


def update_receipt(
    project: Project,
    receipt_id: str,
    supplier: str,
    receipt_date: date,
    number: str = "",
    total_gross: Decimal = ZERO,
    note: str = "",
) -> Project:
    """Replace the editable fields of a receipt; document and provenance are kept."""
    project.get_receipt(receipt_id)
    supplier = supplier.strip()
    if not supplier:
        raise ValidationError("Supplier must not be empty")
    gross = _as_decimal(total_gross, "total gross")
    receipts = tuple(
        replace(r, supplier=supplier, date=receipt_date, number=number.strip(), total_gross=gross, note=note)
        if r.id == receipt_id
        else r
        for r in project.receipts
    )
    return replace(project, receipts=receipts)


def delete_receipt(project: Project, receipt_id: str) -> Project:
    """Delete a receipt and every line it owns."""
    project.get_receipt(receipt_id)
    return replace(
        project,
        receipts=tuple(r for r in project.receipts if r.id != receipt_id),
        lines=tuple(line for line in project.lines if line.receipt_id != receipt_id),
    )


def build_line(
    receipt_id: str,
    description: str,
    quantity: object,
    unit_price: object,
    line_id: str | None = None,
) -> ReceiptLine:
    """Validate inputs and build an unallocated line with its total computed."""
    description = description.strip()
    if not description:
        raise ValidationError("Line description must not be empty")
    qty = _as_decimal(quantity, "quantity")
    price = _as_decimal(unit_price, "unit price")
    return ReceiptLine(
        id=line_id or new_id(),
        receipt_id=receipt_id,
        description=description,
        quantity=qty,
        unit_price=price,
        line_total=line_total(qty, price),
    )


def add_line(
    project: Project,
    receipt_id: str,
    description: str,
    quantity: object,
    unit_price: object,
    line_id: str | None = None,
) -> Project:
    """Append a line to an existing receipt."""
    project.get_receipt(receipt_id)
    line = build_line(receipt_id, description, quantity, unit_price, line_id)
    if project.find_line(line.id) is not None:
        raise ValidationError(f"Duplicate receipt line id: {line.id}")
    return replace(project, lines=project.lines + (line,))


def _replace_line(project: Project, updated: ReceiptLine) -> Project:
    return replace(project, lines=tuple(updated if line.id == updated.id else line for line in project.lines))


def update_line(
    project: Project,
    line_id: str,
    description: str | None = None,
    quantity: object | None = None,
    unit_price: object | None = None,
) -> Project:
    """
    Update selected fields of a line.

    The line total is recomputed whenever quantity or unit price is given;
    a description-only edit leaves it as is.
    """
    line = project.get_line(line_id)
    updated = line
    if description is not None:
        description = description.strip()
        if not description:
            raise ValidationError("Line description must not be empty")
        updated = replace(updated, description=description)
    if quantity is not None or unit_price is not None:
        qty = _as_decimal(quantity, "quantity") if quantity is not None else line.quantity
        price = _as_decimal(unit_price, "unit price") if unit_price is not None else line.unit_price
        updated = replace(updated, quantity=qty, unit_price=price, line_total=line_total(qty, price))
    if updated == line:
        return project
    return _replace_line(project, updated)


def remove_line(project: Project, line_id: str) -> Project:
    project.get_line(line_id)
    return replace(project, lines=tuple(line for line in project.lines if line.id != line_id))


def _adjusted(line: ReceiptLine, rate: Decimal) -> ReceiptLine:
    try:
        price = apply_rate(line.unit_price, rate)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return replace(line, unit_price=price, line_total=line_total(line.quantity, price))


def adjust_line_rate(project: Project, line_id: str, rate: Decimal = DEFAULT_RATE) -> Project:
    """Mark up one line's unit price by ``rate``. Repeated calls compound."""
    line = project.get_line(line_id)
    return _replace_line(project, _adjusted(line, rate))


def adjust_receipt_rate(project: Project, receipt_id: str, rate: Decimal = DEFAULT_RATE) -> Project:
    """Mark up every line of a receipt by ``rate``. Repeated calls compound."""
    project.get_receipt(receipt_id)
    return replace(
        project,
        lines=tuple(_adjusted(line, rate) if line.receipt_id == receipt_id else line for line in project.lines),
    )


def attach_document(project: Project, receipt_id: str, document: SourceDocument) -> Project:
    """Attach a source document to a receipt that does not have one yet."""
    receipt = project.get_receipt(receipt_id)
    if receipt.document is not None:
        raise ValidationError(f"Receipt {receipt_id} already has a document attached")
    if not document.content:
        raise ValidationError("Attached document is empty")
    return replace(
        project,
        receipts=tuple(replace(r, document=document) if r.id == receipt_id else r for r in project.receipts),
    )


def source_document(receipt: Receipt) -> SourceDocument | None:
    """Return the retained document bytes unchanged, with a fallback filename."""
    if receipt.document is None:
        return None
    filename = receipt.document.filename or f"{receipt.supplier}_{receipt.number}.pdf"
    return SourceDocument(filename=filename, content=receipt.document.content)


def append_receipt(project: Project, receipt: Receipt, lines: Sequence[ReceiptLine]) -> Project:
    """
    Append a receipt together with its lines as one transition.

    Used by the invoice import pipeline; the lines must all belong to the
    receipt and start unallocated.
    """
    if not receipt.supplier.strip():
        raise ValidationError("Supplier must not be empty")
    if project.find_receipt(receipt.id) is not None:
        raise ValidationError(f"Duplicate receipt id: {receipt.id}")
    seen: set[str] = {line.id for line in project.lines}
    checked: list[ReceiptLine] = []
    for line in lines:
        if line.receipt_id != receipt.id:
            raise UnknownReferenceError("receipt", line.receipt_id)
        if line.id in seen:
            raise ValidationError(f"Duplicate receipt line id: {line.id}")
        seen.add(line.id)
        checked.append(replace(line, line_total=line_total(line.quantity, line.unit_price), item_id=None))
    return replace(project, receipts=project.receipts + (receipt,), lines=project.lines + tuple(checked))
