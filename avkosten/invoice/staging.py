"""Editable preview of an extracted invoice.

Staged rows are deliberately mutable: during preview the user toggles,
edits, adds and removes rows before anything touches the project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from avkosten.domain.errors import UnknownReferenceError, ValidationError
from avkosten.domain.money import DEFAULT_RATE, ZERO, apply_rate, line_total, round2, to_decimal
from avkosten.domain.project import new_id
from avkosten.invoice.contract import ExtractedInvoice

# Same tolerance the receipt view uses for gross-vs-lines mismatches.
DISCREPANCY_TOLERANCE = Decimal("0.01")


@dataclass
class StagedLine:
    """One candidate receipt line."""

    id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    include: bool = True
    # Line total as reported by the extraction, kept to surface disagreements.
    extracted_total: Decimal | None = None

    @property
    def total_disagrees(self) -> bool:
        return self.extracted_total is not None and self.extracted_total != self.line_total


@dataclass
class StagedImport:
    """Invoice metadata and candidate lines awaiting confirmation."""

    supplier: str
    invoice_date: date
    invoice_number: str
    total_gross: Decimal
    lines: list[StagedLine] = field(default_factory=list)

    @classmethod
    def from_extraction(cls, extracted: ExtractedInvoice, today: date | None = None) -> StagedImport:
        lines: list[StagedLine] = []
        for candidate in extracted.lines:
            unit_price = candidate.unit_price
            if unit_price == ZERO and candidate.line_total > ZERO:
                unit_price = round2(candidate.line_total / candidate.quantity)
            lines.append(
                StagedLine(
                    id=new_id(),
                    description=candidate.description,
                    quantity=candidate.quantity,
                    unit_price=unit_price,
                    line_total=line_total(candidate.quantity, unit_price),
                    extracted_total=candidate.line_total,
                )
            )
        return cls(
            supplier=extracted.supplier,
            invoice_date=extracted.invoice_date or today or date.today(),
            invoice_number=extracted.invoice_number,
            total_gross=extracted.total_gross,
            lines=lines,
        )

    def get(self, line_id: str) -> StagedLine:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise UnknownReferenceError("staged line", line_id)

    def toggle(self, line_id: str) -> None:
        line = self.get(line_id)
        line.include = not line.include

    def set_included(self, line_id: str, include: bool) -> None:
        self.get(line_id).include = include

    def update_line(
        self,
        line_id: str,
        description: str | None = None,
        quantity: object | None = None,
        unit_price: object | None = None,
    ) -> StagedLine:
        """Edit a row; quantity or unit price changes recompute its line total."""
        line = self.get(line_id)
        try:
            qty = to_decimal(quantity, "quantity") if quantity is not None else line.quantity
            price = to_decimal(unit_price, "unit price") if unit_price is not None else line.unit_price
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if description is not None:
            line.description = description
        if quantity is not None or unit_price is not None:
            line.quantity = qty
            line.unit_price = price
            line.line_total = line_total(qty, price)
        return line

    def add_line(self, description: str = "", quantity: object = 1, unit_price: object = 0) -> StagedLine:
        try:
            qty = to_decimal(quantity, "quantity")
            price = to_decimal(unit_price, "unit price")
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        line = StagedLine(
            id=new_id(),
            description=description,
            quantity=qty,
            unit_price=price,
            line_total=line_total(qty, price),
        )
        self.lines.append(line)
        return line

    def remove_line(self, line_id: str) -> None:
        line = self.get(line_id)
        self.lines.remove(line)

    def apply_rate(self, line_id: str | None = None, rate: Decimal = DEFAULT_RATE) -> None:
        """Mark up one row, or every row when ``line_id`` is None. Compounds on repeat."""
        targets = [self.get(line_id)] if line_id is not None else list(self.lines)
        try:
            prices = [apply_rate(line.unit_price, rate) for line in targets]
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        for line, price in zip(targets, prices):
            line.unit_price = price
            line.line_total = line_total(line.quantity, price)

    def update_meta(
        self,
        supplier: str | None = None,
        invoice_date: date | None = None,
        invoice_number: str | None = None,
        total_gross: object | None = None,
    ) -> None:
        if supplier is not None:
            self.supplier = supplier
        if invoice_date is not None:
            self.invoice_date = invoice_date
        if invoice_number is not None:
            self.invoice_number = invoice_number
        if total_gross is not None:
            try:
                self.total_gross = to_decimal(total_gross, "total gross")
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

    @property
    def included_lines(self) -> list[StagedLine]:
        return [line for line in self.lines if line.include]

    @property
    def included_total(self) -> Decimal:
        return sum((line.line_total for line in self.included_lines), ZERO)

    @property
    def discrepancy(self) -> Decimal | None:
        """Stated gross minus the included sum, when it matters; informational only."""
        if self.total_gross <= ZERO:
            return None
        difference = self.total_gross - self.included_total
        if abs(difference) <= DISCREPANCY_TOLERANCE:
            return None
        return difference

    def committable_lines(self) -> list[StagedLine]:
        """Rows that survive commit: included and carrying a description."""
        return [line for line in self.lines if line.include and line.description.strip()]
