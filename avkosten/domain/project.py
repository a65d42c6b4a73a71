"""Entities of the cost-tracking project aggregate.

All entities are frozen dataclasses. Operations in the sibling modules take a
``Project`` and return a new one; nothing here is mutated in place.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from avkosten.domain.errors import UnknownReferenceError, ValidationError
from avkosten.domain.money import ZERO

# Provenance tag set on receipts created by the invoice import pipeline.
PROVENANCE_PDF_IMPORT = "pdf-import"


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Taxonomy:
    """Two-level category -> subcategories mapping in declaration order."""

    categories: tuple[tuple[str, tuple[str, ...]], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: dict[str, list[str]] | dict[str, tuple[str, ...]]) -> Taxonomy:
        return cls(tuple((name, tuple(subs)) for name, subs in mapping.items()))

    def to_mapping(self) -> dict[str, list[str]]:
        return {name: list(subs) for name, subs in self.categories}

    def names(self) -> list[str]:
        return [name for name, _ in self.categories]

    def has_category(self, category: str) -> bool:
        return any(name == category for name, _ in self.categories)

    def subcategories(self, category: str) -> tuple[str, ...]:
        """Subcategories of ``category``; empty if the category is unknown."""
        for name, subs in self.categories:
            if name == category:
                return subs
        return ()

    def has_pair(self, category: str, subcategory: str) -> bool:
        return subcategory in self.subcategories(category)


@dataclass(frozen=True)
class PlannedItem:
    """A budgeted line item."""

    id: str
    name: str
    category: str
    subcategory: str
    quantity: int
    unit_price: Decimal
    # Persisted at write time, never recomputed lazily.
    planned_total: Decimal
    note: str = ""


@dataclass(frozen=True)
class SourceDocument:
    """Original document bytes retained alongside a receipt."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Receipt:
    """A purchase document with a user-entered gross total."""

    id: str
    supplier: str
    date: date
    number: str = ""
    total_gross: Decimal = ZERO
    note: str = ""
    document: SourceDocument | None = None
    provenance: str | None = None  # e.g. PROVENANCE_PDF_IMPORT

    @property
    def is_imported(self) -> bool:
        return self.provenance == PROVENANCE_PDF_IMPORT


@dataclass(frozen=True)
class ReceiptLine:
    """One purchased line within a receipt, optionally allocated to a planned item."""

    id: str
    receipt_id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    item_id: str | None = None

    @property
    def is_allocated(self) -> bool:
        return self.item_id is not None


@dataclass(frozen=True)
class Project:
    """The single persisted aggregate."""

    id: str
    name: str
    taxonomy: Taxonomy = field(default_factory=Taxonomy)
    items: tuple[PlannedItem, ...] = ()
    receipts: tuple[Receipt, ...] = ()
    lines: tuple[ReceiptLine, ...] = ()

    def find_item(self, item_id: str) -> PlannedItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def find_receipt(self, receipt_id: str) -> Receipt | None:
        return next((receipt for receipt in self.receipts if receipt.id == receipt_id), None)

    def find_line(self, line_id: str) -> ReceiptLine | None:
        return next((line for line in self.lines if line.id == line_id), None)

    def get_item(self, item_id: str) -> PlannedItem:
        item = self.find_item(item_id)
        if item is None:
            raise UnknownReferenceError("planned item", item_id)
        return item

    def get_receipt(self, receipt_id: str) -> Receipt:
        receipt = self.find_receipt(receipt_id)
        if receipt is None:
            raise UnknownReferenceError("receipt", receipt_id)
        return receipt

    def get_line(self, line_id: str) -> ReceiptLine:
        line = self.find_line(line_id)
        if line is None:
            raise UnknownReferenceError("receipt line", line_id)
        return line

    def lines_of(self, receipt_id: str) -> list[ReceiptLine]:
        return [line for line in self.lines if line.receipt_id == receipt_id]


def new_project(name: str = "Neues AV-Projekt", taxonomy: Taxonomy | None = None) -> Project:
    """Create an empty project, optionally seeded with a taxonomy."""
    return Project(id=new_id(), name=name, taxonomy=taxonomy or Taxonomy())


def rename_project(project: Project, name: str) -> Project:
    name = name.strip()
    if not name:
        raise ValidationError("Project name must not be empty")
    return replace(project, name=name)
