"""Commands and the project reducer.

Every change to a project goes through ``apply_command(project, command)``,
which returns a new ``Project``. Commands that create entities carry their id
so callers can refer to the new entity after applying the command.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Union

from avkosten.domain import allocation, planned_items, receipts, taxonomy
from avkosten.domain.money import DEFAULT_RATE, ZERO
from avkosten.domain.planned_items import ItemDeletePolicy
from avkosten.domain.project import Project, Receipt, ReceiptLine, SourceDocument, new_id, rename_project


@dataclass(frozen=True)
class RenameProject:
    name: str


@dataclass(frozen=True)
class AddCategory:
    name: str
    subcategories: tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoveCategory:
    name: str


@dataclass(frozen=True)
class AddSubcategory:
    category: str
    name: str


@dataclass(frozen=True)
class RemoveSubcategory:
    category: str
    name: str


@dataclass(frozen=True)
class CreateItem:
    name: str
    category: str
    subcategory: str
    quantity: int
    unit_price: Decimal
    note: str = ""
    item_id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class UpdateItem:
    item_id: str
    name: str
    category: str
    subcategory: str
    quantity: int
    unit_price: Decimal
    note: str = ""


@dataclass(frozen=True)
class DeleteItem:
    item_id: str
    policy: ItemDeletePolicy


@dataclass(frozen=True)
class CreateReceipt:
    supplier: str
    receipt_date: date
    number: str = ""
    total_gross: Decimal = ZERO
    note: str = ""
    receipt_id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class UpdateReceipt:
    receipt_id: str
    supplier: str
    receipt_date: date
    number: str = ""
    total_gross: Decimal = ZERO
    note: str = ""


@dataclass(frozen=True)
class DeleteReceipt:
    receipt_id: str


@dataclass(frozen=True)
class AddLine:
    receipt_id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class UpdateLine:
    line_id: str
    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class RemoveLine:
    line_id: str


@dataclass(frozen=True)
class AdjustLineRate:
    line_id: str
    rate: Decimal = DEFAULT_RATE


@dataclass(frozen=True)
class AdjustReceiptRate:
    receipt_id: str
    rate: Decimal = DEFAULT_RATE


@dataclass(frozen=True)
class SetAllocation:
    line_id: str
    item_id: str | None


@dataclass(frozen=True)
class AttachDocument:
    receipt_id: str
    document: SourceDocument


@dataclass(frozen=True)
class AppendReceipt:
    """Append a fully built receipt and its lines (invoice import commit)."""

    receipt: Receipt
    lines: tuple[ReceiptLine, ...]


Command = Union[
    RenameProject,
    AddCategory,
    RemoveCategory,
    AddSubcategory,
    RemoveSubcategory,
    CreateItem,
    UpdateItem,
    DeleteItem,
    CreateReceipt,
    UpdateReceipt,
    DeleteReceipt,
    AddLine,
    UpdateLine,
    RemoveLine,
    AdjustLineRate,
    AdjustReceiptRate,
    SetAllocation,
    AttachDocument,
    AppendReceipt,
]


def _taxonomy_change(fn: Callable[..., taxonomy.Taxonomy], *args: Any) -> Callable[[Project], Project]:
    return lambda p: taxonomy.with_taxonomy(p, fn(p.taxonomy, *args))


_HANDLERS: dict[type, Callable[[Project, Any], Project]] = {
    RenameProject: lambda p, c: rename_project(p, c.name),
    AddCategory: lambda p, c: _taxonomy_change(taxonomy.add_category, c.name, c.subcategories)(p),
    RemoveCategory: lambda p, c: _taxonomy_change(taxonomy.remove_category, c.name)(p),
    AddSubcategory: lambda p, c: _taxonomy_change(taxonomy.add_subcategory, c.category, c.name)(p),
    RemoveSubcategory: lambda p, c: _taxonomy_change(taxonomy.remove_subcategory, c.category, c.name)(p),
    CreateItem: lambda p, c: planned_items.create_item(
        p, c.name, c.category, c.subcategory, c.quantity, c.unit_price, c.note, item_id=c.item_id
    ),
    UpdateItem: lambda p, c: planned_items.update_item(
        p, c.item_id, c.name, c.category, c.subcategory, c.quantity, c.unit_price, c.note
    ),
    DeleteItem: lambda p, c: planned_items.delete_item(p, c.item_id, c.policy),
    CreateReceipt: lambda p, c: receipts.create_receipt(
        p, c.supplier, c.receipt_date, c.number, c.total_gross, c.note, receipt_id=c.receipt_id
    ),
    UpdateReceipt: lambda p, c: receipts.update_receipt(
        p, c.receipt_id, c.supplier, c.receipt_date, c.number, c.total_gross, c.note
    ),
    DeleteReceipt: lambda p, c: receipts.delete_receipt(p, c.receipt_id),
    AddLine: lambda p, c: receipts.add_line(p, c.receipt_id, c.description, c.quantity, c.unit_price, c.line_id),
    UpdateLine: lambda p, c: receipts.update_line(p, c.line_id, c.description, c.quantity, c.unit_price),
    RemoveLine: lambda p, c: receipts.remove_line(p, c.line_id),
    AdjustLineRate: lambda p, c: receipts.adjust_line_rate(p, c.line_id, c.rate),
    AdjustReceiptRate: lambda p, c: receipts.adjust_receipt_rate(p, c.receipt_id, c.rate),
    SetAllocation: lambda p, c: allocation.set_allocation(p, c.line_id, c.item_id),
    AttachDocument: lambda p, c: receipts.attach_document(p, c.receipt_id, c.document),
    AppendReceipt: lambda p, c: receipts.append_receipt(p, c.receipt, c.lines),
}


def apply_command(project: Project, command: Command) -> Project:
    """
    Apply one command and return the resulting project.

    Raises:
        ValidationError: If the command is rejected; ``project`` is unchanged.
        TypeError: If ``command`` is not a known command type.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported command: {type(command).__name__}")
    return handler(project, command)


def apply_commands(project: Project, commands: list[Command]) -> Project:
    """Apply commands in order; a rejected command aborts the whole batch."""
    for command in commands:
        project = apply_command(project, command)
    return project
