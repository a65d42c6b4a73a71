"""Planned item store operations."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Literal

from avkosten.domain.errors import UnknownReferenceError, ValidationError
from avkosten.domain.money import MAX_AMOUNT, line_total, to_decimal
from avkosten.domain.project import PlannedItem, Project, new_id

# What happens to receipt lines allocated to an item that is being deleted.
#   purge_lines:      delete those receipt lines outright
#   unallocate_lines: keep the lines, reset their allocation to None
ItemDeletePolicy = Literal["purge_lines", "unallocate_lines"]
ITEM_DELETE_POLICIES: tuple[str, ...] = ("purge_lines", "unallocate_lines")


def _validate_fields(
    project: Project,
    name: str,
    category: str,
    subcategory: str,
    quantity: int,
    unit_price: Decimal,
) -> tuple[str, Decimal]:
    name = name.strip()
    if not name:
        raise ValidationError("Item name must not be empty")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"Item quantity must be a whole number, got {quantity!r}")
    if quantity <= 0:
        raise ValidationError(f"Item quantity must be greater than zero, got {quantity}")
    if quantity >= MAX_AMOUNT:
        raise ValidationError(f"Item quantity is out of range, got {quantity}")
    try:
        price = to_decimal(unit_price, "unit price")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if price < 0:
        raise ValidationError(f"Unit price must not be negative, got {price}")
    if not project.taxonomy.has_pair(category, subcategory):
        raise ValidationError(f"Unknown category/subcategory: {category} / {subcategory}")
    return name, price


def create_item(
    project: Project,
    name: str,
    category: str,
    subcategory: str,
    quantity: int,
    unit_price: Decimal,
    note: str = "",
    item_id: str | None = None,
) -> Project:
    """Append a new planned item with an eagerly computed planned total."""
    name, price = _validate_fields(project, name, category, subcategory, quantity, unit_price)
    item_id = item_id or new_id()
    if project.find_item(item_id) is not None:
        raise ValidationError(f"Duplicate planned item id: {item_id}")
    item = PlannedItem(
        id=item_id,
        name=name,
        category=category,
        subcategory=subcategory,
        quantity=quantity,
        unit_price=price,
        planned_total=line_total(quantity, price),
        note=note.strip(),
    )
    return replace(project, items=project.items + (item,))


def update_item(
    project: Project,
    item_id: str,
    name: str,
    category: str,
    subcategory: str,
    quantity: int,
    unit_price: Decimal,
    note: str = "",
) -> Project:
    """
    Replace every editable field of an item and recompute its planned total.

    Receipt lines allocated to the item keep their allocation, also when the
    category or subcategory changes.
    """
    project.get_item(item_id)
    name, price = _validate_fields(project, name, category, subcategory, quantity, unit_price)
    items = tuple(
        replace(
            item,
            name=name,
            category=category,
            subcategory=subcategory,
            quantity=quantity,
            unit_price=price,
            planned_total=line_total(quantity, price),
            note=note.strip(),
        )
        if item.id == item_id
        else item
        for item in project.items
    )
    return replace(project, items=items)


def delete_item(project: Project, item_id: str, policy: ItemDeletePolicy) -> Project:
    """
    Delete an item and resolve the receipt lines allocated to it.

    The policy is a required argument; callers pick it explicitly (the CLI
    reads its default from settings).
    """
    if policy not in ITEM_DELETE_POLICIES:
        raise ValidationError(f"Unknown item delete policy: {policy}")
    if project.find_item(item_id) is None:
        raise UnknownReferenceError("planned item", item_id)

    items = tuple(item for item in project.items if item.id != item_id)
    if policy == "purge_lines":
        lines = tuple(line for line in project.lines if line.item_id != item_id)
    else:
        lines = tuple(replace(line, item_id=None) if line.item_id == item_id else line for line in project.lines)
    return replace(project, items=items, lines=lines)
