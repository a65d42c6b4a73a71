"""Reconciliation engine: planned vs. actual cost aggregates.

Everything here is a pure function of the current project. Nothing is cached;
aggregates are recomputed from the item and receipt stores on every call.
Rollups sum planned and actual independently and derive their variance from
those sums, so rounding never drifts between levels.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from avkosten.domain.allocation import allocation_index
from avkosten.domain.errors import ValidationError
from avkosten.domain.money import ZERO
from avkosten.domain.project import PlannedItem, Project, Receipt, ReceiptLine

ItemStatus = Literal["Open", "Within budget", "Over budget"]

SortKey = Literal["category", "subcategory", "name", "quantity", "unit_price", "planned", "actual", "variance"]
SORT_KEYS: tuple[str, ...] = (
    "category",
    "subcategory",
    "name",
    "quantity",
    "unit_price",
    "planned",
    "actual",
    "variance",
)

# Tolerance for comparing a receipt's stated gross total with its line sum.
MISMATCH_TOLERANCE = Decimal("0.01")


def classify(planned: Decimal, actual: Decimal) -> ItemStatus:
    """Status precedence: nothing spent, then within (inclusive), then over."""
    if actual == ZERO:
        return "Open"
    if actual <= planned:
        return "Within budget"
    return "Over budget"


@dataclass(frozen=True)
class ItemCost:
    """A planned item with its derived actual cost."""

    item: PlannedItem
    actual: Decimal
    lines: tuple[ReceiptLine, ...] = ()
    category_known: bool = True

    @property
    def planned(self) -> Decimal:
        return self.item.planned_total

    @property
    def variance(self) -> Decimal:
        # >= 0 means under or on budget
        return self.planned - self.actual

    @property
    def status(self) -> ItemStatus:
        return classify(self.planned, self.actual)


@dataclass(frozen=True)
class SubcategoryRollup:
    name: str
    planned: Decimal
    actual: Decimal
    items: tuple[ItemCost, ...]
    known: bool = True

    @property
    def variance(self) -> Decimal:
        return self.planned - self.actual


@dataclass(frozen=True)
class CategoryRollup:
    name: str
    planned: Decimal
    actual: Decimal
    subcategories: tuple[SubcategoryRollup, ...]
    known: bool = True

    @property
    def variance(self) -> Decimal:
        return self.planned - self.actual

    @property
    def items(self) -> list[ItemCost]:
        return [cost for sub in self.subcategories for cost in sub.items]


@dataclass(frozen=True)
class ProjectTotals:
    planned: Decimal
    actual: Decimal
    unallocated: Decimal
    allocated_lines: int
    total_lines: int
    # Allocated to an item id that no longer exists (see diagnostics).
    dangling: Decimal = ZERO

    @property
    def variance(self) -> Decimal:
        return self.planned - self.actual

    @property
    def spent(self) -> Decimal:
        """All receipt line totals: allocated, unallocated and dangling."""
        return self.actual + self.unallocated + self.dangling


@dataclass(frozen=True)
class ReceiptSummary:
    receipt: Receipt
    lines: tuple[ReceiptLine, ...]
    lines_total: Decimal
    allocated_lines: int

    @property
    def difference(self) -> Decimal:
        """Stated gross total minus the sum of line totals."""
        return self.receipt.total_gross - self.lines_total

    @property
    def has_mismatch(self) -> bool:
        return abs(self.difference) > MISMATCH_TOLERANCE


def _sum(values: Any) -> Decimal:
    return sum(values, ZERO)


def actual_cost(project: Project, item_id: str) -> Decimal:
    """Sum of line totals over lines allocated to ``item_id``."""
    return _sum(line.line_total for line in project.lines if line.item_id == item_id)


def unallocated_total(project: Project) -> Decimal:
    """Sum of line totals over lines without an allocation, across all receipts."""
    return _sum(line.line_total for line in project.lines if line.item_id is None)


def item_costs(project: Project) -> list[ItemCost]:
    """Per-item actual cost, in item insertion order."""
    index = allocation_index(project)
    costs: list[ItemCost] = []
    for item in project.items:
        lines = tuple(index.get(item.id, ()))
        costs.append(
            ItemCost(
                item=item,
                actual=_sum(line.line_total for line in lines),
                lines=lines,
                category_known=project.taxonomy.has_pair(item.category, item.subcategory),
            )
        )
    return costs


def _ordered_keys(declared: tuple[str, ...] | list[str], seen: list[str]) -> list[str]:
    """Declared order first, then undeclared keys in first-seen order."""
    ordered = [key for key in declared if key in seen]
    ordered.extend(key for key in seen if key not in declared)
    return ordered


def rollup(project: Project, include_empty: bool = False) -> list[CategoryRollup]:
    """
    Group item costs as category -> subcategory -> item.

    Categories and subcategories follow taxonomy declaration order. Items
    whose labels no longer exist in the taxonomy are grouped after the
    declared ones and flagged with ``known=False``.

    Args:
        project: Project to aggregate.
        include_empty: Also emit declared categories/subcategories without items.
    """
    costs = item_costs(project)
    taxonomy = project.taxonomy

    seen_categories: list[str] = []
    for cost in costs:
        if cost.item.category not in seen_categories:
            seen_categories.append(cost.item.category)
    declared = taxonomy.names()
    if include_empty:
        seen_categories = declared + [c for c in seen_categories if c not in declared]

    result: list[CategoryRollup] = []
    for category in _ordered_keys(declared, seen_categories):
        in_category = [cost for cost in costs if cost.item.category == category]
        declared_subs = taxonomy.subcategories(category)
        seen_subs: list[str] = []
        for cost in in_category:
            if cost.item.subcategory not in seen_subs:
                seen_subs.append(cost.item.subcategory)
        if include_empty:
            seen_subs = list(declared_subs) + [s for s in seen_subs if s not in declared_subs]

        subs: list[SubcategoryRollup] = []
        for sub in _ordered_keys(declared_subs, seen_subs):
            members = tuple(cost for cost in in_category if cost.item.subcategory == sub)
            subs.append(
                SubcategoryRollup(
                    name=sub,
                    planned=_sum(cost.planned for cost in members),
                    actual=_sum(cost.actual for cost in members),
                    items=members,
                    known=taxonomy.has_pair(category, sub),
                )
            )
        result.append(
            CategoryRollup(
                name=category,
                planned=_sum(sub.planned for sub in subs),
                actual=_sum(sub.actual for sub in subs),
                subcategories=tuple(subs),
                known=taxonomy.has_category(category),
            )
        )
    return result


def project_totals(project: Project) -> ProjectTotals:
    item_ids = {item.id for item in project.items}
    allocated = [line for line in project.lines if line.item_id is not None]
    return ProjectTotals(
        planned=_sum(item.planned_total for item in project.items),
        actual=_sum(line.line_total for line in allocated if line.item_id in item_ids),
        unallocated=unallocated_total(project),
        allocated_lines=len(allocated),
        total_lines=len(project.lines),
        dangling=_sum(line.line_total for line in allocated if line.item_id not in item_ids),
    )


_SORT_ACCESSORS: dict[str, Callable[[ItemCost], Any]] = {
    "category": lambda c: c.item.category.lower(),
    "subcategory": lambda c: c.item.subcategory.lower(),
    "name": lambda c: c.item.name.lower(),
    "quantity": lambda c: c.item.quantity,
    "unit_price": lambda c: c.item.unit_price,
    "planned": lambda c: c.planned,
    "actual": lambda c: c.actual,
    "variance": lambda c: c.variance,
}


def item_table(
    project: Project,
    category: str | None = None,
    subcategory: str | None = None,
    search: str = "",
    sort_key: SortKey | None = None,
    descending: bool = False,
) -> list[ItemCost]:
    """
    Flat item view with optional filtering and an explicit sort.

    Without ``sort_key`` rows keep item insertion order. String columns sort
    case-insensitively; the sort is stable.
    """
    rows = item_costs(project)
    if category is not None:
        rows = [row for row in rows if row.item.category == category]
    if subcategory is not None:
        rows = [row for row in rows if row.item.subcategory == subcategory]
    query = search.strip().lower()
    if query:
        rows = [row for row in rows if query in row.item.name.lower() or query in row.item.note.lower()]
    if sort_key is not None:
        accessor = _SORT_ACCESSORS.get(sort_key)
        if accessor is None:
            raise ValidationError(f"Unknown sort key: {sort_key}")
        rows = sorted(rows, key=accessor, reverse=descending)
    return rows


def receipt_summary(project: Project, receipt_id: str) -> ReceiptSummary:
    receipt = project.get_receipt(receipt_id)
    lines = tuple(project.lines_of(receipt_id))
    return ReceiptSummary(
        receipt=receipt,
        lines=lines,
        lines_total=_sum(line.line_total for line in lines),
        allocated_lines=sum(1 for line in lines if line.item_id is not None),
    )
