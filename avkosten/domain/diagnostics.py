"""Read-side reference validation.

Broken references are tolerated by the stores (taxonomy edits do not cascade,
snapshots may come from older versions). This pass makes them visible
instead of hiding or crashing on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from avkosten.domain.project import Project

IssueKind = Literal["unknown_category", "unknown_subcategory", "dangling_allocation", "orphan_line"]


@dataclass(frozen=True)
class ReferenceIssue:
    kind: IssueKind
    entity_id: str
    message: str


def find_reference_issues(project: Project) -> list[ReferenceIssue]:
    """Report every stale category label and dangling id in the project."""
    issues: list[ReferenceIssue] = []
    taxonomy = project.taxonomy

    for item in project.items:
        if not taxonomy.has_category(item.category):
            issues.append(
                ReferenceIssue(
                    kind="unknown_category",
                    entity_id=item.id,
                    message=f"Item '{item.name}' uses unknown category '{item.category}'",
                )
            )
        elif not taxonomy.has_pair(item.category, item.subcategory):
            issues.append(
                ReferenceIssue(
                    kind="unknown_subcategory",
                    entity_id=item.id,
                    message=(
                        f"Item '{item.name}' uses unknown subcategory '{item.subcategory}' "
                        f"in category '{item.category}'"
                    ),
                )
            )

    item_ids = {item.id for item in project.items}
    receipt_ids = {receipt.id for receipt in project.receipts}
    for line in project.lines:
        if line.receipt_id not in receipt_ids:
            issues.append(
                ReferenceIssue(
                    kind="orphan_line",
                    entity_id=line.id,
                    message=f"Line '{line.description}' belongs to missing receipt {line.receipt_id}",
                )
            )
        if line.item_id is not None and line.item_id not in item_ids:
            issues.append(
                ReferenceIssue(
                    kind="dangling_allocation",
                    entity_id=line.id,
                    message=f"Line '{line.description}' is allocated to missing item {line.item_id}",
                )
            )
    return issues
