"""Allocation of receipt lines to planned items."""

from __future__ import annotations

from dataclasses import replace

from avkosten.domain.errors import UnknownReferenceError
from avkosten.domain.project import Project, ReceiptLine


def set_allocation(project: Project, line_id: str, item_id: str | None) -> Project:
    """
    Allocate a line to ``item_id``, or clear the allocation with ``None``.

    An allocation always replaces the previous one; a line is attributed to
    at most one planned item.
    """
    line = project.get_line(line_id)
    if item_id is not None and project.find_item(item_id) is None:
        raise UnknownReferenceError("planned item", item_id)
    if line.item_id == item_id:
        return project
    return replace(
        project,
        lines=tuple(replace(rl, item_id=item_id) if rl.id == line_id else rl for rl in project.lines),
    )


def allocation_index(project: Project) -> dict[str, list[ReceiptLine]]:
    """Map planned-item id -> allocated lines, rebuilt from the receipt store."""
    index: dict[str, list[ReceiptLine]] = {}
    for line in project.lines:
        if line.item_id is not None:
            index.setdefault(line.item_id, []).append(line)
    return index


def unallocated_lines(project: Project) -> list[ReceiptLine]:
    return [line for line in project.lines if line.item_id is None]


def allocation_progress(project: Project) -> tuple[int, int]:
    """Return (allocated line count, total line count)."""
    allocated = sum(1 for line in project.lines if line.item_id is not None)
    return allocated, len(project.lines)
