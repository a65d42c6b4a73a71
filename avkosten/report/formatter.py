"""Plain-text rendering of project views for the terminal."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from avkosten.domain.allocation import allocation_progress
from avkosten.domain.diagnostics import ReferenceIssue
from avkosten.domain.money import format_amount
from avkosten.domain.project import Project, ReceiptLine
from avkosten.domain.reconciliation import ItemCost, project_totals, receipt_summary, rollup
from avkosten.invoice.staging import StagedImport

RULE_WIDTH = 78


def _format_table(headers: Sequence[str], rows: Sequence[Sequence[str]], numeric: set[int]) -> list[str]:
    """
    Align columns; columns in ``numeric`` are right-aligned.

    Returns:
        Header line, separator and one line per row.
    """
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt(cells: Sequence[str]) -> str:
        parts = [cell.rjust(widths[i]) if i in numeric else cell.ljust(widths[i]) for i, cell in enumerate(cells)]
        return "  ".join(parts).rstrip()

    lines = [fmt(headers), "  ".join("-" * w for w in widths)]
    lines.extend(fmt(row) for row in rows)
    return lines


def _signed(value: Decimal) -> str:
    text = format_amount(value)
    return text if value < 0 else f"+{text}"


def format_dashboard(project: Project) -> str:
    """Project totals followed by the category -> subcategory rollup."""
    totals = project_totals(project)
    allocated, total_lines = allocation_progress(project)
    out = [
        "=" * RULE_WIDTH,
        project.name,
        "=" * RULE_WIDTH,
        f"Planned:     {format_amount(totals.planned):>12}",
        f"Actual:      {format_amount(totals.actual):>12}",
        f"Variance:    {_signed(totals.variance):>12}",
        f"Unallocated: {format_amount(totals.unallocated):>12}",
        f"Allocated lines: {allocated}/{total_lines}",
    ]
    if totals.dangling:
        out.append(f"Allocated to missing items: {format_amount(totals.dangling)}")

    rows: list[list[str]] = []
    for category in rollup(project):
        marker = "" if category.known else " (?)"
        rows.append(
            [
                f"{category.name}{marker}",
                format_amount(category.planned),
                format_amount(category.actual),
                _signed(category.variance),
            ]
        )
        for sub in category.subcategories:
            marker = "" if sub.known else " (?)"
            rows.append(
                [
                    f"  {sub.name}{marker}",
                    format_amount(sub.planned),
                    format_amount(sub.actual),
                    _signed(sub.variance),
                ]
            )
    if rows:
        out.append("")
        out.extend(_format_table(["Category", "Planned", "Actual", "Variance"], rows, numeric={1, 2, 3}))
    return "\n".join(out)


def format_item_table(costs: Sequence[ItemCost]) -> str:
    if not costs:
        return "No planned items."
    rows = [
        [
            cost.item.id,
            cost.item.category,
            cost.item.subcategory if cost.category_known else f"{cost.item.subcategory} (?)",
            cost.item.name,
            str(cost.item.quantity),
            format_amount(cost.item.unit_price),
            format_amount(cost.planned),
            format_amount(cost.actual),
            _signed(cost.variance),
            cost.status,
        ]
        for cost in costs
    ]
    headers = ["ID", "Category", "Subcategory", "Name", "Qty", "Unit", "Planned", "Actual", "Variance", "Status"]
    return "\n".join(_format_table(headers, rows, numeric={4, 5, 6, 7, 8}))


def _line_rows(project: Project, lines: Sequence[ReceiptLine]) -> list[list[str]]:
    rows = []
    for line in lines:
        if line.item_id is None:
            target = "-"
        else:
            item = project.find_item(line.item_id)
            target = item.name if item is not None else f"{line.item_id} (missing)"
        rows.append(
            [
                line.id,
                line.description,
                f"{line.quantity:f}",
                format_amount(line.unit_price),
                format_amount(line.line_total),
                target,
            ]
        )
    return rows


def format_receipts(project: Project) -> str:
    """Every receipt with its lines, line sum and gross mismatch marker."""
    if not project.receipts:
        return "No receipts."
    out: list[str] = []
    for receipt in project.receipts:
        summary = receipt_summary(project, receipt.id)
        flags = []
        if receipt.is_imported:
            flags.append("imported")
        if receipt.document is not None:
            flags.append(f"document: {receipt.document.filename or 'unnamed'}")
        flag_str = f"  [{', '.join(flags)}]" if flags else ""
        out.append(
            f"{receipt.date.isoformat()}  {receipt.supplier}  {receipt.number or '-'}  "
            f"gross {format_amount(receipt.total_gross)}  ({receipt.id}){flag_str}"
        )
        if summary.lines:
            table = _format_table(
                ["Line", "Description", "Qty", "Unit", "Total", "Allocated to"],
                _line_rows(project, summary.lines),
                numeric={2, 3, 4},
            )
            out.extend(f"    {row}" for row in table)
        out.append(
            f"    Lines: {format_amount(summary.lines_total)}  "
            f"allocated {summary.allocated_lines}/{len(summary.lines)}"
        )
        if summary.has_mismatch:
            out.append(f"    WARNING: gross differs from line sum by {_signed(summary.difference)}")
        out.append("")
    return "\n".join(out).rstrip()


def format_staged_import(staged: StagedImport) -> str:
    """Preview of a staged invoice import."""
    out = [
        "=" * RULE_WIDTH,
        "STAGED INVOICE",
        "=" * RULE_WIDTH,
        f"Supplier: {staged.supplier or '(missing)'}",
        f"Date: {staged.invoice_date.isoformat()}",
        f"Number: {staged.invoice_number or '-'}",
        f"Gross total: {format_amount(staged.total_gross)}",
        "",
    ]
    rows = []
    for i, line in enumerate(staged.lines, 1):
        note = "differs from invoice" if line.total_disagrees else ""
        rows.append(
            [
                "x" if line.include else " ",
                str(i),
                line.description or "(no description)",
                f"{line.quantity:f}",
                format_amount(line.unit_price),
                format_amount(line.line_total),
                note,
            ]
        )
    if rows:
        out.extend(_format_table(["In", "#", "Description", "Qty", "Unit", "Total", ""], rows, numeric={1, 3, 4, 5}))
    else:
        out.append("No lines extracted.")
    out.append("")
    out.append(f"Included: {len(staged.included_lines)} line(s), {format_amount(staged.included_total)}")
    discrepancy = staged.discrepancy
    if discrepancy is not None:
        out.append(f"WARNING: gross total differs from included lines by {_signed(discrepancy)}")
    out.append("=" * RULE_WIDTH)
    return "\n".join(out)


def format_issues(issues: Sequence[ReferenceIssue]) -> str:
    if not issues:
        return "No reference problems found."
    return "\n".join(f"[{issue.kind}] {issue.message}" for issue in issues)
