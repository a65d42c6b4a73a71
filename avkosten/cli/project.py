"""Project editing and reporting command handlers used by the unified CLI."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from avkosten.application.project import (
    AttachDocumentRequest,
    InitProjectRequest,
    ProjectCommandRequest,
    run_attach_document,
    run_export_csv,
    run_export_document,
    run_init_project,
    run_load_project,
    run_project_command,
)
from avkosten.cli.common import confirm, fail
from avkosten.domain import commands
from avkosten.domain.diagnostics import find_reference_issues
from avkosten.domain.money import format_amount
from avkosten.domain.project import Project
from avkosten.domain.reconciliation import item_table
from avkosten.report import format_dashboard, format_issues, format_item_table, format_receipts
from avkosten.runtime import get_logger, load_settings

logger = get_logger(__name__)


def _load() -> Project:
    loaded = run_load_project()
    if loaded.project is None:
        fail(loaded.error)
    assert loaded.project is not None
    return loaded.project


def _apply(command: commands.Command) -> Project:
    """Apply one command to the stored project or exit with its error."""
    result = run_project_command(ProjectCommandRequest(command=command))
    if result.status != "applied" or result.project is None:
        fail(result.error)
    assert result.project is not None
    return result.project


def cmd_init(args: argparse.Namespace) -> None:
    """Create the working project file."""
    result = run_init_project(
        InitProjectRequest(
            name=args.name,
            demo=args.demo,
            source=Path(args.source) if args.source else None,
            force=args.force,
        )
    )
    if result.status != "created" or result.project is None:
        fail(result.error)
    assert result.project is not None
    print(f"Created project '{result.project.name}' at {result.path}")


def cmd_rename(args: argparse.Namespace) -> None:
    project = _apply(commands.RenameProject(name=args.name))
    print(f"Project renamed to '{project.name}'")


def cmd_category(args: argparse.Namespace) -> None:
    """Add or remove a category; unknown names are ignored."""
    if args.action == "add":
        subs = tuple(args.sub) if args.sub else (load_settings().budget.default_subcategory,)
        _apply(commands.AddCategory(name=args.name, subcategories=subs))
        print(f"Category '{args.name}' ready ({', '.join(subs)})")
    else:
        _apply(commands.RemoveCategory(name=args.name))
        print(f"Category '{args.name}' removed")


def cmd_subcategory(args: argparse.Namespace) -> None:
    if args.action == "add":
        _apply(commands.AddSubcategory(category=args.category, name=args.name))
        print(f"Subcategory '{args.category} / {args.name}' ready")
    else:
        _apply(commands.RemoveSubcategory(category=args.category, name=args.name))
        print(f"Subcategory '{args.category} / {args.name}' removed")


def cmd_item(args: argparse.Namespace) -> None:
    if args.action == "list":
        project = _load()
        rows = item_table(
            project,
            category=args.category,
            subcategory=args.subcategory,
            search=args.search or "",
            sort_key=args.sort,
            descending=args.desc,
        )
        print(format_item_table(rows))
        return

    if args.action == "add":
        command = commands.CreateItem(
            name=args.name,
            category=args.category,
            subcategory=args.subcategory,
            quantity=args.qty,
            unit_price=args.price,
            note=args.note or "",
        )
        project = _apply(command)
        item = project.get_item(command.item_id)
        print(f"Created item {item.id}: {item.name} ({format_amount(item.planned_total)})")
        return

    if args.action == "edit":
        current = _load().find_item(args.id)
        if current is None:
            fail(f"Unknown planned item: {args.id}")
        assert current is not None
        project = _apply(
            commands.UpdateItem(
                item_id=current.id,
                name=args.name if args.name is not None else current.name,
                category=args.category if args.category is not None else current.category,
                subcategory=args.subcategory if args.subcategory is not None else current.subcategory,
                quantity=args.qty if args.qty is not None else current.quantity,
                unit_price=args.price if args.price is not None else current.unit_price,
                note=args.note if args.note is not None else current.note,
            )
        )
        item = project.get_item(current.id)
        print(f"Updated item {item.id}: {item.name} ({format_amount(item.planned_total)})")
        return

    policy = args.policy or load_settings().budget.item_delete_policy
    if not confirm(f"Delete planned item {args.id} ({policy})?", assume_yes=args.yes):
        print("Cancelled.")
        return
    _apply(commands.DeleteItem(item_id=args.id, policy=policy))
    print(f"Deleted item {args.id}")


def cmd_receipt(args: argparse.Namespace) -> None:
    if args.action == "list":
        print(format_receipts(_load()))
        return

    if args.action == "add":
        command = commands.CreateReceipt(
            supplier=args.supplier,
            receipt_date=args.date,
            number=args.number or "",
            total_gross=args.gross,
            note=args.note or "",
        )
        _apply(command)
        print(f"Created receipt {command.receipt_id}: {args.supplier}")
        return

    if args.action == "edit":
        current = _load().find_receipt(args.id)
        if current is None:
            fail(f"Unknown receipt: {args.id}")
        assert current is not None
        _apply(
            commands.UpdateReceipt(
                receipt_id=current.id,
                supplier=args.supplier if args.supplier is not None else current.supplier,
                receipt_date=args.date if args.date is not None else current.date,
                number=args.number if args.number is not None else current.number,
                total_gross=args.gross if args.gross is not None else current.total_gross,
                note=args.note if args.note is not None else current.note,
            )
        )
        print(f"Updated receipt {current.id}")
        return

    if not confirm(f"Delete receipt {args.id} and all its lines?", assume_yes=args.yes):
        print("Cancelled.")
        return
    _apply(commands.DeleteReceipt(receipt_id=args.id))
    print(f"Deleted receipt {args.id}")


def cmd_line(args: argparse.Namespace) -> None:
    if args.action == "add":
        command = commands.AddLine(
            receipt_id=args.receipt,
            description=args.description,
            quantity=args.qty,
            unit_price=args.price,
        )
        project = _apply(command)
        line = project.get_line(command.line_id)
        print(f"Added line {line.id}: {line.description} ({format_amount(line.line_total)})")
    elif args.action == "edit":
        project = _apply(
            commands.UpdateLine(
                line_id=args.id,
                description=args.description,
                quantity=args.qty,
                unit_price=args.price,
            )
        )
        line = project.get_line(args.id)
        print(f"Updated line {line.id}: {line.description} ({format_amount(line.line_total)})")
    else:
        _apply(commands.RemoveLine(line_id=args.id))
        print(f"Removed line {args.id}")


def cmd_rate(args: argparse.Namespace) -> None:
    """Mark up unit prices by the configured rate; repeated calls compound."""
    rate = args.rate if args.rate is not None else load_settings().budget.vat_rate
    if args.target == "line":
        project = _apply(commands.AdjustLineRate(line_id=args.id, rate=rate))
        line = project.get_line(args.id)
        print(f"Line {line.id}: unit price {format_amount(line.unit_price)}, total {format_amount(line.line_total)}")
    else:
        project = _apply(commands.AdjustReceiptRate(receipt_id=args.id, rate=rate))
        print(f"Adjusted {len(project.lines_of(args.id))} line(s) of receipt {args.id} by {rate}")


def cmd_allocate(args: argparse.Namespace) -> None:
    item_id = None if args.item.lower() == "none" else args.item
    project = _apply(commands.SetAllocation(line_id=args.line, item_id=item_id))
    if item_id is None:
        print(f"Line {args.line} is now unallocated")
    else:
        print(f"Line {args.line} allocated to {project.get_item(item_id).name}")


def cmd_summary(args: argparse.Namespace) -> None:
    print(format_dashboard(_load()))


def cmd_check(args: argparse.Namespace) -> None:
    """Report stale category labels and dangling references."""
    issues = find_reference_issues(_load())
    print(format_issues(issues))
    if issues:
        sys.exit(1)


def cmd_export_csv(args: argparse.Namespace) -> None:
    result = run_export_csv(Path(args.path) if args.path else None)
    if result.status != "exported":
        fail(result.error)
    print(f"Exported items to {result.path}")


def cmd_attach(args: argparse.Namespace) -> None:
    result = run_attach_document(AttachDocumentRequest(receipt_id=args.receipt, file_path=Path(args.file)))
    if result.status != "attached":
        fail(result.error)
    print(f"Attached {Path(args.file).name} to receipt {args.receipt}")


def cmd_export_document(args: argparse.Namespace) -> None:
    result = run_export_document(args.receipt, Path(args.directory) if args.directory else None)
    if result.status != "exported":
        fail(result.error)
    print(f"Wrote document to {result.path}")
