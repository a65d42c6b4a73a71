#!/usr/bin/env python3
"""Unified command-line interface for the AV cost tracker.

Usage:
    avk init [--name NAME] [--demo | --from FILE]
    avk item add|edit|delete|list ...
    avk receipt add|edit|delete|list ...
    avk line add|edit|remove ...
    avk allocate LINE ITEM|none
    avk summary
    avk import-invoice <pdf> [--no-edit]
    avk serve [--port]
"""

import argparse
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from avkosten.cli.common import date_arg, decimal_arg, quantity_arg
from avkosten.domain.planned_items import ITEM_DELETE_POLICIES
from avkosten.domain.reconciliation import SORT_KEYS
from avkosten.runtime import configure_logging, set_log_level, set_root


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def _add_item_parsers(subparsers: argparse._SubParsersAction) -> None:
    item_parser = subparsers.add_parser("item", help="Manage planned items")
    actions = item_parser.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Create a planned item")
    add.add_argument("name")
    add.add_argument("--category", required=True)
    add.add_argument("--subcategory", required=True)
    add.add_argument("--qty", type=quantity_arg, default=1, help="Quantity (default: 1)")
    add.add_argument("--price", type=decimal_arg, required=True, help="Unit price")
    add.add_argument("--note")

    edit = actions.add_parser("edit", help="Edit a planned item")
    edit.add_argument("id")
    edit.add_argument("--name")
    edit.add_argument("--category")
    edit.add_argument("--subcategory")
    edit.add_argument("--qty", type=quantity_arg)
    edit.add_argument("--price", type=decimal_arg)
    edit.add_argument("--note")

    delete = actions.add_parser("delete", help="Delete a planned item")
    delete.add_argument("id")
    delete.add_argument(
        "--policy",
        choices=ITEM_DELETE_POLICIES,
        help="What happens to allocated lines (default from settings)",
    )
    delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    listing = actions.add_parser("list", help="List planned items with costs")
    listing.add_argument("--category")
    listing.add_argument("--subcategory")
    listing.add_argument("--search")
    listing.add_argument("--sort", choices=SORT_KEYS)
    listing.add_argument("--desc", action="store_true", help="Sort descending")


def _add_receipt_parsers(subparsers: argparse._SubParsersAction) -> None:
    receipt_parser = subparsers.add_parser("receipt", help="Manage receipts")
    actions = receipt_parser.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Create a receipt")
    add.add_argument("supplier")
    add.add_argument("--date", type=date_arg, required=True, help="Receipt date (YYYY-MM-DD)")
    add.add_argument("--number")
    add.add_argument("--gross", type=decimal_arg, default="0", help="Gross total from the document")
    add.add_argument("--note")

    edit = actions.add_parser("edit", help="Edit a receipt")
    edit.add_argument("id")
    edit.add_argument("--supplier")
    edit.add_argument("--date", type=date_arg)
    edit.add_argument("--number")
    edit.add_argument("--gross", type=decimal_arg)
    edit.add_argument("--note")

    delete = actions.add_parser("delete", help="Delete a receipt and its lines")
    delete.add_argument("id")
    delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    actions.add_parser("list", help="List receipts with their lines")

    line_parser = subparsers.add_parser("line", help="Manage receipt lines")
    line_actions = line_parser.add_subparsers(dest="action", required=True)

    line_add = line_actions.add_parser("add", help="Add a line to a receipt")
    line_add.add_argument("receipt")
    line_add.add_argument("description")
    line_add.add_argument("--qty", type=decimal_arg, default="1", help="Quantity (default: 1)")
    line_add.add_argument("--price", type=decimal_arg, required=True, help="Unit price")

    line_edit = line_actions.add_parser("edit", help="Edit a receipt line")
    line_edit.add_argument("id")
    line_edit.add_argument("--description")
    line_edit.add_argument("--qty", type=decimal_arg)
    line_edit.add_argument("--price", type=decimal_arg)

    line_remove = line_actions.add_parser("remove", help="Remove a receipt line")
    line_remove.add_argument("id")

    rate_parser = subparsers.add_parser("rate", help="Mark up unit prices by a rate (e.g. VAT)")
    rate_parser.add_argument("target", choices=("line", "receipt"))
    rate_parser.add_argument("id")
    rate_parser.add_argument("--rate", type=decimal_arg, help="Rate as a fraction (default from settings)")

    allocate_parser = subparsers.add_parser("allocate", help="Allocate a line to a planned item")
    allocate_parser.add_argument("line")
    allocate_parser.add_argument("item", help="Planned item id, or 'none' to unallocate")


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="avk",
        description="AV installation cost tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Notes:
  project.avproj.json = the working project (planned items, receipts, lines)
  imports/staged/     = extracted invoices waiting for review
  exports/            = CSV exports and retrieved documents
""",
    )
    parser.add_argument("--home", help="Project directory (default: $AVK_HOME or the current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Create the project file")
    init_parser.add_argument("--name", help="Project name")
    source_group = init_parser.add_mutually_exclusive_group()
    source_group.add_argument("--demo", action="store_true", help="Start from the bundled demo project")
    source_group.add_argument("--from", dest="source", help="Start from an exported project file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing project file")

    rename_parser = subparsers.add_parser("rename", help="Rename the project")
    rename_parser.add_argument("name")

    category_parser = subparsers.add_parser("category", help="Add or remove a category")
    category_parser.add_argument("action", choices=("add", "remove"))
    category_parser.add_argument("name")
    category_parser.add_argument("--sub", action="append", help="Subcategory (repeatable)")

    subcategory_parser = subparsers.add_parser("subcategory", help="Add or remove a subcategory")
    subcategory_parser.add_argument("action", choices=("add", "remove"))
    subcategory_parser.add_argument("category")
    subcategory_parser.add_argument("name")

    _add_item_parsers(subparsers)
    _add_receipt_parsers(subparsers)

    subparsers.add_parser("summary", help="Show the budget dashboard")
    subparsers.add_parser("check", help="Report stale categories and dangling references")

    export_parser = subparsers.add_parser("export-csv", help="Export planned items as CSV")
    export_parser.add_argument("path", nargs="?", help="Output file or directory (default: exports/)")

    attach_parser = subparsers.add_parser("attach", help="Attach a PDF document to a receipt")
    attach_parser.add_argument("receipt")
    attach_parser.add_argument("file")

    document_parser = subparsers.add_parser("export-document", help="Write a receipt's source document")
    document_parser.add_argument("receipt")
    document_parser.add_argument("directory", nargs="?", help="Output directory (default: exports/)")

    import_parser = subparsers.add_parser("import-invoice", help="Extract an invoice PDF for review")
    import_parser.add_argument("file", help="Path to invoice PDF")
    import_parser.add_argument(
        "--no-edit", action="store_true", help="Skip editor and leave draft in imports/staged/"
    )

    commit_parser = subparsers.add_parser("commit-import", help="Commit a reviewed draft as a receipt")
    commit_parser.add_argument("draft", nargs="?", help="Draft file name (default: the only draft)")

    subparsers.add_parser("list-staged", help="List drafts awaiting review")

    edit_staged_parser = subparsers.add_parser("edit-staged", help="Edit a staged draft (interactive)")
    edit_staged_parser.add_argument("draft", nargs="?", help="Draft file name (default: the only draft)")

    serve_parser = subparsers.add_parser("serve", help="Start invoice upload server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging()
    if args.verbose:
        set_log_level(logging.DEBUG)
    if args.home:
        set_root(Path(args.home))

    if args.command in ("import-invoice", "commit-import", "list-staged", "edit-staged", "serve"):
        from avkosten.cli import invoice

        handler = {
            "import-invoice": invoice.cmd_import_invoice,
            "commit-import": invoice.cmd_commit_import,
            "list-staged": invoice.cmd_list_staged,
            "edit-staged": invoice.cmd_edit_staged,
            "serve": invoice.cmd_serve,
        }[args.command]
        return _run_command(handler, args)

    from avkosten.cli import project

    handlers: dict[str, Callable[[argparse.Namespace], None]] = {
        "init": project.cmd_init,
        "rename": project.cmd_rename,
        "category": project.cmd_category,
        "subcategory": project.cmd_subcategory,
        "item": project.cmd_item,
        "receipt": project.cmd_receipt,
        "line": project.cmd_line,
        "rate": project.cmd_rate,
        "allocate": project.cmd_allocate,
        "summary": project.cmd_summary,
        "check": project.cmd_check,
        "export-csv": project.cmd_export_csv,
        "attach": project.cmd_attach,
        "export-document": project.cmd_export_document,
    }
    handler = handlers.get(args.command)
    if handler is None:
        return 1
    return _run_command(handler, args)


if __name__ == "__main__":
    raise SystemExit(main())
