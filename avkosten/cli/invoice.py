"""Invoice import command handlers used by the unified CLI."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from avkosten.cli.common import resolve_editor
from avkosten.report import format_staged_import
from avkosten.runtime import get_logger

logger = get_logger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI server for receiving invoice uploads."""
    import uvicorn

    from avkosten.application.invoices import server

    print(f"Starting invoice server on {args.host}:{args.port}")
    print(f"Upload endpoint: http://{args.host}:{args.port}/upload")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)


def cmd_import_invoice(args: argparse.Namespace) -> None:
    """Extract an invoice PDF, stage it for review, then commit it after editing."""
    from avkosten.application.invoices import InvoiceImportRequest, run_invoice_import

    result = run_invoice_import(
        InvoiceImportRequest(
            pdf_path=Path(args.file),
            no_edit=args.no_edit,
            resolve_editor_cmd=resolve_editor,
        )
    )

    if result.status == "file_not_found":
        logger.error("%s", result.error)
        print(f"Error: {result.error}")
        sys.exit(1)

    if result.status == "import_failed":
        logger.error("%s", result.error)
        print(f"Import failed: {result.error}")
        print("Enter the receipt manually with 'avk receipt add'.")
        sys.exit(1)

    if result.staged is None or result.staged_path is None:
        print("Import failed: missing staged output.")
        sys.exit(1)

    print(format_staged_import(result.staged))
    print(f"\nSaved draft to: {result.staged_path}")

    if result.status == "staged_saved":
        print("Draft left in imports/staged/ (edit it, then run 'avk commit-import').")
        return

    if result.status == "editor_not_found":
        editor_cmd = result.editor_cmd or []
        print(f"Editor not found: {' '.join(editor_cmd)}")
        print("Draft left in imports/staged/ (edit it, then run 'avk commit-import').")
        return

    if result.status == "editor_failed":
        print(f"Editor exited with code {result.editor_returncode}. Draft left in imports/staged/.")
        return

    if result.status == "commit_failed":
        print(f"Could not commit draft: {result.error}")
        print("Draft left in imports/staged/ (fix it, then run 'avk commit-import').")
        sys.exit(1)

    print(f"Committed receipt {result.receipt_id}")


def _resolve_draft(name: str | None) -> Path:
    from avkosten.runtime.import_storage import list_staged_imports, resolve_staged_import

    path = resolve_staged_import(name)
    if path is not None:
        return path
    if name is not None:
        print(f"Error: staged draft not found: {name}")
    elif not list_staged_imports():
        print("No staged drafts found.")
    else:
        print("Several staged drafts found; name one (see 'avk list-staged').")
    sys.exit(1)


def cmd_commit_import(args: argparse.Namespace) -> None:
    """Commit a reviewed draft as one new receipt."""
    from avkosten.application.invoices import CommitStagedImportRequest, run_commit_staged_import

    draft_path = _resolve_draft(args.draft)
    result = run_commit_staged_import(CommitStagedImportRequest(draft_path=draft_path))
    if result.status != "committed":
        print(f"Error: {result.error}")
        sys.exit(1)

    assert result.staged is not None
    committed = len(result.staged.committable_lines())
    print(f"Committed receipt {result.receipt_id}: {result.staged.supplier} ({committed} line(s))")


def cmd_list_staged(args: argparse.Namespace) -> None:
    """List drafts awaiting review."""
    from avkosten.application.invoices import run_list_staged_imports
    from avkosten.domain.money import format_amount

    listing = run_list_staged_imports()
    if not listing.drafts:
        print("No staged drafts found.")
        return

    print(f"Staged drafts ({len(listing.drafts)}):\n")
    for path, staged in listing.drafts:
        if staged is None:
            print(f"  {path.name}  (unreadable)")
            continue
        supplier = staged.supplier or "(missing supplier)"
        print(
            f"  {path.name}  {staged.invoice_date.isoformat()}  {supplier}  "
            f"{format_amount(staged.included_total)} ({len(staged.included_lines)}/{len(staged.lines)} lines)"
        )


def cmd_edit_staged(args: argparse.Namespace) -> None:
    """Open a staged draft in the editor and preview the result."""
    from avkosten.application.invoices import EditStagedImportRequest, run_edit_staged_import

    draft_path = _resolve_draft(args.draft)
    result = run_edit_staged_import(
        EditStagedImportRequest(target_path=draft_path, resolve_editor_cmd=resolve_editor)
    )

    if result.status == "editor_not_found":
        print(f"Editor not found: {' '.join(result.editor_cmd or [])}")
        sys.exit(1)
    if result.status == "editor_failed":
        print(f"Editor exited with code {result.editor_returncode}.")
        sys.exit(1)
    if result.status == "edited_file_missing":
        print(f"Draft disappeared while editing: {draft_path}")
        sys.exit(1)
    if result.status == "draft_invalid":
        print(f"Edited draft is invalid: {result.error}")
        sys.exit(1)

    assert result.staged is not None
    print(format_staged_import(result.staged))
    print(f"Run 'avk commit-import {draft_path.name}' to commit it.")
