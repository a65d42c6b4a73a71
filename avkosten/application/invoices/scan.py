"""Invoice import workflow orchestration."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from avkosten.application.invoices.pipeline import InvoiceImport
from avkosten.application.invoices.review import CommitStagedImportRequest, run_commit_staged_import
from avkosten.invoice.collaborators import DocumentUnderstanding, TextExtractor
from avkosten.invoice.staging import StagedImport
from avkosten.runtime import get_logger, load_settings
from avkosten.runtime.import_storage import save_staged_import

logger = get_logger(__name__)

ImportInvoiceStatus = Literal[
    "file_not_found",
    "import_failed",
    "staged_saved",
    "editor_not_found",
    "editor_failed",
    "commit_failed",
    "committed",
]


@dataclass(frozen=True)
class InvoiceImportRequest:
    """Inputs for running the invoice import workflow."""

    pdf_path: Path
    no_edit: bool
    resolve_editor_cmd: Callable[[], list[str]] | None = None
    text_extractor: TextExtractor | None = None
    understanding: DocumentUnderstanding | None = None
    project_path: Path | None = None


@dataclass(frozen=True)
class InvoiceImportResult:
    """Outcome from the invoice import workflow."""

    status: ImportInvoiceStatus
    staged: StagedImport | None = None
    staged_path: Path | None = None
    receipt_id: str | None = None
    error: str | None = None
    editor_cmd: list[str] | None = None
    editor_returncode: int | None = None


def build_invoice_import(
    text_extractor: TextExtractor | None = None,
    understanding: DocumentUnderstanding | None = None,
) -> InvoiceImport:
    """Create an import with configured limits and the default collaborators."""
    settings = load_settings()
    if text_extractor is None:
        from avkosten.runtime.pdf_text import PdfTextExtractor

        text_extractor = PdfTextExtractor()
    if understanding is None:
        from avkosten.runtime.invoice_extraction import MessagesApiUnderstanding

        understanding = MessagesApiUnderstanding(settings.extraction)
    return InvoiceImport(
        text_extractor,
        understanding,
        min_text_length=settings.imports.min_text_length,
        max_input_chars=settings.imports.max_input_chars,
    )


def run_invoice_import(request: InvoiceImportRequest) -> InvoiceImportResult:
    """Run import flow: extract -> stage draft -> optional edit -> commit into the project."""
    if not request.pdf_path.exists():
        return InvoiceImportResult(
            status="file_not_found",
            error=f"Invoice file not found: {request.pdf_path}",
        )

    invoice_import = build_invoice_import(request.text_extractor, request.understanding)
    state = invoice_import.run(request.pdf_path.name, request.pdf_path.read_bytes())
    if state != "preview" or invoice_import.staged is None:
        return InvoiceImportResult(status="import_failed", error=invoice_import.error)

    staged = invoice_import.staged
    staged_path = save_staged_import(staged, invoice_import.document)

    if request.no_edit or request.resolve_editor_cmd is None:
        return InvoiceImportResult(
            status="staged_saved",
            staged=staged,
            staged_path=staged_path,
        )

    editor_cmd = request.resolve_editor_cmd()
    try:
        result = subprocess.run(editor_cmd + [str(staged_path)])
    except FileNotFoundError:
        return InvoiceImportResult(
            status="editor_not_found",
            staged=staged,
            staged_path=staged_path,
            editor_cmd=editor_cmd,
        )

    if result.returncode != 0:
        return InvoiceImportResult(
            status="editor_failed",
            staged=staged,
            staged_path=staged_path,
            editor_cmd=editor_cmd,
            editor_returncode=result.returncode,
        )

    commit = run_commit_staged_import(
        CommitStagedImportRequest(draft_path=staged_path, project_path=request.project_path)
    )
    if commit.status != "committed":
        return InvoiceImportResult(
            status="commit_failed",
            staged=commit.staged or staged,
            staged_path=staged_path,
            error=commit.error,
            editor_cmd=editor_cmd,
        )
    return InvoiceImportResult(
        status="committed",
        staged=commit.staged,
        staged_path=staged_path,
        receipt_id=commit.receipt_id,
        editor_cmd=editor_cmd,
    )
