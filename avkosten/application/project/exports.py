"""Export and source-document workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from avkosten.application.invoices.pipeline import is_pdf_document
from avkosten.application.project.editing import ProjectCommandRequest, run_load_project, run_project_command
from avkosten.domain.commands import AttachDocument
from avkosten.domain.project import SourceDocument
from avkosten.domain.receipts import source_document
from avkosten.report.tabular import csv_filename, encode_items_csv
from avkosten.runtime.project_storage import write_document, write_export

ExportStatus = Literal["exported", "project_missing", "project_invalid", "not_found", "no_document"]
AttachStatus = Literal["attached", "file_not_found", "not_a_pdf", "project_missing", "project_invalid", "rejected"]


@dataclass(frozen=True)
class ExportResult:
    status: ExportStatus
    path: Path | None = None
    error: str | None = None


@dataclass(frozen=True)
class AttachDocumentRequest:
    receipt_id: str
    file_path: Path
    project_path: Path | None = None


@dataclass(frozen=True)
class AttachDocumentResult:
    status: AttachStatus
    error: str | None = None


def run_export_csv(output: Path | None = None, project_path: Path | None = None) -> ExportResult:
    """Write the item CSV to ``output`` or below exports/."""
    loaded = run_load_project(project_path)
    if loaded.project is None:
        return ExportResult(status=loaded.status, error=loaded.error)  # type: ignore[arg-type]

    content = encode_items_csv(loaded.project)
    if output is not None and not output.is_dir():
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(content)
        return ExportResult(status="exported", path=output)
    path = write_export(content, csv_filename(loaded.project), output)
    return ExportResult(status="exported", path=path)


def run_export_document(
    receipt_id: str,
    directory: Path | None = None,
    project_path: Path | None = None,
) -> ExportResult:
    """Write a receipt's retained source document unchanged."""
    loaded = run_load_project(project_path)
    if loaded.project is None:
        return ExportResult(status=loaded.status, error=loaded.error)  # type: ignore[arg-type]

    receipt = loaded.project.find_receipt(receipt_id)
    if receipt is None:
        return ExportResult(status="not_found", error=f"Unknown receipt: {receipt_id}")
    document = source_document(receipt)
    if document is None:
        return ExportResult(status="no_document", error=f"Receipt {receipt_id} has no attached document")
    return ExportResult(status="exported", path=write_document(document, directory))


def run_attach_document(request: AttachDocumentRequest) -> AttachDocumentResult:
    """Attach a PDF file to a receipt that has no document yet."""
    if not request.file_path.exists():
        return AttachDocumentResult(status="file_not_found", error=f"File not found: {request.file_path}")
    content = request.file_path.read_bytes()
    if not is_pdf_document(request.file_path.name, content):
        return AttachDocumentResult(status="not_a_pdf", error=f"Not a PDF document: {request.file_path.name}")

    result = run_project_command(
        ProjectCommandRequest(
            command=AttachDocument(
                receipt_id=request.receipt_id,
                document=SourceDocument(filename=request.file_path.name, content=content),
            ),
            project_path=request.project_path,
        )
    )
    if result.status != "applied":
        return AttachDocumentResult(status=result.status, error=result.error)  # type: ignore[arg-type]
    return AttachDocumentResult(status="attached")
