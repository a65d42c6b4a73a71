"""Tests for the application workflows: project editing, exports and invoice review."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

from conftest import SAMPLE_PDF, FakeTextExtractor, FakeUnderstanding, invoice_payload

from avkosten.application.invoices import (
    CommitStagedImportRequest,
    EditStagedImportRequest,
    InvoiceImportRequest,
    run_commit_staged_import,
    run_edit_staged_import,
    run_invoice_import,
    run_list_staged_imports,
)
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
from avkosten.domain import CreateItem, RenameProject
from avkosten.runtime import get_paths
from avkosten.runtime.import_storage import list_staged_imports
from avkosten.runtime.project_storage import load_project


def _write_pdf(directory: Path, name: str = "thomann.pdf") -> Path:
    path = directory / name
    path.write_bytes(SAMPLE_PDF)
    return path


def _import_request(pdf_path: Path, **kwargs: object) -> InvoiceImportRequest:
    return InvoiceImportRequest(
        pdf_path=pdf_path,
        text_extractor=FakeTextExtractor(),
        understanding=FakeUnderstanding(invoice_payload()),
        **kwargs,  # type: ignore[arg-type]
    )


def test_init_project_variants(isolated_root: Path) -> None:
    created = run_init_project(InitProjectRequest(name="Aula"))
    assert created.status == "created"
    assert created.project is not None
    assert created.project.name == "Aula"
    assert "Audio" in created.project.taxonomy.names()

    exists = run_init_project(InitProjectRequest(demo=True))
    assert exists.status == "exists"
    assert load_project().name == "Aula"

    demo = run_init_project(InitProjectRequest(demo=True, force=True))
    assert demo.status == "created"
    assert len(load_project().items) == 10


def test_init_from_invalid_source_leaves_project_untouched(isolated_root: Path) -> None:
    run_init_project(InitProjectRequest(name="Aula"))
    source = isolated_root / "fremd.json"
    source.write_text(json.dumps({"_type": "other"}), encoding="utf-8")

    result = run_init_project(InitProjectRequest(source=source, force=True))

    assert result.status == "invalid_source"
    assert load_project().name == "Aula"


def test_project_command_statuses() -> None:
    assert run_load_project().status == "project_missing"
    assert run_project_command(ProjectCommandRequest(command=RenameProject(name="X"))).status == "project_missing"

    run_init_project(InitProjectRequest())
    rejected = run_project_command(
        ProjectCommandRequest(
            command=CreateItem(name="Box", category="Gibt es nicht", subcategory="X", quantity=1, unit_price=Decimal("1"))
        )
    )
    assert rejected.status == "rejected"
    assert load_project().items == ()

    applied = run_project_command(ProjectCommandRequest(command=RenameProject(name="Neu")))
    assert applied.status == "applied"
    assert load_project().name == "Neu"


def test_load_project_reports_invalid_file() -> None:
    get_paths().project_file.write_text("[]", encoding="utf-8")

    result = run_load_project()

    assert result.status == "project_invalid"
    assert result.project is None


def test_invoice_import_without_edit_stages_draft(isolated_root: Path) -> None:
    result = run_invoice_import(_import_request(_write_pdf(isolated_root), no_edit=True))

    assert result.status == "staged_saved"
    assert result.staged_path is not None and result.staged_path.exists()
    listing = run_list_staged_imports()
    assert [path for path, _ in listing.drafts] == [result.staged_path]


def test_invoice_import_with_editor_commits_into_project(isolated_root: Path) -> None:
    run_init_project(InitProjectRequest())

    result = run_invoice_import(
        _import_request(_write_pdf(isolated_root), no_edit=False, resolve_editor_cmd=lambda: ["true"])
    )

    assert result.status == "committed"
    project = load_project()
    (receipt,) = project.receipts
    assert receipt.id == result.receipt_id
    assert receipt.document is not None and receipt.document.content == SAMPLE_PDF
    assert len(project.lines) == 2
    assert list_staged_imports() == []


def test_invoice_import_editor_outcomes(isolated_root: Path) -> None:
    pdf = _write_pdf(isolated_root)

    missing = run_invoice_import(_import_request(pdf, no_edit=False, resolve_editor_cmd=lambda: ["no-such-editor-xyz"]))
    failed = run_invoice_import(_import_request(pdf, no_edit=False, resolve_editor_cmd=lambda: ["false"]))

    assert missing.status == "editor_not_found"
    assert failed.status == "editor_failed"
    assert failed.editor_returncode == 1
    assert len(list_staged_imports()) == 2


def test_invoice_import_failures(isolated_root: Path) -> None:
    missing = run_invoice_import(_import_request(isolated_root / "missing.pdf", no_edit=True))
    assert missing.status == "file_not_found"

    scanned = run_invoice_import(
        InvoiceImportRequest(
            pdf_path=_write_pdf(isolated_root),
            no_edit=True,
            text_extractor=FakeTextExtractor(""),
            understanding=FakeUnderstanding(invoice_payload()),
        )
    )
    assert scanned.status == "import_failed"
    assert list_staged_imports() == []


def test_commit_requires_project_and_keeps_draft(isolated_root: Path) -> None:
    staged = run_invoice_import(_import_request(_write_pdf(isolated_root), no_edit=True))
    assert staged.staged_path is not None

    missing = run_commit_staged_import(CommitStagedImportRequest(draft_path=staged.staged_path))
    assert missing.status == "project_missing"
    assert staged.staged_path.exists()

    run_init_project(InitProjectRequest())
    committed = run_commit_staged_import(CommitStagedImportRequest(draft_path=staged.staged_path))
    assert committed.status == "committed"
    assert not staged.staged_path.exists()

    again = run_commit_staged_import(CommitStagedImportRequest(draft_path=staged.staged_path))
    assert again.status == "draft_not_found"


def test_commit_rejects_draft_without_committable_lines(isolated_root: Path) -> None:
    run_init_project(InitProjectRequest())
    staged = run_invoice_import(_import_request(_write_pdf(isolated_root), no_edit=True))
    assert staged.staged_path is not None
    data = json.loads(staged.staged_path.read_text(encoding="utf-8"))
    for line in data["lines"]:
        line["include"] = False
    staged.staged_path.write_text(json.dumps(data), encoding="utf-8")

    result = run_commit_staged_import(CommitStagedImportRequest(draft_path=staged.staged_path))

    assert result.status == "rejected"
    assert load_project().receipts == ()
    assert staged.staged_path.exists()


def test_edit_staged_import_validates_result(isolated_root: Path) -> None:
    staged = run_invoice_import(_import_request(_write_pdf(isolated_root), no_edit=True))
    assert staged.staged_path is not None

    edited = run_edit_staged_import(
        EditStagedImportRequest(target_path=staged.staged_path, resolve_editor_cmd=lambda: ["true"])
    )
    assert edited.status == "edited"
    assert edited.staged is not None

    staged.staged_path.write_text("{}", encoding="utf-8")
    broken = run_edit_staged_import(
        EditStagedImportRequest(target_path=staged.staged_path, resolve_editor_cmd=lambda: ["true"])
    )
    assert broken.status == "draft_invalid"


def test_export_csv_and_documents(isolated_root: Path) -> None:
    run_init_project(InitProjectRequest(name="Aula Nord", demo=True))

    exported = run_export_csv()
    assert exported.status == "exported"
    assert exported.path is not None
    assert exported.path.name == "Aula_Nord_Kostentracking.csv"
    assert exported.path.read_bytes().startswith(b"\xef\xbb\xbf")

    target = isolated_root / "out" / "items.csv"
    assert run_export_csv(target).path == target
    assert target.exists()

    project = load_project()
    receipt_id = project.receipts[0].id
    assert run_export_document(receipt_id).status == "no_document"
    assert run_export_document("missing").status == "not_found"

    not_pdf = isolated_root / "notiz.txt"
    not_pdf.write_text("hallo", encoding="utf-8")
    assert run_attach_document(AttachDocumentRequest(receipt_id=receipt_id, file_path=not_pdf)).status == "not_a_pdf"

    pdf = _write_pdf(isolated_root, "beleg.pdf")
    attached = run_attach_document(AttachDocumentRequest(receipt_id=receipt_id, file_path=pdf))
    assert attached.status == "attached"
    again = run_attach_document(AttachDocumentRequest(receipt_id=receipt_id, file_path=pdf))
    assert again.status == "rejected"

    document = run_export_document(receipt_id)
    assert document.status == "exported"
    assert document.path is not None
    assert document.path.read_bytes() == SAMPLE_PDF
