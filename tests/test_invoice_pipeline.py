"""Tests for the invoice import state machine."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest
from conftest import SAMPLE_PDF, FakeTextExtractor, FakeUnderstanding, invoice_payload

from avkosten.application.invoices import (
    ImportInProgressError,
    InvalidTransitionError,
    InvoiceImport,
    commit_staged_import,
)
from avkosten.application.invoices.pipeline import is_pdf_document
from avkosten.domain import Taxonomy, ValidationError, new_project, project_totals
from avkosten.domain.snapshot import IMPORT_NOTE
from avkosten.invoice.collaborators import ExtractionServiceUnavailable, TextExtractionError


class _FailingUnderstanding:
    def extract_invoice(self, instructions: str, message: str) -> str:
        raise ExtractionServiceUnavailable("connection refused")


class _UnreadableText:
    def extract_text(self, content: bytes) -> str:
        raise TextExtractionError("broken xref table")


class _CrashingText:
    def extract_text(self, content: bytes) -> str:
        raise TypeError("'NoneType' object is not subscriptable")


class _CrashingUnderstanding:
    def extract_invoice(self, instructions: str, message: str) -> str:
        raise KeyError("content")


def _import(
    text_extractor: object | None = None,
    understanding: object | None = None,
) -> InvoiceImport:
    return InvoiceImport(
        text_extractor or FakeTextExtractor(),  # type: ignore[arg-type]
        understanding or FakeUnderstanding(invoice_payload()),  # type: ignore[arg-type]
        today=lambda: date(2026, 3, 1),
    )


def test_is_pdf_document() -> None:
    assert is_pdf_document("Rechnung.PDF", SAMPLE_PDF)
    assert not is_pdf_document("rechnung.txt", SAMPLE_PDF)
    assert not is_pdf_document("rechnung.pdf", b"PK\x03\x04 zip")


def test_run_reaches_preview_with_staged_lines() -> None:
    understanding = FakeUnderstanding(invoice_payload())
    invoice_import = _import(understanding=understanding)

    state = invoice_import.run("thomann.pdf", SAMPLE_PDF)

    assert state == "preview"
    assert invoice_import.staged is not None
    assert invoice_import.staged.supplier == "Thomann"
    assert [line.description for line in invoice_import.staged.lines] == ["JBL Control 25-1", "Versand", "Verpackung"]
    assert invoice_import.document is not None
    assert invoice_import.document.content == SAMPLE_PDF
    assert understanding.messages[0].startswith("Please parse this invoice:")


def test_text_below_threshold_fails_without_calling_extraction() -> None:
    understanding = FakeUnderstanding(invoice_payload())
    invoice_import = _import(text_extractor=FakeTextExtractor("   scan   "), understanding=understanding)

    state = invoice_import.run("scan.pdf", SAMPLE_PDF)

    assert state == "error"
    assert invoice_import.staged is None
    assert "no readable text" in (invoice_import.error or "")
    assert understanding.messages == []


@pytest.mark.parametrize(
    ("text_extractor", "understanding", "fragment"),
    [
        (_UnreadableText(), None, "could not be read"),
        (None, _FailingUnderstanding(), "unavailable"),
        (None, FakeUnderstanding("Sorry, no invoice here."), "could not be parsed"),
    ],
)
def test_collaborator_failures_end_in_error(text_extractor: object, understanding: object, fragment: str) -> None:
    invoice_import = _import(text_extractor=text_extractor, understanding=understanding)

    assert invoice_import.run("rechnung.pdf", SAMPLE_PDF) == "error"
    assert fragment in (invoice_import.error or "")
    assert invoice_import.staged is None


def test_non_pdf_upload_is_rejected() -> None:
    text_extractor = FakeTextExtractor()
    invoice_import = _import(text_extractor=text_extractor)

    assert invoice_import.run("rechnung.docx", b"PK\x03\x04") == "error"
    assert text_extractor.calls == 0


def test_commit_appends_one_receipt_with_included_lines() -> None:
    project = new_project("Demo", Taxonomy.from_mapping({"Audio": ["Lautsprecher"]}))
    invoice_import = _import()
    invoice_import.run("thomann.pdf", SAMPLE_PDF)
    assert invoice_import.staged is not None
    invoice_import.staged.toggle(invoice_import.staged.lines[2].id)

    updated = invoice_import.commit(project)

    assert invoice_import.state == "committed"
    assert project.receipts == ()
    (receipt,) = updated.receipts
    assert receipt.id == invoice_import.receipt_id
    assert receipt.supplier == "Thomann"
    assert receipt.date == date(2026, 1, 15)
    assert receipt.number == "TH-123"
    assert receipt.total_gross == Decimal("899.55")
    assert receipt.note == IMPORT_NOTE
    assert receipt.is_imported
    assert receipt.document is not None and receipt.document.filename == "thomann.pdf"
    assert [line.description for line in updated.lines] == ["JBL Control 25-1", "Versand"]
    assert all(line.item_id is None and line.receipt_id == receipt.id for line in updated.lines)
    totals = project_totals(updated)
    assert totals.unallocated == Decimal("765.90")
    assert totals.allocated_lines == 0


def test_commit_rejects_empty_supplier_and_stays_in_preview() -> None:
    invoice_import = _import(understanding=FakeUnderstanding(invoice_payload(supplier="")))
    invoice_import.run("rechnung.pdf", SAMPLE_PDF)

    with pytest.raises(ValidationError):
        invoice_import.commit(new_project())
    assert invoice_import.state == "preview"


def test_commit_without_committable_lines_is_rejected() -> None:
    staged_import = _import(understanding=FakeUnderstanding(invoice_payload(lines=[])))
    staged_import.run("rechnung.pdf", SAMPLE_PDF)
    assert staged_import.staged is not None

    with pytest.raises(ValidationError):
        commit_staged_import(new_project(), staged_import.staged, None)


def test_transitions_are_enforced() -> None:
    invoice_import = _import()

    with pytest.raises(InvalidTransitionError):
        invoice_import.commit(new_project())

    invoice_import.run("rechnung.pdf", SAMPLE_PDF)
    with pytest.raises(ImportInProgressError):
        invoice_import.run("second.pdf", SAMPLE_PDF)

    invoice_import.commit(new_project())
    with pytest.raises(InvalidTransitionError):
        invoice_import.run("second.pdf", SAMPLE_PDF)

    invoice_import.reset()
    assert invoice_import.state == "idle"
    assert invoice_import.receipt_id is None
    assert invoice_import.run("second.pdf", SAMPLE_PDF) == "preview"


def test_cancel_discards_preview_and_error() -> None:
    invoice_import = _import()
    invoice_import.run("rechnung.pdf", SAMPLE_PDF)

    invoice_import.cancel()
    assert invoice_import.state == "idle"
    assert invoice_import.staged is None
    assert invoice_import.document is None

    failing = _import(text_extractor=FakeTextExtractor(""))
    assert failing.run("rechnung.pdf", SAMPLE_PDF) == "error"
    failing.reset()
    assert failing.state == "idle"
    assert failing.error is None


def test_resume_enters_preview_from_idle_only() -> None:
    source = _import()
    source.run("rechnung.pdf", SAMPLE_PDF)
    assert source.staged is not None

    resumed = _import()
    resumed.resume(source.staged, source.document)
    assert resumed.state == "preview"

    with pytest.raises(InvalidTransitionError):
        resumed.resume(source.staged, source.document)


class _BlockingText:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()

    def extract_text(self, content: bytes) -> str:
        self.started.set()
        self.release.wait(timeout=5)
        return FakeTextExtractor().text


def test_concurrent_run_is_rejected_while_reading() -> None:
    blocking = _BlockingText()
    invoice_import = _import(text_extractor=blocking)
    results: list[str] = []

    worker = threading.Thread(target=lambda: results.append(invoice_import.run("a.pdf", SAMPLE_PDF)))
    worker.start()
    assert blocking.started.wait(timeout=5)
    try:
        with pytest.raises(ImportInProgressError):
            invoice_import.run("b.pdf", SAMPLE_PDF)
    finally:
        blocking.release.set()
        worker.join(timeout=5)

    assert results == ["preview"]


@pytest.mark.parametrize(
    ("text_extractor", "understanding"),
    [
        (_CrashingText(), None),
        (None, _CrashingUnderstanding()),
    ],
)
def test_unexpected_collaborator_errors_end_in_error(text_extractor: object, understanding: object) -> None:
    invoice_import = _import(text_extractor=text_extractor, understanding=understanding)

    assert invoice_import.run("rechnung.pdf", SAMPLE_PDF) == "error"
    assert invoice_import.staged is None

    invoice_import.reset()
    assert invoice_import.state == "idle"


def test_out_of_range_amount_ends_in_error_and_allows_retry() -> None:
    oversized = [{"description": "Box", "qty": 1, "unitPrice": 0, "lineTotal": 1e30}]
    invoice_import = _import(understanding=FakeUnderstanding(invoice_payload(lines=oversized)))

    assert invoice_import.run("rechnung.pdf", SAMPLE_PDF) == "error"
    assert "out of range" in (invoice_import.error or "")

    invoice_import.reset()
    assert invoice_import.run("rechnung.pdf", SAMPLE_PDF) == "error"


def test_unit_price_derived_out_of_range_ends_in_error() -> None:
    lines = [{"description": "Kabel", "qty": 1e-30, "unitPrice": 0, "lineTotal": 500}]
    invoice_import = _import(understanding=FakeUnderstanding(invoice_payload(lines=lines)))

    assert invoice_import.run("rechnung.pdf", SAMPLE_PDF) == "error"
    assert invoice_import.state == "error"
