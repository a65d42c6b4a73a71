"""Tests for the unified ``avk`` command line."""

from __future__ import annotations

import io
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch
from conftest import SAMPLE_PDF, FakeTextExtractor, FakeUnderstanding, invoice_payload

from avkosten.application.invoices import InvoiceImport
from avkosten.application.invoices import scan as scan_workflow
from avkosten.cli.main import main
from avkosten.runtime.import_storage import list_staged_imports
from avkosten.runtime.project_storage import load_project


def _fake_invoice_import(text_extractor: object = None, understanding: object = None) -> InvoiceImport:
    return InvoiceImport(
        FakeTextExtractor(),
        FakeUnderstanding(invoice_payload()),
        today=lambda: date(2026, 3, 1),
    )


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage: avk" in capsys.readouterr().out


def test_commands_require_a_project(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["summary"]) == 1
    assert "avk init" in capsys.readouterr().out


def test_budget_workflow(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--home", str(tmp_path), "init", "--name", "Aula"]) == 0
    item_args = ["--category", "Audio", "--subcategory", "Lautsprecher", "--qty", "4", "--price", "189"]
    assert main(["item", "add", "JBL Control 25-1", *item_args]) == 0
    assert main(["receipt", "add", "Thomann", "--date", "2026-02-15", "--gross", "180"]) == 0

    project = load_project()
    item_id = project.items[0].id
    receipt_id = project.receipts[0].id
    assert main(["line", "add", receipt_id, "Box 1", "--price", "120"]) == 0
    assert main(["line", "add", receipt_id, "Box 2", "--price", "60,00"]) == 0
    for line in load_project().lines:
        assert main(["allocate", line.id, item_id]) == 0

    capsys.readouterr()
    assert main(["item", "list"]) == 0
    listing = capsys.readouterr().out
    assert "756.00" in listing
    assert "+576.00" in listing
    assert "Within budget" in listing

    assert main(["summary"]) == 0
    summary = capsys.readouterr().out
    assert "Aula" in summary
    assert "Allocated lines: 2/2" in summary

    assert main(["check"]) == 0
    assert "No reference problems found." in capsys.readouterr().out


def test_rate_and_delete(monkeypatch: MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    main(["init", "--demo"])
    project = load_project()
    line = next(line for line in project.lines if line.id == "rl6")

    assert main(["rate", "line", line.id]) == 0
    assert load_project().get_line("rl6").unit_price == Decimal("22.97")

    assert main(["item", "delete", "d1", "--policy", "purge_lines", "--yes"]) == 0
    project = load_project()
    assert project.find_item("d1") is None
    assert project.find_line("rl1") is None

    assert main(["receipt", "delete", "r3"]) == 0
    assert "Refusing without --yes" in capsys.readouterr().out
    assert load_project().find_receipt("r3") is not None


def test_rejected_command_exits_with_error(capsys: pytest.CaptureFixture[str]) -> None:
    main(["init"])
    capsys.readouterr()

    assert main(["item", "add", "Box", "--category", "Nope", "--subcategory", "X", "--price", "1"]) == 1
    assert "Error: Unknown category/subcategory" in capsys.readouterr().out


def test_category_commands() -> None:
    main(["init"])

    assert main(["category", "add", "Bühne", "--sub", "Podeste"]) == 0
    assert main(["category", "add", "Medien"]) == 0
    assert main(["subcategory", "add", "Bühne", "Traversen"]) == 0

    taxonomy = load_project().taxonomy
    assert taxonomy.subcategories("Bühne") == ("Podeste", "Traversen")
    assert taxonomy.subcategories("Medien") == ("Sonstiges",)


def test_export_csv(tmp_path: Path) -> None:
    main(["init", "--demo", "--name", "Aula"])
    target = tmp_path / "export.csv"

    assert main(["export-csv", str(target)]) == 0
    assert target.read_bytes().startswith(b"\xef\xbb\xbfGewerk;Unterkategorie;")


def test_import_invoice_and_commit(
    tmp_path: Path,
    monkeypatch: MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(scan_workflow, "build_invoice_import", _fake_invoice_import)
    main(["init"])
    pdf = tmp_path / "thomann.pdf"
    pdf.write_bytes(SAMPLE_PDF)

    assert main(["import-invoice", str(pdf), "--no-edit"]) == 0
    out = capsys.readouterr().out
    assert "STAGED INVOICE" in out
    assert "Supplier: Thomann" in out

    assert main(["list-staged"]) == 0
    assert "Thomann" in capsys.readouterr().out

    assert main(["commit-import"]) == 0
    assert "Committed receipt" in capsys.readouterr().out
    project = load_project()
    assert len(project.receipts) == 1
    assert project.receipts[0].is_imported
    assert list_staged_imports() == []

    assert main(["commit-import"]) == 1
    assert "No staged drafts found." in capsys.readouterr().out


def test_import_invoice_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["import-invoice", str(tmp_path / "missing.pdf"), "--no-edit"]) == 1
    assert "Invoice file not found" in capsys.readouterr().out


def test_out_of_range_amounts_are_refused(capsys: pytest.CaptureFixture[str]) -> None:
    main(["init"])
    capsys.readouterr()

    with pytest.raises(SystemExit) as excinfo:
        main(["item", "add", "Box", "--category", "Audio", "--subcategory", "Lautsprecher", "--price", "1e30"])
    assert excinfo.value.code == 2
    assert "out of range" in capsys.readouterr().err

    main(["receipt", "add", "Thomann", "--date", "2026-02-15"])
    receipt_id = load_project().receipts[0].id
    main(["line", "add", receipt_id, "Mischpult", "--price", "900000000000"])
    line_id = load_project().lines[0].id
    capsys.readouterr()

    assert main(["rate", "line", line_id]) == 1
    assert "out of range" in capsys.readouterr().out
    assert load_project().get_line(line_id).unit_price == Decimal("900000000000")
