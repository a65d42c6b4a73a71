"""Tests for staged draft storage, settings and the runtime collaborators."""

from __future__ import annotations

import io
import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import httpx
import pytest
from _pytest.monkeypatch import MonkeyPatch
from pypdf import PdfWriter

from avkosten.domain.project import SourceDocument
from avkosten.invoice.collaborators import ExtractionServiceUnavailable, TextExtractionError
from avkosten.invoice.staging import StagedImport, StagedLine
from avkosten.runtime import SettingsError, get_paths, load_default_taxonomy, load_settings
from avkosten.runtime.import_storage import (
    DraftFormatError,
    decode_staged_import,
    delete_staged_import,
    encode_staged_import,
    generate_draft_filename,
    list_staged_imports,
    load_staged_import,
    resolve_staged_import,
    save_staged_import,
)
from avkosten.runtime.invoice_extraction import MessagesApiUnderstanding
from avkosten.runtime.pdf_text import PdfTextExtractor
from avkosten.runtime.settings import ExtractionSettings


def _staged(supplier: str = "Thomann GmbH & Co. KG") -> StagedImport:
    return StagedImport(
        supplier=supplier,
        invoice_date=date(2026, 1, 15),
        invoice_number="TH-1",
        total_gross=Decimal("899.55"),
        lines=[
            StagedLine(
                id="a",
                description="JBL",
                quantity=Decimal("4"),
                unit_price=Decimal("189"),
                line_total=Decimal("756.00"),
                extracted_total=Decimal("756.00"),
            ),
            StagedLine(
                id="b",
                description="Versand",
                quantity=Decimal("1"),
                unit_price=Decimal("9.9"),
                line_total=Decimal("9.90"),
                include=False,
            ),
        ],
    )


def test_generate_draft_filename() -> None:
    assert generate_draft_filename(_staged()) == "2026-01-15_thomann_gmbh_co_kg_899_55.json"
    assert generate_draft_filename(_staged(supplier="")) == "2026-01-15_unknown_899_55.json"


def test_draft_round_trip_keeps_document_and_flags() -> None:
    document = SourceDocument(filename="thomann.pdf", content=b"%PDF-1.4 data")

    data = json.loads(json.dumps(encode_staged_import(_staged(), document)))
    staged, restored_document = decode_staged_import(data)

    assert restored_document == document
    assert staged.supplier == "Thomann GmbH & Co. KG"
    assert [line.include for line in staged.lines] == [True, False]
    assert staged.lines[0].extracted_total == Decimal("756.00")
    assert staged.included_total == Decimal("756.00")


def test_hand_edited_draft_recomputes_line_totals() -> None:
    data = encode_staged_import(_staged())
    data["lines"][0]["qty"] = "2"
    data["lines"][0]["lineTotal"] = "1"

    staged, document = decode_staged_import(data)

    assert document is None
    assert staged.lines[0].line_total == Decimal("378.00")


@pytest.mark.parametrize(
    "data",
    [
        {"_type": "other"},
        {"_type": "av-kostentracker-staged-import", "date": "morgen"},
        {"_type": "av-kostentracker-staged-import", "date": "2026-01-01", "lines": "x"},
        {"_type": "av-kostentracker-staged-import", "date": "2026-01-01", "lines": [{"qty": "zwei"}]},
        {"_type": "av-kostentracker-staged-import", "date": "2026-01-01", "lines": [{"include": "false"}]},
        {"_type": "av-kostentracker-staged-import", "date": "2026-01-01", "lines": [{"unitPrice": "1e30"}]},
    ],
)
def test_invalid_drafts_are_rejected(data: dict) -> None:
    with pytest.raises(DraftFormatError):
        decode_staged_import(data)


def test_save_list_resolve_and_delete(isolated_root: Path) -> None:
    first = save_staged_import(_staged())
    second = save_staged_import(_staged())

    assert first.parent == get_paths().imports_staged
    assert second.name == "2026-01-15_thomann_gmbh_co_kg_899_55_1.json"
    assert list_staged_imports() == [first, second]
    assert resolve_staged_import(first.name) == first
    assert resolve_staged_import(None) is None
    assert resolve_staged_import("missing.json") is None

    assert delete_staged_import(second)
    assert not delete_staged_import(second)
    assert resolve_staged_import(None) == first

    staged, _ = load_staged_import(first)
    assert staged.invoice_number == "TH-1"


def test_load_staged_import_rejects_broken_files(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(DraftFormatError):
        load_staged_import(path)

    latin = tmp_path / "latin.json"
    latin.write_bytes('{"supplier": "M\xfcller"}'.encode("latin-1"))
    with pytest.raises(DraftFormatError):
        load_staged_import(latin)

    with pytest.raises(FileNotFoundError):
        load_staged_import(tmp_path / "missing.json")


def test_settings_defaults_without_file() -> None:
    settings = load_settings()

    assert settings.imports.min_text_length == 20
    assert settings.imports.max_input_chars == 6000
    assert settings.budget.vat_rate == Decimal("0.19")
    assert settings.budget.item_delete_policy == "unallocate_lines"
    assert settings.extraction.api_key is None


def test_settings_file_and_environment_overrides(isolated_root: Path, monkeypatch: MonkeyPatch) -> None:
    settings_file = get_paths().settings_file
    settings_file.parent.mkdir(parents=True)
    settings_file.write_text(
        """
[import]
min_text_length = 5

[extraction]
api_url = "http://file.example"
model = "local-model"
timeout = 5

[budget]
vat_rate = "0.07"
item_delete_policy = "purge_lines"
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("AVK_EXTRACTION_URL", "http://env.example")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "secret")

    settings = load_settings()

    assert settings.imports.min_text_length == 5
    assert settings.extraction.api_url == "http://env.example"
    assert settings.extraction.model == "local-model"
    assert settings.extraction.timeout == 5.0
    assert settings.extraction.api_key == "secret"
    assert settings.budget.vat_rate == Decimal("0.07")
    assert settings.budget.item_delete_policy == "purge_lines"


def test_invalid_settings_raise(tmp_path: Path) -> None:
    path = tmp_path / "avkosten.toml"
    path.write_text('[budget]\nitem_delete_policy = "cascade"\n', encoding="utf-8")

    with pytest.raises(SettingsError):
        load_settings(path)


def test_default_taxonomy() -> None:
    taxonomy = load_default_taxonomy()

    assert taxonomy.names() == ["Licht", "Audio", "Video", "Netzwerk", "Steuerung", "Allgemein"]
    assert "Lautsprecher" in taxonomy.subcategories("Audio")


def test_pdf_text_extractor_reads_blank_and_rejects_garbage() -> None:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)

    assert PdfTextExtractor().extract_text(buffer.getvalue()).strip() == ""
    with pytest.raises(TextExtractionError):
        PdfTextExtractor().extract_text(b"%PDF-1.4 this is not really a pdf")


def test_messages_api_understanding_posts_and_joins_text() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"content": [{"type": "text", "text": '{"supplier": '}, {"type": "text", "text": '"X"}'}]},
        )

    client = httpx.Client(transport=httpx.MockTransport(handler))
    settings = ExtractionSettings(api_url="http://extract.test/", api_key="k", model="m", max_tokens=10)

    result = MessagesApiUnderstanding(settings, client=client).extract_invoice("instructions", "message")

    assert result == '{"supplier": "X"}'
    request = seen[0]
    assert str(request.url) == "http://extract.test/v1/messages"
    assert request.headers["x-api-key"] == "k"
    body = json.loads(request.content)
    assert body["system"] == "instructions"
    assert body["messages"] == [{"role": "user", "content": "message"}]
    assert body["max_tokens"] == 10


@pytest.mark.parametrize("status_code", [401, 500])
def test_messages_api_understanding_maps_http_errors(status_code: int) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(status_code, text="nope")))

    with pytest.raises(ExtractionServiceUnavailable):
        MessagesApiUnderstanding(ExtractionSettings(), client=client).extract_invoice("i", "m")


def test_messages_api_understanding_maps_connection_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(ExtractionServiceUnavailable):
        MessagesApiUnderstanding(ExtractionSettings(), client=client).extract_invoice("i", "m")
