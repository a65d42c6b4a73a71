"""Shared pytest fixtures for avkosten tests."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch

from avkosten.runtime import paths as paths_module
from avkosten.runtime import settings as settings_module

SAMPLE_PDF = b"%PDF-1.4\n% sample invoice\n"

INVOICE_TEXT = (
    "Thomann GmbH\nRechnung TH-123 vom 15.01.2026\n"
    "JBL Control 25-1 4 x 189,00 756,00\nVersand 9,90\nSumme brutto 899,55\n"
)


@pytest.fixture(autouse=True)
def isolated_root(tmp_path: Path, monkeypatch: MonkeyPatch) -> Iterator[Path]:
    """Point every test at its own working directory with default settings."""
    for name in ("AVK_HOME", "AVK_LOG_LEVEL", "AVK_EXTRACTION_URL", "AVK_EXTRACTION_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    settings_module._read_settings_file.cache_clear()
    paths_module.set_root(tmp_path)
    yield tmp_path
    paths_module.reset_paths()
    settings_module._read_settings_file.cache_clear()


class FakeTextExtractor:
    def __init__(self, text: str = INVOICE_TEXT) -> None:
        self.text = text
        self.calls = 0

    def extract_text(self, content: bytes) -> str:
        self.calls += 1
        return self.text


class FakeUnderstanding:
    def __init__(self, response: str) -> None:
        self.response = response
        self.messages: list[str] = []

    def extract_invoice(self, instructions: str, message: str) -> str:
        self.messages.append(message)
        return self.response


def invoice_payload(lines: list[dict] | None = None, **fields: object) -> str:
    data: dict[str, object] = {
        "supplier": "Thomann",
        "date": "2026-01-15",
        "invoiceNumber": "TH-123",
        "totalGross": 899.55,
        "lines": lines
        if lines is not None
        else [
            {"description": "JBL Control 25-1", "qty": 4, "unitPrice": 189.0, "lineTotal": 756.0},
            {"description": "Versand", "qty": 1, "unitPrice": 9.9, "lineTotal": 9.9},
            {"description": "Verpackung", "qty": 1, "unitPrice": 0, "lineTotal": 0},
        ],
    }
    data.update(fields)
    return json.dumps(data)


@pytest.fixture
def fake_text_extractor() -> FakeTextExtractor:
    return FakeTextExtractor()


@pytest.fixture
def fake_understanding() -> FakeUnderstanding:
    return FakeUnderstanding(invoice_payload())
