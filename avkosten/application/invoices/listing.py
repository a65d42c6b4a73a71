"""Staged invoice listing workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from avkosten.invoice.staging import StagedImport
from avkosten.runtime import get_logger
from avkosten.runtime.import_storage import DraftFormatError, list_staged_imports, load_staged_import

logger = get_logger(__name__)


@dataclass(frozen=True)
class StagedImportListing:
    """Staged drafts for CLI display; unreadable drafts carry ``None``."""

    drafts: list[tuple[Path, StagedImport | None]]


def run_list_staged_imports() -> StagedImportListing:
    """Load staged draft summaries."""
    drafts: list[tuple[Path, StagedImport | None]] = []
    for path in list_staged_imports():
        try:
            staged, _ = load_staged_import(path)
        except DraftFormatError as e:
            logger.warning("Failed to parse %s: %s", path, e)
            staged = None
        drafts.append((path, staged))
    return StagedImportListing(drafts=drafts)
