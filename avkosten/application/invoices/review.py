"""Staged invoice review and commit workflow orchestration."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from avkosten.application.invoices.pipeline import commit_staged_import
from avkosten.domain.errors import SnapshotFormatError, ValidationError
from avkosten.invoice.staging import StagedImport
from avkosten.runtime.import_storage import DraftFormatError, delete_staged_import, load_staged_import
from avkosten.runtime.project_storage import load_project, save_project

CommitStagedStatus = Literal[
    "draft_not_found",
    "draft_invalid",
    "project_missing",
    "project_invalid",
    "rejected",
    "committed",
]

EditStagedStatus = Literal[
    "editor_not_found",
    "editor_failed",
    "edited_file_missing",
    "draft_invalid",
    "edited",
]


@dataclass(frozen=True)
class CommitStagedImportRequest:
    """Inputs for committing one staged draft into the project."""

    draft_path: Path
    project_path: Path | None = None


@dataclass(frozen=True)
class CommitStagedImportResult:
    """Outcome for committing one staged draft."""

    status: CommitStagedStatus
    staged: StagedImport | None = None
    receipt_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class EditStagedImportRequest:
    """Inputs for editing one staged draft."""

    target_path: Path
    resolve_editor_cmd: Callable[[], list[str]]


@dataclass(frozen=True)
class EditStagedImportResult:
    """Outcome for editing one staged draft."""

    status: EditStagedStatus
    staged: StagedImport | None = None
    error: str | None = None
    editor_cmd: list[str] | None = None
    editor_returncode: int | None = None


def run_commit_staged_import(request: CommitStagedImportRequest) -> CommitStagedImportResult:
    """Commit a staged draft as one new receipt; the draft is removed on success."""
    try:
        staged, document = load_staged_import(request.draft_path)
    except FileNotFoundError as exc:
        return CommitStagedImportResult(status="draft_not_found", error=str(exc))
    except DraftFormatError as exc:
        return CommitStagedImportResult(status="draft_invalid", error=str(exc))

    try:
        project = load_project(request.project_path)
    except FileNotFoundError:
        return CommitStagedImportResult(
            status="project_missing",
            staged=staged,
            error="No project file found. Run 'avk init' first.",
        )
    except SnapshotFormatError as exc:
        return CommitStagedImportResult(status="project_invalid", staged=staged, error=str(exc))

    try:
        updated, receipt_id = commit_staged_import(project, staged, document)
    except ValidationError as exc:
        return CommitStagedImportResult(status="rejected", staged=staged, error=str(exc))

    save_project(updated, request.project_path)
    delete_staged_import(request.draft_path)
    return CommitStagedImportResult(status="committed", staged=staged, receipt_id=receipt_id)


def run_edit_staged_import(request: EditStagedImportRequest) -> EditStagedImportResult:
    """Open one staged draft in the editor and check that it still decodes."""
    editor_cmd = request.resolve_editor_cmd()
    try:
        result = subprocess.run(editor_cmd + [str(request.target_path)])
    except FileNotFoundError:
        return EditStagedImportResult(
            status="editor_not_found",
            editor_cmd=editor_cmd,
        )

    if result.returncode != 0:
        return EditStagedImportResult(
            status="editor_failed",
            editor_returncode=result.returncode,
        )

    if not request.target_path.exists():
        return EditStagedImportResult(status="edited_file_missing")

    try:
        staged, _ = load_staged_import(request.target_path)
    except DraftFormatError as exc:
        return EditStagedImportResult(status="draft_invalid", error=str(exc))

    return EditStagedImportResult(status="edited", staged=staged)
