"""Project lifecycle and editing workflow orchestration.

Every mutating workflow loads the snapshot, applies exactly one command and
writes the snapshot back only when the command was accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from avkosten.domain.commands import Command, RenameProject, apply_command
from avkosten.domain.errors import SnapshotFormatError, ValidationError
from avkosten.domain.project import Project, new_project
from avkosten.runtime import get_logger, get_paths, load_default_taxonomy
from avkosten.runtime.project_storage import load_demo_project, load_project, read_snapshot, save_project

logger = get_logger(__name__)

LoadStatus = Literal["ok", "project_missing", "project_invalid"]
InitStatus = Literal["created", "exists", "invalid_source"]
CommandStatus = Literal["applied", "project_missing", "project_invalid", "rejected"]

PROJECT_MISSING_MESSAGE = "No project file found. Run 'avk init' first."


@dataclass(frozen=True)
class LoadProjectResult:
    status: LoadStatus
    project: Project | None = None
    error: str | None = None


@dataclass(frozen=True)
class InitProjectRequest:
    """Inputs for creating the working project."""

    name: str | None = None
    demo: bool = False
    source: Path | None = None
    force: bool = False
    project_path: Path | None = None


@dataclass(frozen=True)
class InitProjectResult:
    status: InitStatus
    project: Project | None = None
    path: Path | None = None
    error: str | None = None


@dataclass(frozen=True)
class ProjectCommandRequest:
    """One command to apply to the stored project."""

    command: Command
    project_path: Path | None = None


@dataclass(frozen=True)
class ProjectCommandResult:
    status: CommandStatus
    project: Project | None = None
    error: str | None = None


def run_load_project(project_path: Path | None = None) -> LoadProjectResult:
    """Load the stored project for read-only views."""
    try:
        return LoadProjectResult(status="ok", project=load_project(project_path))
    except FileNotFoundError:
        return LoadProjectResult(status="project_missing", error=PROJECT_MISSING_MESSAGE)
    except SnapshotFormatError as exc:
        return LoadProjectResult(status="project_invalid", error=str(exc))


def run_init_project(request: InitProjectRequest) -> InitProjectResult:
    """
    Create the working project: empty with the default taxonomy, the demo
    project, or a copy of another snapshot file.
    """
    path = request.project_path or get_paths().project_file
    if path.exists() and not request.force:
        return InitProjectResult(
            status="exists",
            path=path,
            error=f"Project file already exists: {path} (use --force to replace it)",
        )

    try:
        if request.source is not None:
            project = read_snapshot(request.source)
        elif request.demo:
            project = load_demo_project()
        else:
            project = new_project(taxonomy=load_default_taxonomy())
    except FileNotFoundError as exc:
        return InitProjectResult(status="invalid_source", error=str(exc))
    except SnapshotFormatError as exc:
        # The existing project file is left untouched.
        return InitProjectResult(status="invalid_source", error=str(exc))

    if request.name:
        try:
            project = apply_command(project, RenameProject(name=request.name))
        except ValidationError as exc:
            return InitProjectResult(status="invalid_source", error=str(exc))

    save_project(project, path)
    logger.info("Initialized project %r at %s", project.name, path)
    return InitProjectResult(status="created", project=project, path=path)


def run_project_command(request: ProjectCommandRequest) -> ProjectCommandResult:
    """Apply one command to the stored project and persist the result."""
    loaded = run_load_project(request.project_path)
    if loaded.status == "project_missing":
        return ProjectCommandResult(status="project_missing", error=loaded.error)
    if loaded.project is None:
        return ProjectCommandResult(status="project_invalid", error=loaded.error)

    try:
        updated = apply_command(loaded.project, request.command)
    except ValidationError as exc:
        logger.debug("Rejected %s: %s", type(request.command).__name__, exc)
        return ProjectCommandResult(status="rejected", project=loaded.project, error=str(exc))

    if updated != loaded.project:
        save_project(updated, request.project_path)
    return ProjectCommandResult(status="applied", project=updated)
