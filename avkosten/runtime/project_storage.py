"""Storage of the project snapshot and of exported files.

Directory structure (below the working root):
    project.avproj.json  - the single project snapshot
    exports/             - CSV exports and retrieved source documents
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import replace
from pathlib import Path

from avkosten.domain.errors import SnapshotFormatError
from avkosten.domain.project import Project, SourceDocument, new_id
from avkosten.domain.snapshot import decode_snapshot, encode_snapshot
from avkosten.runtime.logging import get_logger
from avkosten.runtime.paths import get_paths

logger = get_logger(__name__)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write via a sibling temp file so a failed write never truncates ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_snapshot(path: Path) -> Project:
    """
    Decode a snapshot file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        SnapshotFormatError: If the file is not a valid project snapshot.
    """
    raw = path.read_bytes()
    try:
        envelope = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotFormatError(f"{path.name} is not valid JSON: {exc}") from exc
    return decode_snapshot(envelope)


def load_project(path: Path | None = None) -> Project:
    """Load the working project snapshot."""
    path = path or get_paths().project_file
    project = read_snapshot(path)
    logger.debug("Loaded project %r from %s", project.name, path)
    return project


def save_project(project: Project, path: Path | None = None) -> Path:
    """Write the project snapshot atomically and return its path."""
    path = path or get_paths().project_file
    content = json.dumps(encode_snapshot(project), ensure_ascii=False, indent=2)
    _atomic_write(path, content.encode("utf-8"))
    logger.info("Saved project to %s", path)
    return path


def load_demo_project() -> Project:
    """The bundled demo project, with a fresh project id."""
    return replace(read_snapshot(get_paths().demo_project), id=new_id())


def _unique_path(directory: Path, filename: str) -> Path:
    """Append a counter to ``filename`` until it does not collide."""
    filepath = directory / filename
    counter = 1
    stem = filepath.stem
    suffix = filepath.suffix
    while filepath.exists():
        filepath = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return filepath


def safe_filename(name: str, default: str = "document") -> str:
    """Strip directory parts and characters unsafe in filenames."""
    name = Path(name.replace("\\", "/")).name
    cleaned = "".join(c if c.isalnum() or c in "._- " else "_" for c in name).strip(" .")
    return cleaned or default


def write_export(content: bytes, filename: str, directory: Path | None = None) -> Path:
    """Write exported bytes below exports/ (or ``directory``) without overwriting."""
    directory = directory or get_paths().exports
    directory.mkdir(parents=True, exist_ok=True)
    filepath = _unique_path(directory, safe_filename(filename))
    filepath.write_bytes(content)
    logger.info("Wrote export %s", filepath)
    return filepath


def write_document(document: SourceDocument, directory: Path | None = None) -> Path:
    """Write a retained source document unchanged."""
    return write_export(document.content, document.filename, directory)
