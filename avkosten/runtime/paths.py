"""Centralized path management for the cost tracker.

All working files live below one root directory: ``$AVK_HOME`` when set,
otherwise the current working directory at first use.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Determine the working root directory."""
    env_home = os.environ.get("AVK_HOME", "").strip()
    if env_home:
        return Path(env_home).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all tracker paths, computed relative to the root."""

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Package data ---
    @property
    def package_data(self) -> Path:
        """Data files shipped with the package (default taxonomy, demo project)."""
        return Path(__file__).resolve().parents[1] / "data"

    @property
    def default_categories(self) -> Path:
        return self.package_data / "default_categories.toml"

    @property
    def demo_project(self) -> Path:
        return self.package_data / "demo_project.avproj.json"

    # --- Configuration ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def settings_file(self) -> Path:
        """User settings TOML file."""
        return self.config / "avkosten.toml"

    # --- Project snapshot ---
    @property
    def project_file(self) -> Path:
        """The single persisted project snapshot."""
        return self.root / "project.avproj.json"

    # --- Invoice imports ---
    @property
    def imports(self) -> Path:
        return self.root / "imports"

    @property
    def imports_staged(self) -> Path:
        """Extracted invoices awaiting review and commit."""
        return self.imports / "staged"

    # --- Exports ---
    @property
    def exports(self) -> Path:
        """CSV exports and retrieved source documents."""
        return self.root / "exports"

    def ensure_directories(self) -> None:
        """Create working directories if they don't exist."""
        self.config.mkdir(parents=True, exist_ok=True)
        self.imports_staged.mkdir(parents=True, exist_ok=True)
        self.exports.mkdir(parents=True, exist_ok=True)


_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance."""
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def set_root(root: Path) -> ProjectPaths:
    """Point the singleton at a different root (``avk --home``, tests)."""
    global _paths
    _paths = ProjectPaths(root=root)
    return _paths


def reset_paths() -> None:
    global _paths
    _paths = None
