"""Runtime infrastructure for the cost tracker.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Settings via load_settings()

Usage:
    from avkosten.runtime import get_logger, get_paths

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.project_file)
"""

from avkosten.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from avkosten.runtime.paths import (
    ProjectPaths,
    get_paths,
    reset_paths,
    set_root,
)
from avkosten.runtime.settings import (
    Settings,
    SettingsError,
    load_default_taxonomy,
    load_settings,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Paths
    "get_paths",
    "set_root",
    "reset_paths",
    "ProjectPaths",
    # Settings
    "Settings",
    "SettingsError",
    "load_settings",
    "load_default_taxonomy",
]
