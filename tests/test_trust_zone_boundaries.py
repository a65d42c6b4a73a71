"""Trust-zone dependency rules between the avkosten subpackages."""

from __future__ import annotations

import ast
import importlib.util
from pathlib import Path

_PACKAGE = Path(__file__).resolve().parents[1] / "avkosten"
_ZONE_MAPPING: dict[str, list[tuple[str, ...]]] = {
    "Pure": [("domain",), ("invoice",), ("report",)],
    "Privileged": [("runtime",)],
    "Orchestrator": [("application",), ("cli",)],
}
_ALLOWED_TARGET_ZONES = {
    "Privileged": {"Privileged", "Pure"},
    "Orchestrator": {"Privileged", "Orchestrator", "Pure"},
    "Pure": {"Pure"},
}


def _zone_for_parts(
    parts: tuple[str, ...],
    zone_entries: list[tuple[tuple[str, ...], str]],
) -> str | None:
    for prefix, zone in zone_entries:
        if len(parts) >= len(prefix) and parts[: len(prefix)] == prefix:
            return zone
    return None


def _module_name_for_file(path: Path) -> str:
    parts = list(path.relative_to(_PACKAGE).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(["avkosten", *parts])


def _imported_modules(path: Path) -> list[str]:
    module_name = _module_name_for_file(path)
    current_package = module_name if path.name == "__init__.py" else module_name.rsplit(".", 1)[0]
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))

    imports: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.level == 0:
                if node.module:
                    imports.append(node.module)
                continue

            rel_name = "." * node.level + (node.module or "")
            try:
                imports.append(importlib.util.resolve_name(rel_name, current_package))
            except ImportError:
                continue
    return imports


def test_zone_paths_exist() -> None:
    missing = [
        "/".join(parts)
        for paths in _ZONE_MAPPING.values()
        for parts in paths
        if not (_PACKAGE / Path(*parts)).is_dir()
    ]

    assert not missing, "Zone directories do not exist:\n" + "\n".join(sorted(missing))


def test_every_subpackage_has_a_zone() -> None:
    zoned = {parts[0] for paths in _ZONE_MAPPING.values() for parts in paths}
    unzoned = [
        path.name
        for path in sorted(_PACKAGE.iterdir())
        if path.is_dir() and path.name not in zoned and any(path.glob("*.py"))
    ]

    assert not unzoned, "Subpackages without a trust zone:\n" + "\n".join(unzoned)


def test_trust_zone_import_boundaries() -> None:
    zone_entries: list[tuple[tuple[str, ...], str]] = []
    source_files: set[Path] = set()

    for zone, paths in _ZONE_MAPPING.items():
        for parts in paths:
            zone_entries.append((parts, zone))
            source_files.update((_PACKAGE / Path(*parts)).rglob("*.py"))

    zone_entries.sort(key=lambda item: len(item[0]), reverse=True)
    violations: list[str] = []

    for path in sorted(source_files):
        rel = path.relative_to(_PACKAGE)
        source_zone = _zone_for_parts(rel.parts, zone_entries)
        if source_zone is None:
            continue

        for module in _imported_modules(path):
            if not module.startswith("avkosten."):
                continue

            target_parts = tuple(part for part in module.split(".")[1:] if part)
            target_zone = _zone_for_parts(target_parts, zone_entries)
            if target_zone is None:
                continue

            if target_zone not in _ALLOWED_TARGET_ZONES[source_zone]:
                violations.append(f"{rel}: {source_zone} imports {module} ({target_zone})")

    assert not violations, "Trust-zone import violations:\n" + "\n".join(violations)
