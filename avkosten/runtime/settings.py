"""Runtime settings loaded from ``config/avkosten.toml`` and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

from avkosten.domain.planned_items import ITEM_DELETE_POLICIES, ItemDeletePolicy
from avkosten.domain.project import Taxonomy
from avkosten.runtime.paths import get_paths

DEFAULT_EXTRACTION_URL = "https://api.anthropic.com"
DEFAULT_EXTRACTION_MODEL = "claude-sonnet-4-20250514"


class SettingsError(ValueError):
    """Raised when the settings file holds an unusable value."""


@dataclass(frozen=True)
class ImportSettings:
    min_text_length: int = 20
    max_input_chars: int = 6000


@dataclass(frozen=True)
class ExtractionSettings:
    api_url: str = DEFAULT_EXTRACTION_URL
    model: str = DEFAULT_EXTRACTION_MODEL
    max_tokens: int = 1000
    timeout: float = 60.0
    api_key: str | None = None


@dataclass(frozen=True)
class BudgetSettings:
    vat_rate: Decimal = Decimal("0.19")
    item_delete_policy: ItemDeletePolicy = "unallocate_lines"
    default_subcategory: str = "Sonstiges"


@dataclass(frozen=True)
class Settings:
    imports: ImportSettings = ImportSettings()
    extraction: ExtractionSettings = ExtractionSettings()
    budget: BudgetSettings = BudgetSettings()


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    if not path.exists():
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise SettingsError(f"[{name}] must be a table")
    return section


def _int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SettingsError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def _build_extraction(section: dict[str, Any]) -> ExtractionSettings:
    defaults = ExtractionSettings()
    api_url = os.environ.get("AVK_EXTRACTION_URL") or section.get("api_url") or defaults.api_url
    api_key = (
        os.environ.get("AVK_EXTRACTION_API_KEY")
        or os.environ.get("ANTHROPIC_API_KEY")
        or section.get("api_key")
        or None
    )
    try:
        timeout = float(section.get("timeout", defaults.timeout))
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"timeout must be a number, got {section.get('timeout')!r}") from exc
    return ExtractionSettings(
        api_url=str(api_url),
        model=str(section.get("model") or defaults.model),
        max_tokens=_int(section, "max_tokens", defaults.max_tokens),
        timeout=timeout,
        api_key=api_key,
    )


def _build_budget(section: dict[str, Any]) -> BudgetSettings:
    defaults = BudgetSettings()
    try:
        vat_rate = Decimal(str(section.get("vat_rate", defaults.vat_rate)))
    except InvalidOperation as exc:
        raise SettingsError(f"vat_rate must be a decimal, got {section.get('vat_rate')!r}") from exc
    policy = section.get("item_delete_policy", defaults.item_delete_policy)
    if policy not in ITEM_DELETE_POLICIES:
        raise SettingsError(f"item_delete_policy must be one of {', '.join(ITEM_DELETE_POLICIES)}, got {policy!r}")
    return BudgetSettings(
        vat_rate=vat_rate,
        item_delete_policy=policy,
        default_subcategory=str(section.get("default_subcategory") or defaults.default_subcategory),
    )


def build_settings(data: dict[str, Any]) -> Settings:
    """Build settings from parsed TOML data, applying environment overrides."""
    import_section = _section(data, "import")
    defaults = ImportSettings()
    return Settings(
        imports=ImportSettings(
            min_text_length=_int(import_section, "min_text_length", defaults.min_text_length),
            max_input_chars=_int(import_section, "max_input_chars", defaults.max_input_chars),
        ),
        extraction=_build_extraction(_section(data, "extraction")),
        budget=_build_budget(_section(data, "budget")),
    )


@lru_cache(maxsize=8)
def _read_settings_file(path: str) -> dict[str, Any]:
    return _load_toml(Path(path))


def load_settings(settings_path: Path | None = None) -> Settings:
    """Load settings from the configured file (missing file means defaults)."""
    path = settings_path if settings_path is not None else get_paths().settings_file
    return build_settings(_read_settings_file(str(path.resolve())))


@lru_cache(maxsize=1)
def load_default_taxonomy() -> Taxonomy:
    """Taxonomy a new project starts with, shipped as package data."""
    data = _load_toml(get_paths().default_categories)
    categories = data.get("categories", {})
    return Taxonomy.from_mapping({str(name): [str(sub) for sub in subs] for name, subs in categories.items()})
