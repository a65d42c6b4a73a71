"""Semicolon-delimited item export for spreadsheet tools."""

from __future__ import annotations

import csv
import io
import re

from avkosten.domain.money import format_amount
from avkosten.domain.project import Project
from avkosten.domain.reconciliation import item_costs

CSV_HEADER = ("Gewerk", "Unterkategorie", "Bezeichnung", "Menge", "Einzelpreis", "Soll", "Ist", "Differenz")

# UTF-8 byte-order mark, expected by spreadsheet tools in German locales.
BOM = "\ufeff"


def render_items_csv(project: Project) -> str:
    """One row per planned item, in item order, prefixed with the BOM."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for cost in item_costs(project):
        item = cost.item
        writer.writerow(
            (
                item.category,
                item.subcategory,
                item.name,
                item.quantity,
                format_amount(item.unit_price),
                format_amount(cost.planned),
                format_amount(cost.actual),
                format_amount(cost.variance),
            )
        )
    return BOM + buffer.getvalue()


def encode_items_csv(project: Project) -> bytes:
    return render_items_csv(project).encode("utf-8")


def csv_filename(project: Project) -> str:
    """Default export name: project name with whitespace replaced."""
    name = re.sub(r"\s", "_", project.name)
    return f"{name}_Kostentracking.csv"
