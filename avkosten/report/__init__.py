"""Rendering of project data: CSV export and terminal views."""

from avkosten.report.formatter import (
    format_dashboard,
    format_issues,
    format_item_table,
    format_receipts,
    format_staged_import,
)
from avkosten.report.tabular import csv_filename, encode_items_csv, render_items_csv

__all__ = [
    "format_dashboard",
    "format_issues",
    "format_item_table",
    "format_receipts",
    "format_staged_import",
    "csv_filename",
    "encode_items_csv",
    "render_items_csv",
]
