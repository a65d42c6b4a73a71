"""Core domain model for the AV cost tracker.

This package provides the project aggregate and everything derived from it:
- Project, PlannedItem, Receipt, ReceiptLine, Taxonomy: entity models
- apply_command(): the single entry point for project mutations
- rollup(), project_totals(), item_table(): reconciliation views

Usage:
    from avkosten.domain import CreateItem, apply_command, new_project, rollup
"""

from avkosten.domain.commands import (
    AddCategory,
    AddLine,
    AddSubcategory,
    AdjustLineRate,
    AdjustReceiptRate,
    AppendReceipt,
    AttachDocument,
    Command,
    CreateItem,
    CreateReceipt,
    DeleteItem,
    DeleteReceipt,
    RemoveCategory,
    RemoveLine,
    RemoveSubcategory,
    RenameProject,
    SetAllocation,
    UpdateItem,
    UpdateLine,
    UpdateReceipt,
    apply_command,
    apply_commands,
)
from avkosten.domain.errors import SnapshotFormatError, UnknownReferenceError, ValidationError
from avkosten.domain.project import (
    PROVENANCE_PDF_IMPORT,
    PlannedItem,
    Project,
    Receipt,
    ReceiptLine,
    SourceDocument,
    Taxonomy,
    new_id,
    new_project,
)
from avkosten.domain.reconciliation import item_costs, item_table, project_totals, receipt_summary, rollup

__all__ = [
    # Entities
    "PROVENANCE_PDF_IMPORT",
    "PlannedItem",
    "Project",
    "Receipt",
    "ReceiptLine",
    "SourceDocument",
    "Taxonomy",
    "new_id",
    "new_project",
    # Errors
    "SnapshotFormatError",
    "UnknownReferenceError",
    "ValidationError",
    # Commands
    "Command",
    "apply_command",
    "apply_commands",
    "AddCategory",
    "AddLine",
    "AddSubcategory",
    "AdjustLineRate",
    "AdjustReceiptRate",
    "AppendReceipt",
    "AttachDocument",
    "CreateItem",
    "CreateReceipt",
    "DeleteItem",
    "DeleteReceipt",
    "RemoveCategory",
    "RemoveLine",
    "RemoveSubcategory",
    "RenameProject",
    "SetAllocation",
    "UpdateItem",
    "UpdateLine",
    "UpdateReceipt",
    # Reconciliation
    "item_costs",
    "item_table",
    "project_totals",
    "receipt_summary",
    "rollup",
]
