"""Invoice import workflows."""

from avkosten.application.invoices.listing import run_list_staged_imports
from avkosten.application.invoices.pipeline import (
    ImportInProgressError,
    InvalidTransitionError,
    InvoiceImport,
    commit_staged_import,
)
from avkosten.application.invoices.review import (
    CommitStagedImportRequest,
    EditStagedImportRequest,
    run_commit_staged_import,
    run_edit_staged_import,
)
from avkosten.application.invoices.scan import InvoiceImportRequest, run_invoice_import

__all__ = [
    "InvoiceImport",
    "ImportInProgressError",
    "InvalidTransitionError",
    "commit_staged_import",
    "InvoiceImportRequest",
    "run_invoice_import",
    "CommitStagedImportRequest",
    "run_commit_staged_import",
    "EditStagedImportRequest",
    "run_edit_staged_import",
    "run_list_staged_imports",
]
