"""Project editing and export workflows."""

from avkosten.application.project.editing import (
    InitProjectRequest,
    ProjectCommandRequest,
    run_init_project,
    run_load_project,
    run_project_command,
)
from avkosten.application.project.exports import (
    AttachDocumentRequest,
    run_attach_document,
    run_export_csv,
    run_export_document,
)

__all__ = [
    "InitProjectRequest",
    "run_init_project",
    "run_load_project",
    "ProjectCommandRequest",
    "run_project_command",
    "AttachDocumentRequest",
    "run_attach_document",
    "run_export_csv",
    "run_export_document",
]
