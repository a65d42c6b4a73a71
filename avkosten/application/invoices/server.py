"""FastAPI server for uploading invoice PDFs into the review queue."""

from __future__ import annotations

import threading
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from avkosten.application.invoices.pipeline import InvoiceImport
from avkosten.application.invoices.scan import build_invoice_import
from avkosten.application.project.editing import run_load_project
from avkosten.domain.allocation import allocation_progress
from avkosten.domain.money import format_amount
from avkosten.domain.reconciliation import project_totals
from avkosten.runtime import get_logger, get_paths
from avkosten.runtime.import_storage import save_staged_import

logger = get_logger(__name__)


def create_app(invoice_import_factory: Callable[[], InvoiceImport] | None = None) -> FastAPI:
    """
    Build the upload server.

    Args:
        invoice_import_factory: Creates one ``InvoiceImport`` per upload;
            defaults to the configured PDF and extraction collaborators.
    """
    factory = invoice_import_factory or build_invoice_import
    # At most one upload runs the pipeline at a time.
    import_lock = threading.Lock()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create working directories on startup."""
        get_paths().ensure_directories()
        yield

    app = FastAPI(title="Invoice Import", lifespan=lifespan)

    def _run_import(filename: str, contents: bytes) -> tuple[int, dict[str, Any]]:
        invoice_import = factory()
        state = invoice_import.run(filename, contents)
        if state != "preview" or invoice_import.staged is None:
            return 422, {"status": "error", "message": invoice_import.error or "Invoice import failed"}

        staged = invoice_import.staged
        draft_path = save_staged_import(staged, invoice_import.document)
        discrepancy = staged.discrepancy
        return 200, {
            "status": "success",
            "action": "staged_for_review",
            "message": f"Staged for review: {draft_path.name}",
            "draft_filename": draft_path.name,
            "supplier": staged.supplier,
            "invoice_number": staged.invoice_number,
            "line_count": len(staged.lines),
            "included_total": format_amount(staged.included_total),
            "total_gross": format_amount(staged.total_gross),
            "discrepancy": None if discrepancy is None else format_amount(discrepancy),
            "size_bytes": len(contents),
        }

    @app.post("/upload")
    async def upload_invoice(request: Request) -> JSONResponse:
        """Receive an invoice PDF, extract it and save the staged draft."""
        form = await request.form()

        file = None
        for key, value in form.items():
            logger.debug("Form field: key=%r, type=%s", key, type(value))
            if hasattr(value, "read"):
                file = value
                break

        if not file:
            return JSONResponse({"status": "error", "message": "No file found in request"}, status_code=400)

        filename = getattr(file, "filename", None) or "invoice.pdf"
        contents = await file.read()

        if not import_lock.acquire(blocking=False):
            return JSONResponse(
                {"status": "error", "message": "Another invoice import is in progress"},
                status_code=409,
            )
        try:
            status_code, body = await run_in_threadpool(_run_import, filename, contents)
        finally:
            import_lock.release()

        if status_code == 200:
            logger.info("Received %s, staged %s", filename, body["draft_filename"])
        return JSONResponse(body, status_code=status_code)

    @app.get("/summary")
    async def summary() -> JSONResponse:
        """Project totals for a quick budget check."""
        loaded = run_load_project()
        if loaded.project is None:
            return JSONResponse({"status": "error", "message": loaded.error}, status_code=404)
        project = loaded.project
        totals = project_totals(project)
        allocated, total_lines = allocation_progress(project)
        return JSONResponse(
            {
                "status": "ok",
                "project": project.name,
                "planned": format_amount(totals.planned),
                "actual": format_amount(totals.actual),
                "variance": format_amount(totals.variance),
                "unallocated": format_amount(totals.unallocated),
                "allocated_lines": allocated,
                "total_lines": total_lines,
            }
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
