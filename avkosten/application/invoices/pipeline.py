"""Invoice ingestion state machine.

One ``InvoiceImport`` drives a single import attempt:

    idle -> reading -> parsing -> preview -> committed
                 \\         \\         \\
                  +---------+---------+--> error

``error`` and ``committed`` are left through ``reset()``; ``cancel()``
discards staged data from any state. Nothing touches the project until
``commit()`` returns the new aggregate.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date
from typing import Literal

from avkosten.domain.commands import AppendReceipt, apply_command
from avkosten.domain.errors import ValidationError
from avkosten.domain.project import PROVENANCE_PDF_IMPORT, Project, Receipt, SourceDocument, new_id
from avkosten.domain.receipts import build_line
from avkosten.domain.snapshot import IMPORT_NOTE
from avkosten.invoice.collaborators import (
    DocumentUnderstanding,
    ExtractionServiceUnavailable,
    TextExtractionError,
    TextExtractor,
)
from avkosten.invoice.contract import (
    DEFAULT_MAX_INPUT_CHARS,
    EXTRACTION_INSTRUCTIONS,
    build_user_message,
    parse_invoice_payload,
)
from avkosten.invoice.staging import StagedImport
from avkosten.runtime import get_logger

logger = get_logger(__name__)

ImportState = Literal["idle", "reading", "parsing", "preview", "committed", "error"]

DEFAULT_MIN_TEXT_LENGTH = 20
PDF_MAGIC = b"%PDF"


class ImportInProgressError(RuntimeError):
    """Raised when an import is started while another one is in flight or awaiting commit."""


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is not allowed in the current import state."""


def is_pdf_document(filename: str, content: bytes) -> bool:
    """Accept only PDF documents: ``.pdf`` extension and the PDF header."""
    return filename.lower().endswith(".pdf") and content[:1024].lstrip().startswith(PDF_MAGIC)


def commit_staged_import(
    project: Project,
    staged: StagedImport,
    document: SourceDocument | None,
) -> tuple[Project, str]:
    """
    Append the committable rows of ``staged`` as one new imported receipt.

    Returns:
        Tuple of (updated project, new receipt id).

    Raises:
        ValidationError: If the supplier is empty or no row is committable.
    """
    rows = staged.committable_lines()
    if not staged.supplier.strip():
        raise ValidationError("Supplier must not be empty")
    if not rows:
        raise ValidationError("No included line with a description to commit")

    receipt = Receipt(
        id=new_id(),
        supplier=staged.supplier.strip(),
        date=staged.invoice_date,
        number=staged.invoice_number.strip(),
        total_gross=staged.total_gross,
        note=IMPORT_NOTE,
        document=document,
        provenance=PROVENANCE_PDF_IMPORT,
    )
    lines = tuple(build_line(receipt.id, row.description, row.quantity, row.unit_price) for row in rows)
    updated = apply_command(project, AppendReceipt(receipt=receipt, lines=lines))
    logger.info("Committed imported receipt %s with %d line(s)", receipt.id, len(lines))
    return updated, receipt.id


class InvoiceImport:
    """Single-attempt invoice import with external text and structured extraction."""

    def __init__(
        self,
        text_extractor: TextExtractor,
        understanding: DocumentUnderstanding,
        min_text_length: int = DEFAULT_MIN_TEXT_LENGTH,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._text_extractor = text_extractor
        self._understanding = understanding
        self._min_text_length = min_text_length
        self._max_input_chars = max_input_chars
        self._today = today
        self._lock = threading.Lock()

        self.state: ImportState = "idle"
        self.staged: StagedImport | None = None
        self.document: SourceDocument | None = None
        self.text: str | None = None
        self.error: str | None = None
        self.receipt_id: str | None = None

    def _transition(self, state: ImportState) -> None:
        logger.info("Invoice import: %s -> %s", self.state, state)
        self.state = state

    def _fail(self, reason: str) -> ImportState:
        self.error = reason
        self.staged = None
        logger.warning("Invoice import failed: %s", reason)
        self._transition("error")
        return self.state

    def run(self, filename: str, content: bytes) -> ImportState:
        """
        Run one document from ``idle`` up to ``preview`` (or ``error``).

        Returns:
            The resulting state, ``"preview"`` or ``"error"``.

        Raises:
            ImportInProgressError: If an attempt is in flight or awaiting commit.
            InvalidTransitionError: If the last attempt ended and was not reset.
        """
        if not self._lock.acquire(blocking=False):
            raise ImportInProgressError("Another invoice import is in progress")
        try:
            if self.state in ("reading", "parsing", "preview"):
                raise ImportInProgressError(f"An invoice import is already in state '{self.state}'")
            if self.state != "idle":
                raise InvalidTransitionError(f"Cannot start an import from state '{self.state}'; reset first")

            self.error = None
            self.receipt_id = None
            if not is_pdf_document(filename, content):
                return self._fail(f"Not a PDF document: {filename}")

            self.document = SourceDocument(filename=filename, content=content)
            self._transition("reading")
            try:
                text = self._text_extractor.extract_text(content)
            except TextExtractionError as exc:
                return self._fail(f"Document could not be read: {exc}")
            except Exception as exc:
                logger.exception("Text extraction crashed for %s", filename)
                return self._fail(f"Document could not be read: {exc}")
            if len(text.strip()) < self._min_text_length:
                return self._fail(
                    "Document contains no readable text (scanned image?). Enter the receipt manually instead."
                )
            self.text = text

            self._transition("parsing")
            try:
                raw = self._understanding.extract_invoice(
                    EXTRACTION_INSTRUCTIONS,
                    build_user_message(text, self._max_input_chars),
                )
                extracted = parse_invoice_payload(raw)
                staged = StagedImport.from_extraction(extracted, today=self._today())
            except ExtractionServiceUnavailable as exc:
                return self._fail(f"Extraction service unavailable: {exc}")
            except ValueError as exc:
                return self._fail(f"Extraction response could not be parsed: {exc}")
            except Exception as exc:
                logger.exception("Invoice extraction crashed for %s", filename)
                return self._fail(f"Extraction failed: {exc}")

            self.staged = staged
            logger.debug("Staged %d candidate line(s) from %s", len(self.staged.lines), filename)
            self._transition("preview")
            return self.state
        finally:
            self._lock.release()

    def resume(self, staged: StagedImport, document: SourceDocument | None) -> None:
        """Enter ``preview`` directly with a previously saved draft."""
        if self.state != "idle":
            raise InvalidTransitionError(f"Cannot resume a draft from state '{self.state}'")
        self.staged = staged
        self.document = document
        self.error = None
        self._transition("preview")

    def commit(self, project: Project) -> Project:
        """
        Append the included rows as one new receipt and return the new project.

        Raises:
            InvalidTransitionError: If not in ``preview``.
            ValidationError: If the supplier is empty or no row is committable;
                the import stays in ``preview``.
        """
        if self.state != "preview" or self.staged is None:
            raise InvalidTransitionError(f"Cannot commit from state '{self.state}'")
        updated, receipt_id = commit_staged_import(project, self.staged, self.document)
        self.receipt_id = receipt_id
        self.staged = None
        self._transition("committed")
        return updated

    def cancel(self) -> None:
        """Discard staged data and return to ``idle``."""
        self.staged = None
        self.document = None
        self.text = None
        self.error = None
        if self.state != "idle":
            self._transition("idle")

    def reset(self) -> None:
        """Leave a finished attempt (``error`` or ``committed``) for a new one."""
        self.cancel()
        self.receipt_id = None
