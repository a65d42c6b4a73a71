"""Text extraction from PDF invoices (pypdf)."""

from __future__ import annotations

import io
import zlib

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from avkosten.invoice.collaborators import TextExtractionError
from avkosten.runtime.logging import get_logger

logger = get_logger(__name__)

PAGE_SEPARATOR = "\n\n"


class PdfTextExtractor:
    """Read the text layer of a PDF, pages in order."""

    def extract_text(self, content: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(content))
            pages = [(page.extract_text() or "").strip() for page in reader.pages]
        except (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError, zlib.error) as exc:
            logger.error("Failed to read PDF: %s", exc)
            raise TextExtractionError(f"Unreadable PDF: {exc}") from exc

        logger.debug("Extracted text from %d page(s)", len(pages))
        return PAGE_SEPARATOR.join(pages)
