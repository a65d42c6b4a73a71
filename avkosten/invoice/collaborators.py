"""Interfaces of the external collaborators used by the invoice import.

Concrete implementations live in ``avkosten.runtime``; tests substitute
small fakes that return fixed payloads.
"""

from __future__ import annotations

from typing import Protocol


class TextExtractionError(RuntimeError):
    """Raised when a document's text cannot be read."""


class ExtractionServiceUnavailable(RuntimeError):
    """Raised when the structured-extraction service cannot be reached or returns an error."""


class TextExtractor(Protocol):
    def extract_text(self, content: bytes) -> str:
        """Return the document text, pages in order, separated by blank lines."""
        ...


class DocumentUnderstanding(Protocol):
    def extract_invoice(self, instructions: str, message: str) -> str:
        """Return the raw response text for one extraction request."""
        ...
