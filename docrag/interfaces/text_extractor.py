"""Abstract base class for format-specific text extractors.

One implementation per document format (PDF, DOCX, HTML, plain text).
Extractors may raise; the extraction service converts any failure into
placeholder text so downstream stages always receive a string.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ITextExtractor(ABC):
    """Contract for converting raw file bytes into plain text."""

    @abstractmethod
    def extract(self, data: bytes) -> str:
        """Return the plain text contained in *data*.

        Implementations are synchronous; the extraction service runs them
        in a worker thread.

        Raises
        ------
        docrag.utils.errors.ExtractionError
            If the bytes cannot be parsed as this format.
        """

    @abstractmethod
    def get_extractor_name(self) -> str:
        """Return a short identifier such as ``"pymupdf"``."""
