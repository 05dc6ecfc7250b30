"""Text extraction service.

Maps a declared media type (and, as a secondary hint, the file extension)
to a :class:`DocumentFormat` once, then dispatches to the extractor
registered for that format.  Extraction never raises to the caller: any
failure becomes :data:`EXTRACTION_ERROR_TEXT` so that chunking and storage
always receive a string.

# ─── DISPATCH TABLE ───────────────────────────────────────────────────
#
#   DocumentFormat.PDF      →  PDFTextExtractor    (PyMuPDF)
#   DocumentFormat.DOCX     →  DocxTextExtractor   (python-docx)
#   DocumentFormat.HTML     →  HTMLTextExtractor   (BeautifulSoup)
#   DocumentFormat.TEXT     →  PlainTextExtractor
#   DocumentFormat.UNKNOWN  →  PlainTextExtractor  (best effort)
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import PurePath

import structlog

from docrag.interfaces.text_extractor import ITextExtractor
from docrag.providers.extraction import (
    DocxTextExtractor,
    HTMLTextExtractor,
    PDFTextExtractor,
    PlainTextExtractor,
)

logger = structlog.get_logger(logger_name=__name__)

EXTRACTION_ERROR_TEXT = "Error extracting text from document."


class DocumentFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    HTML = "html"
    TEXT = "text"
    UNKNOWN = "unknown"


_MEDIA_TYPE_FORMATS: dict[str, DocumentFormat] = {
    "application/pdf": DocumentFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "text/html": DocumentFormat.HTML,
    "application/xhtml+xml": DocumentFormat.HTML,
    "text/plain": DocumentFormat.TEXT,
    "text/markdown": DocumentFormat.TEXT,
    "text/csv": DocumentFormat.TEXT,
    "application/json": DocumentFormat.TEXT,
}

_EXTENSION_FORMATS: dict[str, DocumentFormat] = {
    ".pdf": DocumentFormat.PDF,
    ".docx": DocumentFormat.DOCX,
    ".html": DocumentFormat.HTML,
    ".htm": DocumentFormat.HTML,
    ".txt": DocumentFormat.TEXT,
    ".md": DocumentFormat.TEXT,
    ".csv": DocumentFormat.TEXT,
    ".json": DocumentFormat.TEXT,
}


def resolve_document_format(media_type: str, file_name: str | None = None) -> DocumentFormat:
    """Resolve a MIME type (parameters such as ``; charset=`` ignored) to a format.

    The file extension is consulted only when the MIME type is unknown.
    Any other ``text/*`` type is treated as plain text.
    """
    base_type = (media_type or "").split(";", 1)[0].strip().lower()
    fmt = _MEDIA_TYPE_FORMATS.get(base_type)
    if fmt is not None:
        return fmt

    if file_name:
        fmt = _EXTENSION_FORMATS.get(PurePath(file_name).suffix.lower())
        if fmt is not None:
            return fmt

    if base_type.startswith("text/"):
        return DocumentFormat.TEXT
    return DocumentFormat.UNKNOWN


def default_extractors() -> dict[DocumentFormat, ITextExtractor]:
    """Build the standard format → extractor table."""
    plain = PlainTextExtractor()
    return {
        DocumentFormat.PDF: PDFTextExtractor(),
        DocumentFormat.DOCX: DocxTextExtractor(),
        DocumentFormat.HTML: HTMLTextExtractor(),
        DocumentFormat.TEXT: plain,
        DocumentFormat.UNKNOWN: plain,
    }


class ExtractionService:
    """Converts uploaded bytes into plain text.

    Parameters
    ----------
    extractors:
        Format → extractor table.  Formats missing from the table use the
        ``UNKNOWN`` entry.  Defaults to :func:`default_extractors`.
    """

    def __init__(self, extractors: dict[DocumentFormat, ITextExtractor] | None = None) -> None:
        self._extractors = extractors if extractors is not None else default_extractors()
        if DocumentFormat.UNKNOWN not in self._extractors:
            self._extractors[DocumentFormat.UNKNOWN] = PlainTextExtractor()

    async def extract(self, data: bytes, media_type: str, file_name: str | None = None) -> str:
        """Return the text in *data*, or :data:`EXTRACTION_ERROR_TEXT` on failure."""
        fmt = resolve_document_format(media_type, file_name)
        extractor = self._extractors.get(fmt, self._extractors[DocumentFormat.UNKNOWN])

        try:
            text = await asyncio.to_thread(extractor.extract, data)
        except Exception as exc:
            logger.warning(
                "extraction_failed",
                format=fmt.value,
                media_type=media_type,
                file_name=file_name,
                extractor=extractor.get_extractor_name(),
                error=str(exc),
            )
            return EXTRACTION_ERROR_TEXT

        logger.info(
            "text_extracted",
            format=fmt.value,
            extractor=extractor.get_extractor_name(),
            byte_size=len(data),
            text_length=len(text),
        )
        return text
