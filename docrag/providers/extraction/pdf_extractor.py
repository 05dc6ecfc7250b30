"""PDF text extraction via PyMuPDF.

Reads the PDF from memory, extracts text page by page and joins non-empty
pages with a blank line so the chunker sees page breaks as paragraph
boundaries.  Scanned PDFs without a text layer yield an empty string.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from docrag.interfaces.text_extractor import ITextExtractor
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFTextExtractor(ITextExtractor):
    """Extracts the text layer of a PDF document."""

    def extract(self, data: bytes) -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Failed to open PDF: {exc}",
                provider_name=self.get_extractor_name(),
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        logger.debug("pdf_extracted", pages=len(pages))
        return "\n\n".join(pages)

    def get_extractor_name(self) -> str:
        return "pymupdf"
