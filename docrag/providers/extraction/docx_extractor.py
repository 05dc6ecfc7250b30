"""DOCX text extraction via python-docx.

python-docx reads the XML inside the DOCX zip archive and exposes paragraph
text.  Formatting is stripped; table cell text is appended after the body
paragraphs.
"""

from __future__ import annotations

import io

import structlog
from docx import Document

from docrag.interfaces.text_extractor import ITextExtractor
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class DocxTextExtractor(ITextExtractor):
    """Extracts paragraph and table text from a Word document."""

    def extract(self, data: bytes) -> str:
        try:
            doc = Document(io.BytesIO(data))
        except Exception as exc:
            raise ExtractionError(
                message=f"Failed to open DOCX: {exc}",
                provider_name=self.get_extractor_name(),
            ) from exc

        parts = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        logger.debug("docx_extracted", paragraphs=len(doc.paragraphs), tables=len(doc.tables))
        return "\n\n".join(parts)

    def get_extractor_name(self) -> str:
        return "python_docx"
