"""Format-specific text extractors.

Each class implements ITextExtractor for one document format:
    PDFTextExtractor   — PyMuPDF (``fitz``), page text joined by blank lines
    DocxTextExtractor  — python-docx, non-empty paragraphs
    HTMLTextExtractor  — BeautifulSoup, script/style removed
    PlainTextExtractor — UTF-8 decode with replacement characters
"""

from docrag.providers.extraction.docx_extractor import DocxTextExtractor
from docrag.providers.extraction.html_extractor import HTMLTextExtractor
from docrag.providers.extraction.pdf_extractor import PDFTextExtractor
from docrag.providers.extraction.text_extractor import PlainTextExtractor

__all__ = [
    "DocxTextExtractor",
    "HTMLTextExtractor",
    "PDFTextExtractor",
    "PlainTextExtractor",
]
