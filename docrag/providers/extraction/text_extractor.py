"""Plain-text extraction: UTF-8 decode, undecodable bytes replaced."""

from __future__ import annotations

from docrag.interfaces.text_extractor import ITextExtractor


class PlainTextExtractor(ITextExtractor):
    """Decodes bytes as UTF-8 (a leading BOM is dropped)."""

    def extract(self, data: bytes) -> str:
        return data.decode("utf-8-sig", errors="replace")

    def get_extractor_name(self) -> str:
        return "plain_text"
