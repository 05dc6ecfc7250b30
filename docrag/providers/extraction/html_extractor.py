"""HTML text extraction via BeautifulSoup.

``script``, ``style`` and ``noscript`` elements are removed before the tree
is flattened, so inline JavaScript and CSS never reach the chunker.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from docrag.interfaces.text_extractor import ITextExtractor

_NON_CONTENT_TAGS = ("script", "style", "noscript")
_BLANK_RUN = re.compile(r"\n\s*\n+")
_SPACE_RUN = re.compile(r"[ \t\r\f\v]+")


class HTMLTextExtractor(ITextExtractor):
    """Flattens an HTML document to plain text."""

    def extract(self, data: bytes) -> str:
        soup = BeautifulSoup(data, "html.parser")
        for tag in soup(_NON_CONTENT_TAGS):
            tag.decompose()

        text = soup.get_text(separator="\n")
        lines = [_SPACE_RUN.sub(" ", line).strip() for line in text.split("\n")]
        return _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()

    def get_extractor_name(self) -> str:
        return "beautifulsoup"
