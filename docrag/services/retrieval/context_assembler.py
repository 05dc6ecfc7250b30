"""Renders retrieved chunks and media matches into a prompt context block.

Output layout::

    ### Context from your documents:

    [Document: report.pdf, Chunk 3]
    <chunk text>

    ### Related media:
    - [Image: diagram.png] Architecture diagram of ... (relevance 82%)

    ### End of context

Chunk numbers are 1-based for display.  The whole block is bounded by
``max_chars``: chunks past the budget are dropped (they arrive ranked, so
the least relevant go first), and a single over-long first chunk is cut.
No inputs produce an empty string rather than an empty frame.
"""

from __future__ import annotations

from docrag.models.document import Chunk, Document
from docrag.models.retrieval import MediaMatch, RetrievalContext

CONTEXT_HEADER = "### Context from your documents:\n\n"
CONTEXT_FOOTER = "### End of context\n\n"
MEDIA_HEADER = "### Related media:\n"
_UNKNOWN_DOCUMENT = "Unknown document"
_ELLIPSIS = "..."


class ContextAssembler:
    """Formats retrieval results for the language model prompt."""

    def __init__(self, max_chars: int = 12_000) -> None:
        self._max_chars = max_chars

    def format(
        self,
        chunks: list[Chunk],
        documents_by_id: dict[int, Document],
        media_matches: list[MediaMatch] | None = None,
    ) -> str:
        media_matches = media_matches or []
        if not chunks and not media_matches:
            return ""

        budget = self._max_chars - len(CONTEXT_HEADER) - len(CONTEXT_FOOTER)
        if budget <= 0:
            return ""

        blocks: list[str] = []
        used = 0
        for chunk in chunks:
            document = documents_by_id.get(chunk.document_id)
            name = document.file_name if document else _UNKNOWN_DOCUMENT
            label = f"[Document: {name}, Chunk {chunk.chunk_index + 1}]\n"
            block = f"{label}{chunk.content}\n\n"
            if used + len(block) <= budget:
                blocks.append(block)
                used += len(block)
                continue
            if not blocks:
                room = budget - len(label) - 2 - len(_ELLIPSIS)
                if room > 0:
                    block = f"{label}{chunk.content[:room].rstrip()}{_ELLIPSIS}\n\n"
                    blocks.append(block)
                    used += len(block)
            break

        media_lines: list[str] = []
        media_used = len(MEDIA_HEADER) + 1
        for match in media_matches:
            line = self._format_media(match)
            if used + media_used + len(line) > budget:
                break
            media_lines.append(line)
            media_used += len(line)

        if not blocks and not media_lines:
            return ""

        parts = [CONTEXT_HEADER, *blocks]
        if media_lines:
            parts.extend([MEDIA_HEADER, *media_lines, "\n"])
        parts.append(CONTEXT_FOOTER)
        return "".join(parts)

    def format_context(self, context: RetrievalContext) -> str:
        """Format a :class:`RetrievalContext` returned by the retrieval service."""
        return self.format(context.chunks, context.documents_by_id, context.media_matches)

    @staticmethod
    def _format_media(match: MediaMatch) -> str:
        media = match.media
        line = f"- [{media.kind.value.capitalize()}: {media.file_name}] {media.description.strip()}"
        if match.similarity is not None:
            line += f" (relevance {round(max(match.similarity, 0.0) * 100)}%)"
        return line + "\n"
