"""Unit tests for ContextAssembler output format and size bounding."""

from __future__ import annotations

from docrag.models.document import Chunk, Document, MediaItem, MediaKind
from docrag.models.retrieval import MediaMatch, RetrievalContext, SearchResult
from docrag.services.retrieval.context_assembler import (
    CONTEXT_FOOTER,
    CONTEXT_HEADER,
    ContextAssembler,
)


def _document(doc_id: int = 1, name: str = "report.pdf") -> Document:
    return Document(id=doc_id, conversation_id=1, file_name=name, media_type="application/pdf")


def _chunk(content: str, index: int = 0, doc_id: int = 1, chunk_id: int = 1) -> Chunk:
    return Chunk(id=chunk_id, document_id=doc_id, chunk_index=index, content=content)


def _media(description: str = "Architecture diagram", kind: MediaKind = MediaKind.IMAGE) -> MediaItem:
    return MediaItem(
        id=50, conversation_id=1, kind=kind, file_name="diagram.png", description=description
    )


class TestFormat:
    def test_exact_layout(self) -> None:
        text = ContextAssembler().format(
            [_chunk("Revenue grew.", index=2)], {1: _document()}
        )

        assert text == (
            "### Context from your documents:\n\n"
            "[Document: report.pdf, Chunk 3]\n"
            "Revenue grew.\n\n"
            "### End of context\n\n"
        )

    def test_chunks_keep_ranked_order(self) -> None:
        documents = {1: _document(1, "a.txt"), 2: _document(2, "b.txt")}
        chunks = [_chunk("second doc", 0, 2, 10), _chunk("first doc", 4, 1, 11)]

        text = ContextAssembler().format(chunks, documents)

        assert text.index("[Document: b.txt, Chunk 1]") < text.index("[Document: a.txt, Chunk 5]")

    def test_unknown_document_label(self) -> None:
        text = ContextAssembler().format([_chunk("orphan", doc_id=99)], {})
        assert "[Document: Unknown document, Chunk 1]" in text

    def test_empty_inputs_give_empty_string(self) -> None:
        assert ContextAssembler().format([], {}) == ""
        assert ContextAssembler().format([], {}, []) == ""

    def test_media_section_with_relevance(self) -> None:
        matches = [
            MediaMatch(media=_media(), similarity=0.823),
            MediaMatch(media=_media("Team photo", MediaKind.VIDEO)),
        ]

        text = ContextAssembler().format([_chunk("Body.")], {1: _document()}, matches)

        assert "### Related media:\n" in text
        assert "- [Image: diagram.png] Architecture diagram (relevance 82%)\n" in text
        assert "- [Video: diagram.png] Team photo\n" in text
        assert text.endswith(CONTEXT_FOOTER)

    def test_media_only_context(self) -> None:
        text = ContextAssembler().format([], {}, [MediaMatch(media=_media(), similarity=0.5)])

        assert text.startswith(CONTEXT_HEADER)
        assert "(relevance 50%)" in text


class TestBudget:
    def test_later_chunks_dropped(self) -> None:
        chunks = [_chunk("a" * 100, i, chunk_id=i) for i in range(10)]
        assembler = ContextAssembler(max_chars=400)

        text = assembler.format(chunks, {1: _document()})

        assert len(text) <= 400
        assert "Chunk 1]" in text
        assert "Chunk 10]" not in text

    def test_overlong_first_chunk_is_truncated(self) -> None:
        assembler = ContextAssembler(max_chars=300)

        text = assembler.format([_chunk("z" * 5000)], {1: _document()})

        assert len(text) <= 300
        assert "zzz..." in text
        assert text.endswith(CONTEXT_FOOTER)

    def test_budget_smaller_than_frame(self) -> None:
        assert ContextAssembler(max_chars=10).format([_chunk("text")], {1: _document()}) == ""


class TestFormatContext:
    def test_renders_retrieval_context(self) -> None:
        document = _document()
        chunk = _chunk("From context.")
        context = RetrievalContext(
            results=[SearchResult(chunk=chunk, similarity=0.9, document=document)],
            documents_by_id={1: document},
        )

        text = ContextAssembler().format_context(context)

        assert "[Document: report.pdf, Chunk 1]\nFrom context." in text

    def test_empty_context(self) -> None:
        assert ContextAssembler().format_context(RetrievalContext()) == ""
