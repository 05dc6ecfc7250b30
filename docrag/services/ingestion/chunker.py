"""Text chunking with overlapping windows and paragraph boundary preservation.

Splits extracted document text into segments sized for embedding models.
All sizes are in characters.

The chunking strategy has two key design goals:

1. **Paragraph-preserving** -- Chunk boundaries align with paragraph breaks
   (blank lines) so chunks rarely start or end mid-thought.

2. **Overlapping windows** -- Each chunk after the first begins with the
   tail of its predecessor, cut at a sentence boundary where one exists, so
   a concept spanning a boundary is captured whole in at least one chunk.

Documents longer than ``large_document_threshold`` characters are handled
differently to bound the number of chunks: they are first carved into
sections at heading-like lines; if the document has too few headings, a
fixed set of windows (lead, tail and evenly spaced interior windows) is
sampled instead.  Sampling drops text by design and the returned
:class:`ChunkingPlan` says so.
"""

from __future__ import annotations

import re
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field

from docrag.config.settings import Settings

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+")
_PARAGRAPH_JOINER = "\n\n"
_SENTENCE_JOINER = " "

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {"Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "No", "vs", "etc", "e.g", "i.e", "Fig"}
)

_HEADING_PATTERNS: list[re.Pattern[str]] = [
    # Markdown headers: "# Title", "### Sub-section"
    re.compile(r"^#{1,6}[ \t]+\S.*$", re.MULTILINE),
    # Numbered sections: "1. Scope", "2.3 Results"
    re.compile(r"^\d+(?:\.\d+)*\.?[ \t]+[A-Z].{0,120}$", re.MULTILINE),
    # ALL-CAPS title lines: "TERMS AND CONDITIONS"
    re.compile(r"^[A-Z][A-Z0-9 \t,:&'()-]{3,80}$", re.MULTILINE),
    # Common section names
    re.compile(
        r"^(?:Abstract|Introduction|Background|Overview|Summary|Methods?|Methodology|"
        r"Results|Discussion|Conclusions?|References|Appendix|Chapter[ \t]+\w+)\b.{0,80}$",
        re.MULTILINE | re.IGNORECASE,
    ),
]


class ChunkingStrategy(str, Enum):
    STANDARD = "standard"
    STRUCTURAL = "structural"
    # Lossy: only sampled windows of the document are chunked.
    SAMPLED = "sampled"


class ChunkingPlan(BaseModel):
    """The chunks of one document and how they were produced."""

    model_config = ConfigDict(frozen=True)

    chunks: list[str] = Field(default_factory=list)
    strategy: ChunkingStrategy = ChunkingStrategy.STANDARD
    chunk_size: int
    chunk_overlap: int
    source_length: int = 0

    @property
    def is_lossy(self) -> bool:
        return self.strategy is ChunkingStrategy.SAMPLED


class TextChunker:
    """Splits text into overlapping chunks preserving paragraph boundaries.

    The core algorithm (:meth:`split`) works in two phases:

    1. Split text into paragraphs on blank lines; paragraphs too long to fit
       next to an overlap tail are broken into their sentences.
    2. Accumulate paragraphs (or the sentences of a long one) into a buffer
       until the next unit would push it past ``target_size``, then close
       the chunk and seed the next buffer with an overlap tail of the
       closed one.

    Because every unit is at most ``target_size - overlap_size`` long and a
    tail is at most ``overlap_size`` long, no chunk exceeds
    ``target_size + 2`` (the paragraph joiner).

    Parameters
    ----------
    chunk_size, chunk_overlap:
        Target size and overlap for ordinary documents.
    large_document_threshold:
        Documents longer than this use the large-document strategies.
    large_chunk_size, large_chunk_overlap:
        Target size and overlap for large documents.
    large_max_section_size:
        Structural sections up to this size become a single chunk.
    min_structural_boundaries:
        Fewer heading matches than this abandons structural segmentation.
    sample_window_size, sample_interior_windows:
        Window length and number of interior windows for sampling.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        large_document_threshold: int = 100_000,
        large_chunk_size: int = 500,
        large_chunk_overlap: int = 100,
        large_max_section_size: int = 2000,
        min_structural_boundaries: int = 3,
        sample_window_size: int = 10_000,
        sample_interior_windows: int = 5,
    ) -> None:
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._large_threshold = large_document_threshold
        self._large_chunk_size = large_chunk_size
        self._large_chunk_overlap = large_chunk_overlap
        self._large_max_section_size = large_max_section_size
        self._min_boundaries = min_structural_boundaries
        self._window_size = sample_window_size
        self._interior_windows = sample_interior_windows

    @classmethod
    def from_settings(cls, settings: Settings) -> TextChunker:
        return cls(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            large_document_threshold=settings.large_document_threshold,
            large_chunk_size=settings.large_chunk_size,
            large_chunk_overlap=settings.large_chunk_overlap,
            large_max_section_size=settings.large_max_section_size,
            min_structural_boundaries=settings.min_structural_boundaries,
            sample_window_size=settings.sample_window_size,
            sample_interior_windows=settings.sample_interior_windows,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_document(self, text: str) -> ChunkingPlan:
        """Chunk a whole document, choosing a strategy by its length.

        Parameters
        ----------
        text:
            The full extracted text.

        Returns
        -------
        ChunkingPlan
            The chunks plus the strategy and sizes used.  Empty input
            yields a plan with no chunks.
        """
        length = len(text)
        if length <= self._large_threshold:
            plan = ChunkingPlan(
                chunks=self.split(text, self._chunk_size, self._chunk_overlap),
                strategy=ChunkingStrategy.STANDARD,
                chunk_size=self._chunk_size,
                chunk_overlap=self._chunk_overlap,
                source_length=length,
            )
        else:
            sections = self._structural_sections(text)
            if sections is not None:
                chunks: list[str] = []
                for section in sections:
                    if len(section) <= self._large_max_section_size:
                        chunks.append(section)
                    else:
                        chunks.extend(
                            self.split(section, self._large_chunk_size, self._large_chunk_overlap)
                        )
                strategy = ChunkingStrategy.STRUCTURAL
            else:
                chunks = []
                for window in self._sample_windows(text):
                    chunks.extend(
                        self.split(window, self._large_chunk_size, self._large_chunk_overlap)
                    )
                strategy = ChunkingStrategy.SAMPLED

            plan = ChunkingPlan(
                chunks=chunks,
                strategy=strategy,
                chunk_size=self._large_chunk_size,
                chunk_overlap=self._large_chunk_overlap,
                source_length=length,
            )

        logger.info(
            "document_chunked",
            strategy=plan.strategy.value,
            num_chunks=len(plan.chunks),
            source_length=length,
            lossy=plan.is_lossy,
        )
        return plan

    def split(self, text: str, target_size: int, overlap_size: int) -> list[str]:
        """Split *text* into overlapping chunks of at most ``target_size + 2`` chars.

        Raises
        ------
        ValueError
            If the sizes do not satisfy ``0 <= overlap_size < target_size``.
        """
        if target_size <= 0 or overlap_size < 0 or overlap_size >= target_size:
            raise ValueError(
                f"Invalid chunk sizes: target={target_size}, overlap={overlap_size}"
            )
        if not text or not text.strip():
            return []

        max_unit = target_size - overlap_size
        units: list[tuple[str, str]] = []
        for para in self._split_paragraphs(text):
            if len(para) > max_unit:
                parts = self._paragraph_units(para, max_unit)
                units.append((parts[0], _PARAGRAPH_JOINER))
                units.extend((part, _SENTENCE_JOINER) for part in parts[1:])
            else:
                units.append((para, _PARAGRAPH_JOINER))

        chunks: list[str] = []
        buffer = ""
        for unit, joiner in units:
            if buffer and len(buffer) + len(joiner) + len(unit) > target_size:
                chunks.append(buffer)
                tail = self._overlap_tail(buffer, overlap_size)
                buffer = tail + joiner + unit if tail else unit
            else:
                buffer = buffer + joiner + unit if buffer else unit

        if buffer.strip():
            chunks.append(buffer)

        return [c for c in chunks if c.strip()]

    # ------------------------------------------------------------------
    # Paragraph / sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = _PARAGRAPH_BREAK.split(text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text).
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

        sentences: list[str] = []
        last = 0
        for match in re.finditer(r"[.!?](?:\s|$)", masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)

        return sentences if sentences else [text]

    def _paragraph_units(self, paragraph: str, max_len: int) -> list[str]:
        """Break a long paragraph into sentences of at most *max_len* characters.

        A sentence longer than *max_len* is broken at whitespace, and a
        single word longer than *max_len* is cut hard.
        """
        units: list[str] = []
        for sentence in self._split_sentences(paragraph):
            if len(sentence) <= max_len:
                units.append(sentence)
            else:
                units.extend(self._split_on_whitespace(sentence, max_len))
        return units

    @staticmethod
    def _split_on_whitespace(text: str, max_len: int) -> list[str]:
        pieces: list[str] = []
        current = ""
        for word in text.split():
            while len(word) > max_len:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(word[:max_len])
                word = word[max_len:]
            if not word:
                continue
            if current and len(current) + 1 + len(word) > max_len:
                pieces.append(current)
                current = word
            else:
                current = f"{current} {word}" if current else word
        if current:
            pieces.append(current)
        return pieces

    @staticmethod
    def _overlap_tail(chunk: str, overlap_size: int) -> str:
        """Return the suffix of *chunk* that seeds the next chunk.

        Prefers the longest suffix of at most *overlap_size* characters that
        starts right after a sentence boundary; otherwise the raw last
        *overlap_size* characters, or the whole chunk when it is shorter.
        """
        if overlap_size <= 0:
            return ""
        if len(chunk) <= overlap_size:
            return chunk

        earliest = len(chunk) - overlap_size
        for match in _SENTENCE_BOUNDARY.finditer(chunk, max(0, earliest - 2)):
            start = match.end()
            if earliest <= start < len(chunk):
                return chunk[start:]
        return chunk[-overlap_size:].lstrip()

    # ------------------------------------------------------------------
    # Large-document strategies
    # ------------------------------------------------------------------

    def _structural_sections(self, text: str) -> list[str] | None:
        """Carve *text* at heading-like lines, or ``None`` if there are too few."""
        boundaries: set[int] = set()
        for pattern in _HEADING_PATTERNS:
            boundaries.update(m.start() for m in pattern.finditer(text))

        if len(boundaries) < self._min_boundaries:
            logger.debug("structural_segmentation_skipped", boundaries=len(boundaries))
            return None

        cuts = sorted(boundaries)
        if cuts[0] != 0:
            cuts.insert(0, 0)
        cuts.append(len(text))

        sections = [text[start:end].strip() for start, end in zip(cuts, cuts[1:])]
        return [s for s in sections if s]

    def _sample_windows(self, text: str) -> list[str]:
        """Return the lead window, interior windows and tail window of *text*."""
        length = len(text)
        window = self._window_size
        if length <= window * 2:
            return [text]

        windows = [text[:window]]
        span_start = int(length * 0.3)
        span_end = int(length * 0.7)
        count = max(self._interior_windows, 0)
        if count:
            step = (span_end - span_start) / count
            for i in range(count):
                start = span_start + int(i * step)
                end = min(start + min(window, max(int(step), 1)), length)
                windows.append(text[start:end])
        windows.append(text[-window:])

        logger.info(
            "document_sampled",
            source_length=length,
            windows=len(windows),
            sampled_chars=sum(len(w) for w in windows),
        )
        return windows
