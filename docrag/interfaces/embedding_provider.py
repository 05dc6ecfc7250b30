"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap a remote API (OpenAI / Azure OpenAI) or a local
sentence-transformers model.  The :class:`~docrag.services.embedding.embedder.Embedder`
holds an ordered list of these and tries them in priority order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (docrag/providers/embedding/):
#   OpenAIEmbeddingProvider              — remote, text-embedding-3-large (3072 dims)
#   SentenceTransformerEmbeddingProvider — local fallback, MiniLM (384 dims)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the RAG pipeline."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations should
            handle batching internally if the underlying API has a per-call
            limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        docrag.utils.errors.EmbeddingError
            If the embedding call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors this provider produces.

        Example values: ``3072`` (``text-embedding-3-large``), ``384``
        (``paraphrase-MiniLM-L3-v2``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Must not make a network call or load a model; the embedder calls it
        before every attempt.
        """
