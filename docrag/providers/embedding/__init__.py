"""Embedding provider implementations.

Two implementations of IEmbeddingProvider, in priority order:
    1. OpenAIEmbeddingProvider — text-embedding-3-large (3072 dims) via
       OpenAI or an Azure OpenAI deployment.  Requires an API key.
    2. SentenceTransformerEmbeddingProvider — paraphrase-MiniLM-L3-v2
       (384 dims), local and free.  Loaded lazily on first use.

The embedder tries them in this order and falls back to the local model
when the remote one fails.
"""

from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)

__all__ = ["OpenAIEmbeddingProvider", "SentenceTransformerEmbeddingProvider"]
