"""Embedding services: the bounded embedding cache, provider health state
and the failover embedder that ties them to the embedding providers."""

from docrag.services.embedding.cache import EmbeddingCache
from docrag.services.embedding.embedder import Embedder
from docrag.services.embedding.health import ProviderHealth

__all__ = ["Embedder", "EmbeddingCache", "ProviderHealth"]
