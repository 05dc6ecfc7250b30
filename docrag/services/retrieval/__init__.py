"""Retrieval services: similarity search over embedded chunks and
rendering of the results into a prompt context block."""

from docrag.services.retrieval.context_assembler import ContextAssembler
from docrag.services.retrieval.retrieval_service import RetrievalService
from docrag.services.retrieval.vector_search import (
    ManualSearchStrategy,
    NativeSearchStrategy,
    VectorStoreAdapter,
)

__all__ = [
    "ContextAssembler",
    "ManualSearchStrategy",
    "NativeSearchStrategy",
    "RetrievalService",
    "VectorStoreAdapter",
]
