"""Vector store providers.

ChromaDBCollection mirrors embedded chunks into a local ChromaDB collection
whose HNSW index (cosine space) serves native nearest-neighbour queries.
"""

from docrag.providers.vector_store.chromadb_collection import ChromaDBCollection

__all__ = ["ChromaDBCollection"]
