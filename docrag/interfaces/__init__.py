"""Public interface definitions for the pipeline's external collaborators.

Every backend the ingestion and retrieval services touch (embedding models,
caches, text extractors, the document store, the vector index and the job
queue) is reached only through the abstract base classes in this package.
Concrete adapters live in ``docrag/providers/`` and are wired together in
``docrag/main.py``, so tests can inject fakes without patching imports.

CONCRETE PROVIDER MAP:
    Interface            →  Concrete implementations (in docrag/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider   →  OpenAIEmbeddingProvider,
                            SentenceTransformerEmbeddingProvider
    ICacheProvider       →  MemoryCacheProvider
    ITextExtractor       →  PDFTextExtractor, DocxTextExtractor,
                            HTMLTextExtractor, PlainTextExtractor
    IDocumentStore       →  SQLiteDocumentStore
    IVectorCollection    →  ChromaDBCollection
    IJobQueue            →  SQLiteJobQueue
"""

from docrag.interfaces.cache_provider import ICacheProvider
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.job_queue import IJobQueue
from docrag.interfaces.text_extractor import ITextExtractor
from docrag.interfaces.vector_collection import IVectorCollection

__all__ = [
    "ICacheProvider",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IJobQueue",
    "ITextExtractor",
    "IVectorCollection",
]
