"""Document store providers.

SQLiteDocumentStore persists documents, chunks (with serialized embeddings)
and media descriptions in a local SQLite database.
"""

from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
