"""SQLite-backed document store.

Persists documents, chunks and media items to a local SQLite database at
``data/documents.db``.  Uses ``aiosqlite`` for async I/O.  Embeddings are
stored as JSON text in the ``chunks.embedding`` column; a chunk counts as
embedded only when that column holds a non-empty vector.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import (
    Chunk,
    Document,
    DocumentMetadata,
    MediaItem,
    MediaKind,
    utc_now,
)
from docrag.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id  INTEGER NOT NULL,
    user_id          INTEGER,
    file_name        TEXT    NOT NULL,
    media_type       TEXT    NOT NULL,
    byte_size        INTEGER NOT NULL DEFAULT 0,
    content          TEXT    NOT NULL DEFAULT '',
    metadata         TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id  INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index  INTEGER NOT NULL,
    content      TEXT    NOT NULL,
    embedding    TEXT,
    created_at   TEXT    NOT NULL,
    UNIQUE(document_id, chunk_index)
);
""",
    """\
CREATE TABLE IF NOT EXISTS media_items (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id  INTEGER NOT NULL,
    user_id          INTEGER,
    kind             TEXT    NOT NULL,
    file_name        TEXT    NOT NULL,
    description      TEXT    NOT NULL DEFAULT '',
    embedding        TEXT,
    created_at       TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_conversation ON documents(conversation_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_media_conversation ON media_items(conversation_id);",
]

_EMBEDDED = "embedding IS NOT NULL AND embedding != '' AND embedding != '[]'"


def _placeholders(values: list[Any]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed persistence for documents, chunks and media items."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Document store error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(
        self,
        conversation_id: int,
        file_name: str,
        media_type: str,
        byte_size: int,
        content: str,
        user_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        meta = self._merge_metadata(DocumentMetadata(media_type=media_type), metadata or {})
        created_at = utc_now()
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO documents (conversation_id, user_id, file_name, media_type, "
                "byte_size, content, metadata, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    conversation_id,
                    user_id,
                    file_name,
                    media_type,
                    byte_size,
                    content,
                    meta.model_dump_json(),
                    created_at.isoformat(),
                ),
            )
            document_id = cursor.lastrowid
            await db.commit()

        logger.info(
            "document_created",
            document_id=document_id,
            conversation_id=conversation_id,
            file_name=file_name,
            content_length=len(content),
        )
        return Document(
            id=document_id,
            conversation_id=conversation_id,
            user_id=user_id,
            file_name=file_name,
            media_type=media_type,
            byte_size=byte_size,
            content=content,
            metadata=meta,
            created_at=created_at,
        )

    async def get_document(self, document_id: int) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return self._row_to_document(row) if row else None

    async def get_documents_by_conversation(self, conversation_id: int) -> list[Document]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM documents WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_document(r) for r in rows]

    async def update_document_metadata(
        self, document_id: int, updates: dict[str, Any]
    ) -> Document | None:
        """Merge *updates* into the stored metadata inside one write transaction."""
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
            if row is None:
                await db.rollback()
                return None
            document = self._row_to_document(row)
            merged = self._merge_metadata(document.metadata, updates)
            await db.execute(
                "UPDATE documents SET metadata = ? WHERE id = ?",
                (merged.model_dump_json(), document_id),
            )
            await db.commit()

        return document.model_copy(update={"metadata": merged})

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def create_chunk(self, document_id: int, chunk_index: int, content: str) -> Chunk:
        created_at = utc_now()
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO chunks (document_id, chunk_index, content, created_at) "
                "VALUES (?, ?, ?, ?)",
                (document_id, chunk_index, content, created_at.isoformat()),
            )
            chunk_id = cursor.lastrowid
            await db.commit()
        return Chunk(
            id=chunk_id,
            document_id=document_id,
            chunk_index=chunk_index,
            content=content,
            created_at=created_at,
        )

    async def get_chunks_by_document(self, document_id: int) -> list[Chunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def delete_chunks_by_document(self, document_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            deleted = cursor.rowcount
            await db.commit()
        return deleted

    async def update_chunk_embedding(self, chunk_id: int, embedding: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE chunks SET embedding = ? WHERE id = ?", (embedding, chunk_id)
            )
            updated = cursor.rowcount
            await db.commit()
        if updated == 0:
            raise PersistenceError(
                message=f"Chunk {chunk_id} does not exist",
                provider_name=self.get_provider_name(),
            )

    async def count_embedded_chunks(self, document_ids: list[int]) -> int:
        if not document_ids:
            return 0
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT COUNT(*) FROM chunks WHERE document_id IN ({_placeholders(document_ids)}) "
                f"AND {_EMBEDDED}",
                tuple(document_ids),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def get_embedded_chunks(self, document_ids: list[int]) -> list[Chunk]:
        if not document_ids:
            return []
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT * FROM chunks WHERE document_id IN ({_placeholders(document_ids)}) "
                f"AND {_EMBEDDED} ORDER BY document_id, chunk_index",
                tuple(document_ids),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def sample_embedded_chunks(self, document_id: int, limit: int) -> list[Chunk]:
        if limit <= 0:
            return []
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT * FROM chunks WHERE document_id = ? AND {_EMBEDDED} "
                "ORDER BY RANDOM() LIMIT ?",
                (document_id, limit),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def create_media_item(
        self,
        conversation_id: int,
        kind: MediaKind,
        file_name: str,
        description: str,
        embedding: str | None = None,
        user_id: int | None = None,
    ) -> MediaItem:
        created_at = utc_now()
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO media_items (conversation_id, user_id, kind, file_name, "
                "description, embedding, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    conversation_id,
                    user_id,
                    MediaKind(kind).value,
                    file_name,
                    description,
                    embedding,
                    created_at.isoformat(),
                ),
            )
            media_id = cursor.lastrowid
            await db.commit()
        return MediaItem(
            id=media_id,
            conversation_id=conversation_id,
            user_id=user_id,
            kind=MediaKind(kind),
            file_name=file_name,
            description=description,
            embedding=embedding,
            created_at=created_at,
        )

    async def get_media_by_conversation(self, conversation_id: int) -> list[MediaItem]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM media_items WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        return [
            MediaItem(
                id=r["id"],
                conversation_id=r["conversation_id"],
                user_id=r["user_id"],
                kind=MediaKind(r["kind"]),
                file_name=r["file_name"],
                description=r["description"],
                embedding=r["embedding"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_document_store"

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _merge_metadata(current: DocumentMetadata, updates: dict[str, Any]) -> DocumentMetadata:
        """Overlay *updates* on *current*; unknown keys land in ``extra``."""
        data = current.model_dump()
        known = DocumentMetadata.model_fields
        extras = {k: v for k, v in updates.items() if k not in known}
        data.update({k: v for k, v in updates.items() if k in known})
        if extras:
            data["extra"] = {**data.get("extra", {}), **extras}
        return DocumentMetadata.model_validate(data)

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            id=row["id"],
            conversation_id=row["conversation_id"],
            user_id=row["user_id"],
            file_name=row["file_name"],
            media_type=row["media_type"],
            byte_size=row["byte_size"],
            content=row["content"],
            metadata=DocumentMetadata.model_validate(json.loads(row["metadata"] or "{}")),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
        return Chunk(
            id=row["id"],
            document_id=row["document_id"],
            chunk_index=row["chunk_index"],
            content=row["content"],
            embedding=row["embedding"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
