"""SQLite-backed document and subject repository.

Persists document records and their derived subjects to a local SQLite
database at ``data/documents.db``.  Uses ``aiosqlite`` for async I/O.
Chunk rows and vectors live in the chunk store, not here.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.document_repository import IDocumentRepository
from src.models.document import Document, DocumentStatus
from src.models.subject import ImportanceLabel, Subject

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id                    TEXT    PRIMARY KEY,
    workspace_id          TEXT    NOT NULL DEFAULT '',
    filename              TEXT    NOT NULL DEFAULT '',
    mime_type             TEXT    NOT NULL DEFAULT '',
    language              TEXT    NOT NULL DEFAULT 'unknown',
    char_length           INTEGER NOT NULL DEFAULT 0,
    status                TEXT    NOT NULL,
    error_message         TEXT,
    chunk_count           INTEGER NOT NULL DEFAULT 0,
    has_non_latin_script  INTEGER NOT NULL DEFAULT 0,
    embedding_duration_s  REAL    NOT NULL DEFAULT 0,
    created_at            TEXT    NOT NULL,
    updated_at            TEXT    NOT NULL
);
"""

_CREATE_SUBJECTS_SQL = """\
CREATE TABLE IF NOT EXISTS subjects (
    id                TEXT    PRIMARY KEY,
    document_id       TEXT    NOT NULL,
    position          INTEGER NOT NULL,
    name              TEXT    NOT NULL,
    importance        TEXT    NOT NULL,
    importance_score  INTEGER NOT NULL DEFAULT 1,
    source_chunk_ids  TEXT    NOT NULL DEFAULT '[]',
    FOREIGN KEY (document_id) REFERENCES documents(id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_workspace ON documents(workspace_id);",
    "CREATE INDEX IF NOT EXISTS idx_subjects_document ON subjects(document_id, position);",
]

_UPSERT_DOCUMENT_SQL = """\
INSERT INTO documents (
    id, workspace_id, filename, mime_type, language, char_length, status,
    error_message, chunk_count, has_non_latin_script, embedding_duration_s,
    created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET workspace_id         = excluded.workspace_id,
              filename             = excluded.filename,
              mime_type            = excluded.mime_type,
              language             = excluded.language,
              char_length          = excluded.char_length,
              status               = excluded.status,
              error_message        = excluded.error_message,
              chunk_count          = excluded.chunk_count,
              has_non_latin_script = excluded.has_non_latin_script,
              embedding_duration_s = excluded.embedding_duration_s,
              updated_at           = excluded.updated_at;
"""

_SELECT_DOCUMENT_SQL = "SELECT * FROM documents WHERE id = ?;"

_INSERT_SUBJECT_SQL = """\
INSERT INTO subjects (
    id, document_id, position, name, importance, importance_score, source_chunk_ids
)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite-backed document and subject persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents and subjects tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_DOCUMENTS_SQL)
            await db.execute(_CREATE_SUBJECTS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def save_document(self, document: Document) -> Document:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_DOCUMENT_SQL,
                (
                    document.id,
                    document.workspace_id,
                    document.filename,
                    document.mime_type,
                    document.language,
                    document.char_length,
                    document.status.value,
                    document.error_message,
                    document.chunk_count,
                    int(document.has_non_latin_script),
                    document.embedding_duration_s,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )
            await db.commit()
        logger.debug("document_saved", document_id=document.id, status=document.status.value)
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_DOCUMENT_SQL, (document_id,))
            row = await cursor.fetchone()
        return self._row_to_document(dict(row)) if row else None

    async def list_documents(self, workspace_id: str | None = None) -> list[Document]:
        """Return documents newest first, optionally scoped to *workspace_id*."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if workspace_id is not None:
                cursor = await db.execute(
                    "SELECT * FROM documents WHERE workspace_id = ? ORDER BY created_at DESC",
                    (workspace_id,),
                )
            else:
                cursor = await db.execute("SELECT * FROM documents ORDER BY created_at DESC")
            rows = await cursor.fetchall()
        return [self._row_to_document(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Subjects
    # ------------------------------------------------------------------

    async def replace_subjects(self, document_id: str, subjects: list[Subject]) -> int:
        """Delete the document's previous subjects and insert *subjects* in order.

        Both statements run in one transaction so readers never see a
        half-replaced subject list.
        """
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM subjects WHERE document_id = ?", (document_id,))
            await db.executemany(
                _INSERT_SUBJECT_SQL,
                [
                    (
                        s.id,
                        document_id,
                        position,
                        s.name,
                        s.importance.value,
                        s.importance_score,
                        json.dumps(s.source_chunk_ids),
                    )
                    for position, s in enumerate(subjects)
                ],
            )
            await db.commit()
        logger.info("subjects_replaced", document_id=document_id, count=len(subjects))
        return len(subjects)

    async def get_subjects(self, document_id: str) -> list[Subject]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM subjects WHERE document_id = ? ORDER BY position",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_subject(dict(r)) for r in rows]

    async def get_subjects_by_ids(self, subject_ids: list[str]) -> list[Subject]:
        if not subject_ids:
            return []
        placeholders = ",".join("?" for _ in subject_ids)
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT * FROM subjects WHERE id IN ({placeholders})",  # noqa: S608
                tuple(subject_ids),
            )
            rows = await cursor.fetchall()
        by_id = {r["id"]: self._row_to_subject(dict(r)) for r in rows}
        return [by_id[sid] for sid in subject_ids if sid in by_id]

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_documents"

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_document(row: dict) -> Document:
        return Document(
            id=row["id"],
            workspace_id=row["workspace_id"],
            filename=row["filename"],
            mime_type=row["mime_type"],
            language=row["language"],
            char_length=row["char_length"],
            status=DocumentStatus(row["status"]),
            error_message=row["error_message"],
            chunk_count=row["chunk_count"],
            has_non_latin_script=bool(row["has_non_latin_script"]),
            embedding_duration_s=row["embedding_duration_s"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_subject(row: dict) -> Subject:
        return Subject(
            id=row["id"],
            name=row["name"],
            importance=ImportanceLabel(row["importance"]),
            importance_score=row["importance_score"],
            document_id=row["document_id"],
            source_chunk_ids=json.loads(row["source_chunk_ids"] or "[]"),
        )
