"""Document and chunk data models.

Defines Pydantic v2 models for uploaded documents, their bounded text
segments (chunks), and the summary of an ingestion run.  All models are
frozen; the only "mutations" the pipeline performs (document status,
detected language, a chunk's embedding) go through ``model_copy`` so every
stage hands the next an immutable value.

Ingestion overview:
    1. EXTRACTION: document bytes are turned into text with
       ``==== Page N ====`` marker lines (src/providers/extraction/).
    2. CHUNKING: the text is split into page-aware, overlapping chunks
       (src/services/ingestion/chunker.py).
    3. EMBEDDING: every chunk gets a vector (src/services/embedding_manager.py).
    4. STORAGE: chunk + vector rows go to the chunk store
       (src/providers/vector_store/), document rows to SQLite
       (src/providers/document_store/).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Lifecycle of a document's ingestion run."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Document — one uploaded file.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """An uploaded document known to the core.

    Created when the calling application registers an upload.  The
    ``language`` field is filled once detection completes; ``status`` and
    the embedding bookkeeping fields track the ingestion run.  Documents
    are never deleted by this core.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Document identifier assigned by the calling application.")
    workspace_id: str = Field(default="", description="Workspace that owns the document.")
    filename: str = Field(default="", description="Original file name of the upload.")
    mime_type: str = Field(default="", description="MIME type reported for the upload.")
    # ISO 639-1 code ("en", "he") or "unknown" until detection completes.
    language: str = Field(default="unknown", description="Detected document language.")
    char_length: int = Field(default=0, ge=0, description="Length of the extracted text.")
    status: DocumentStatus = Field(
        default=DocumentStatus.PENDING,
        description="Ingestion status of the document.",
    )
    error_message: str | None = Field(
        default=None,
        description="Failure reason when status is FAILED.",
    )
    chunk_count: int = Field(default=0, ge=0, description="Number of chunks stored.")
    has_non_latin_script: bool = Field(
        default=False,
        description="True when the text was chunked with fixed-size windows.",
    )
    embedding_duration_s: float = Field(
        default=0.0,
        ge=0.0,
        description="Wall-clock seconds spent embedding and storing chunks.",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# ChunkMetadata — the typed metadata record persisted next to each vector.
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Known chunk metadata fields plus an open extension map.

    This is what the chunk store persists alongside the embedding.  The
    ``extra`` map carries forward-compatible keys (e.g. extractor hints)
    without loosening the typed fields.
    """

    model_config = ConfigDict(frozen=True)

    start_char: int = Field(ge=0, description="Start offset within the document text.")
    end_char: int = Field(gt=0, description="End offset (exclusive) within the document text.")
    page_number: int = Field(default=1, ge=1, description="1-based page the chunk starts on.")
    chunk_index: int = Field(default=0, ge=0, description="Sequence index within the document.")
    total_chunks: int = Field(default=0, ge=0, description="Chunk count for the document.")
    extra: dict[str, str | int | float | bool] = Field(
        default_factory=dict,
        description="Open extension map for forward-compatible keys.",
    )


# ---------------------------------------------------------------------------
# Chunk — the fundamental retrievable unit.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A bounded text segment of a document with offsets and page number.

    Immutable once created except for the embedding, which is attached via
    :meth:`with_embedding` during ingestion.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier for this chunk.")
    document_id: str = Field(description="Identifier of the owning document.")
    workspace_id: str = Field(default="", description="Workspace of the owning document.")
    chunk_index: int = Field(ge=0, description="Sequence index within the document.")
    text: str = Field(description="The chunk's textual content.")
    start_char: int = Field(ge=0, description="Start offset within the document text.")
    end_char: int = Field(gt=0, description="End offset (exclusive) within the document text.")
    page_number: int = Field(default=1, ge=1, description="1-based page the chunk starts on.")
    total_chunks: int = Field(default=0, ge=0, description="Chunk count for the document.")
    embedding: list[float] | None = Field(
        default=None,
        description="Embedding vector, attached after the embedding stage.",
    )
    extra: dict[str, str | int | float | bool] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_offsets(self) -> Chunk:
        if self.end_char <= self.start_char:
            raise ValueError(
                f"end_char ({self.end_char}) must be greater than start_char ({self.start_char})"
            )
        return self

    @property
    def metadata(self) -> ChunkMetadata:
        """Return the typed metadata record persisted with this chunk."""
        return ChunkMetadata(
            start_char=self.start_char,
            end_char=self.end_char,
            page_number=self.page_number,
            chunk_index=self.chunk_index,
            total_chunks=self.total_chunks,
            extra=dict(self.extra),
        )

    def with_embedding(self, embedding: list[float]) -> Chunk:
        """Return a copy of this chunk carrying *embedding*."""
        return self.model_copy(update={"embedding": list(embedding)})


# ---------------------------------------------------------------------------
# IngestionResult — output of one ingestion run.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of a single document ingestion run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    status: DocumentStatus
    language: str = "unknown"
    chunks_created: int = Field(default=0, ge=0, description="Chunks produced by the chunker.")
    chunks_stored: int = Field(default=0, ge=0, description="Chunks embedded and stored.")
    failed_batches: int = Field(default=0, ge=0, description="Embedding/store batches skipped.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
    error_message: str | None = None
