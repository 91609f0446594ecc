"""Pydantic request/response schemas for the document relevance API.

Defines the public contract for all REST endpoints: ingestion, document
status, subject generation, relevance search, context assembly, health,
provider listing and corpus statistics.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# FastAPI validates incoming JSON against the request models and
# serializes responses through the response models (response_model=...).
# Request schemas end with "Request", response schemas with "Response".
#
# Field constraints here are deliberately loose: the query validator
# (src/services/query_validator.py) owns the real rules so the CLI and
# the API reject the same inputs with the same messages.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.document import Document, DocumentStatus, IngestionResult
from src.models.retrieval import ScoredChunk, ScoringStrategy
from src.models.subject import Subject


# ---------------------------------------------------------------------------
# Documents / ingestion
# ---------------------------------------------------------------------------


class IngestRequest(BaseModel):
    """Options for ingesting a document.

    ``wait=False`` (the default) schedules ingestion in the background and
    returns immediately with status ``accepted``.
    """

    workspace_id: str | None = None
    max_chunks: int | None = Field(default=None, ge=1)
    wait: bool = False


class IngestResponse(BaseModel):
    """Response after accepting or completing an ingestion run."""

    document_id: str
    status: str
    result: IngestionResult | None = None


class DocumentResponse(BaseModel):
    """Stored record for one document."""

    id: str
    workspace_id: str
    filename: str
    mime_type: str
    language: str
    char_length: int
    status: DocumentStatus
    error_message: str | None = None
    chunk_count: int
    has_non_latin_script: bool
    embedding_duration_s: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(**document.model_dump())


class DeleteChunksResponse(BaseModel):
    document_id: str
    deleted: int


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------


class GenerateSubjectsRequest(BaseModel):
    workspace_id: str | None = None


class SubjectsResponse(BaseModel):
    """Subjects of one document plus how they were produced."""

    document_id: str
    subjects: list[Subject] = Field(default_factory=list)
    language: str | None = None
    cluster_count: int | None = None
    used_fallback_grouping: bool | None = None
    used_default_titles: bool | None = None


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    """Relevance query over one or more documents.

    ``subject_ids`` are resolved to stored subject names and appended to
    ``subject_terms``.
    """

    topic: str
    subject_terms: list[str] = Field(default_factory=list)
    subject_ids: list[str] = Field(default_factory=list)
    instructions: str | None = None
    document_ids: list[str] = Field(default_factory=list)
    workspace_id: str | None = None
    requested_count: int = Field(default=10, ge=1)


class SearchChunk(BaseModel):
    """A single ranked chunk."""

    chunk_id: str
    document_id: str
    chunk_index: int
    page_number: int
    text: str
    score: float
    strategy: ScoringStrategy

    @classmethod
    def from_scored(cls, scored: ScoredChunk) -> SearchChunk:
        return cls(
            chunk_id=scored.chunk.id,
            document_id=scored.chunk.document_id,
            chunk_index=scored.chunk.chunk_index,
            page_number=scored.chunk.page_number,
            text=scored.chunk.text,
            score=round(scored.score, 4),
            strategy=scored.strategy,
        )


class SearchResponse(BaseModel):
    """Ranked, capped chunks for a relevance query."""

    chunks: list[SearchChunk] = Field(default_factory=list)
    total: int = 0
    strategy: ScoringStrategy
    degraded: bool = False


class ContextResponse(BaseModel):
    """Assembled source material for downstream generation."""

    context: str
    document_ids: list[str] = Field(default_factory=list)
    chunk_count: int = 0
    strategy: ScoringStrategy
    degraded: bool = False


# ---------------------------------------------------------------------------
# Operational
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ProvidersResponse(BaseModel):
    """List of configured service providers and their availability."""

    providers: list[dict[str, Any]]


class CorpusStatsResponse(BaseModel):
    """Chunk store and document repository statistics."""

    total_chunks: int = 0
    total_documents: int = 0
    documents_by_status: dict[str, int] = Field(default_factory=dict)
    pending_ingestions: int = 0


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    suggestions: list[str] | None = None
