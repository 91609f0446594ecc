"""Domain models — re-exports all public model classes.

Other parts of the codebase may import from ``src.models`` directly
instead of from the individual submodules:

    - document.py   — Document, Chunk, ChunkMetadata, ingestion summary
    - subject.py    — transient clusters and persisted subjects
    - retrieval.py  — relevance queries and scored results
"""

from __future__ import annotations

from src.models.document import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentStatus,
    IngestionResult,
)
from src.models.retrieval import (
    MAX_RESULT_CHUNKS,
    RelevanceQuery,
    RetrievalResult,
    ScoredChunk,
    ScoringStrategy,
)
from src.models.subject import (
    Cluster,
    ImportanceLabel,
    Subject,
    SubjectGenerationResult,
)

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "Cluster",
    "Document",
    "DocumentStatus",
    "ImportanceLabel",
    "IngestionResult",
    "MAX_RESULT_CHUNKS",
    "RelevanceQuery",
    "RetrievalResult",
    "ScoredChunk",
    "ScoringStrategy",
    "Subject",
    "SubjectGenerationResult",
]
