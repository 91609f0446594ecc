"""Relevance query and result models."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import Chunk

# Hard ceiling on chunks returned for any query, regardless of requested count.
MAX_RESULT_CHUNKS = 40


class ScoringStrategy(str, Enum):
    """How a chunk's relevance score was computed."""

    VECTOR = "vector"
    LEXICAL = "lexical"
    RAW_TEXT = "raw_text"


class RelevanceQuery(BaseModel):
    """What the caller wants relevant content for.

    ``requested_count`` is the number of downstream items (e.g. questions)
    the caller will generate; the chunk budget is derived from it.
    """

    model_config = ConfigDict(frozen=True)

    topic: str = Field(description="Main topic the content must match.")
    subject_terms: list[str] = Field(
        default_factory=list,
        description="Secondary subject names that narrow the topic.",
    )
    instructions: str | None = Field(
        default=None,
        description="Optional free-text instructions from the user.",
    )
    document_ids: list[str] = Field(description="Documents in scope (one or more).")
    workspace_id: str | None = Field(default=None, description="Workspace scope.")
    requested_count: int = Field(default=10, ge=1, description="Number of items requested.")

    @property
    def result_cap(self) -> int:
        """Maximum chunks returned: ``min(2 * requested_count, 40)``."""
        return min(2 * self.requested_count, MAX_RESULT_CHUNKS)

    @property
    def per_document_quota(self) -> int:
        """Per-document quota used when iterating documents one by one."""
        return math.ceil(self.requested_count / max(1, len(self.document_ids)))

    @property
    def secondary_terms(self) -> list[str]:
        """Subject terms plus instructions, the terms weighted at 0.3."""
        terms = [t for t in self.subject_terms if t.strip()]
        if self.instructions and self.instructions.strip():
            terms.append(self.instructions)
        return terms


class ScoredChunk(BaseModel):
    """A chunk plus its relevance score in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(ge=0.0, le=1.0, description="Relevance score.")
    strategy: ScoringStrategy = Field(default=ScoringStrategy.VECTOR)


class RetrievalResult(BaseModel):
    """Ranked, capped chunks for a query plus the assembled context."""

    model_config = ConfigDict(frozen=True)

    chunks: list[ScoredChunk] = Field(default_factory=list)
    strategy: ScoringStrategy = ScoringStrategy.VECTOR
    # True when the embedding provider failed and lexical scoring was used.
    degraded: bool = False
    context: str = ""

    @property
    def document_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for sc in self.chunks:
            seen.setdefault(sc.chunk.document_id, None)
        return list(seen)
