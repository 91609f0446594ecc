"""Clustering and subject models.

A :class:`Cluster` lives only for the duration of one clustering run; the
only thing persisted from it is the :class:`Subject` the labeling step
derives.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import Chunk


class ImportanceLabel(str, Enum):
    """User-facing importance bucket derived from a cluster's member count."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: int) -> ImportanceLabel:
        """Map a member count to a label: >=5 high, >=2 medium, else low."""
        if score >= 5:
            return cls.HIGH
        if score >= 2:
            return cls.MEDIUM
        return cls.LOW


class Cluster(BaseModel):
    """A group of chunks deemed related by similarity or, in fallback mode, proximity."""

    model_config = ConfigDict(frozen=True)

    # Embedding of the seed member (first member in fallback mode).
    centroid: list[float] = Field(description="Vector of the cluster's seed chunk.")
    members: list[Chunk] = Field(description="Member chunks, seed first.")
    importance: int = Field(ge=1, description="Member count.")
    is_fallback: bool = Field(
        default=False,
        description="True when produced by sequential grouping instead of similarity.",
    )

    @property
    def mean_chunk_index(self) -> float:
        """Average sequence index of the members; used for diverse selection."""
        return sum(m.chunk_index for m in self.members) / len(self.members)


class Subject(BaseModel):
    """A named topic derived from a cluster by the labeling call."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier for this subject.")
    name: str = Field(description="Short title produced by the labeler.")
    importance: ImportanceLabel = Field(description="Importance bucket.")
    importance_score: int = Field(default=1, ge=0, description="Member count of the source cluster.")
    document_id: str = Field(description="Document the subject was derived from.")
    source_chunk_ids: list[str] = Field(
        default_factory=list,
        description="Chunks that made up the source cluster.",
    )


class SubjectGenerationResult(BaseModel):
    """Summary of a subject-generation run for one document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    subjects: list[Subject] = Field(default_factory=list)
    language: str = "unknown"
    cluster_count: int = Field(default=0, ge=0, description="Clusters before selection.")
    used_fallback_grouping: bool = False
    used_default_titles: bool = False
