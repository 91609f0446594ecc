"""Subject generation for an ingested document.

Loads the document's stored chunks (with embeddings) in chunk order,
clusters them, picks at most ``max_subjects`` clusters, labels them with
one LLM call and persists the resulting subjects, replacing any earlier
set for the document.

Cluster selection depends on how clustering went:

* natural clusters -> :meth:`ClusterEngine.select_diverse` (top 3 plus a
  stride across the document);
* sequential fallback groups -> the largest ``max_subjects`` groups.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog

from src.models.subject import ImportanceLabel, Subject, SubjectGenerationResult
from src.services.cluster_engine import DEFAULT_MAX_SELECTED, ClusterEngine
from src.utils.errors import DocumentNotFoundError, NoRelevantContentError

if TYPE_CHECKING:
    from src.interfaces.document_repository import IDocumentRepository
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.services.subject_labeler import SubjectLabeler

logger = structlog.get_logger(logger_name=__name__)

_NO_CHUNKS_SUGGESTIONS = [
    "Wait for the document to finish processing",
    "Re-ingest the document",
]


class SubjectService:
    """Derives and persists subjects from a document's chunk embeddings.

    Parameters
    ----------
    vector_store:
        Source of the document's embedded chunks.
    repository:
        Document and subject persistence.
    cluster_engine:
        Similarity clustering.
    labeler:
        Batched LLM labeling.
    max_subjects:
        Upper bound on subjects per document (default 10).
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        repository: IDocumentRepository,
        cluster_engine: ClusterEngine,
        labeler: SubjectLabeler,
        max_subjects: int = DEFAULT_MAX_SELECTED,
    ) -> None:
        self._vector_store = vector_store
        self._repository = repository
        self._cluster_engine = cluster_engine
        self._labeler = labeler
        self._max_subjects = max_subjects

    async def generate(
        self,
        document_id: str,
        workspace_id: str | None = None,
    ) -> SubjectGenerationResult:
        """Cluster, label and store subjects for *document_id*.

        Raises
        ------
        DocumentNotFoundError
            If the repository does not know the document.
        NoRelevantContentError
            If the document has no embedded chunks to cluster.
        """
        document = await self._repository.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(message=f"Document {document_id} not found")

        chunks = await self._vector_store.get_chunks(
            [document_id], workspace_id=workspace_id, include_embeddings=True
        )
        chunks = sorted(chunks, key=lambda c: c.chunk_index)
        if not any(c.embedding for c in chunks):
            raise NoRelevantContentError(
                topic=document.filename or document_id,
                message=f"No embedded chunks found for document {document_id}",
                suggestions=_NO_CHUNKS_SUGGESTIONS,
            )

        clusters = self._cluster_engine.cluster(chunks)
        used_fallback = bool(clusters) and clusters[0].is_fallback
        if used_fallback:
            selected = clusters[: self._max_subjects]
        else:
            selected = self._cluster_engine.select_diverse(clusters, self._max_subjects)

        titles, language, used_defaults = await self._labeler.label(selected)

        subjects = [
            Subject(
                id=str(uuid.uuid4()),
                name=title,
                importance=ImportanceLabel.from_score(cluster.importance),
                importance_score=cluster.importance,
                document_id=document_id,
                source_chunk_ids=[m.id for m in cluster.members],
            )
            for cluster, title in zip(selected, titles)
        ]
        await self._repository.replace_subjects(document_id, subjects)

        logger.info(
            "subjects_generated",
            document_id=document_id,
            chunks=len(chunks),
            clusters=len(clusters),
            subjects=len(subjects),
            fallback=used_fallback,
            default_titles=used_defaults,
        )
        return SubjectGenerationResult(
            document_id=document_id,
            subjects=subjects,
            language=language,
            cluster_count=len(clusters),
            used_fallback_grouping=used_fallback,
            used_default_titles=used_defaults,
        )

    async def list_subjects(self, document_id: str) -> list[Subject]:
        """Return the stored subjects for *document_id*."""
        return await self._repository.get_subjects(document_id)
