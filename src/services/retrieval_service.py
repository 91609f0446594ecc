"""Multi-document relevance retrieval.

Given a :class:`~src.models.retrieval.RelevanceQuery` this service returns
the best-matching chunks across every document in scope, capped at
``min(2 * requested_count, 40)``, plus the assembled context string.

Retrieval runs in up to two passes:

1. **Scoped pass** -- one chunk-store read for ``document_id IN (...)``
   (and the workspace), scored in a single batch.  Past a configurable
   chunk count only the store's nearest neighbours of the topic vector
   are read and scored.
2. **Per-document pass** -- only when the scoped pass yields nothing
   usable.  Documents are processed concurrently (bounded), each capped at
   ``ceil(requested_count / document_count)`` and each free to fall back to
   its raw text when it has no stored chunks.

Results of either pass are re-ranked globally before truncation, so a
single-document query is simply the one-id case of the same operation.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.document_source import IDocumentSource
from src.interfaces.text_extractor import ITextExtractor
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import Chunk
from src.models.retrieval import (
    MAX_RESULT_CHUNKS,
    RelevanceQuery,
    RetrievalResult,
    ScoredChunk,
    ScoringStrategy,
)
from src.services.query_validator import validate_query
from src.services.relevance_scorer import RelevanceScorer, rank
from src.utils.concurrency import DEFAULT_CONCURRENCY, gather_flat
from src.utils.errors import NoRelevantContentError, TextExtractionError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

CONTEXT_SEPARATOR = "\n\n"
_DEFAULT_EXTRACTION_TIMEOUT_S = 120.0
_DEFAULT_NEAREST_NEIGHBOUR_THRESHOLD = 2000
# Nearest-neighbour candidates fetched per returned chunk.
_CANDIDATES_PER_RESULT = 5


def build_context(chunks: list[ScoredChunk]) -> str:
    """Join chunk texts in ranked order."""
    return CONTEXT_SEPARATOR.join(sc.chunk.text for sc in chunks)


class RetrievalService:
    """Finds relevant chunks for a query across one or more documents.

    Parameters
    ----------
    vector_store:
        Persisted chunk store.
    scorer:
        Relevance scorer (owns the embedding manager).
    document_source:
        Used by the raw-text fallback; without it documents lacking
        stored chunks contribute nothing.
    text_extractor:
        Extractor paired with *document_source*.
    per_document_concurrency:
        Documents processed at once in the per-document pass.
    extraction_timeout_s:
        Timeout for raw-text extraction in the fallback.
    max_results:
        Deployment-wide ceiling on returned chunks; never above 40.
    nearest_neighbour_threshold:
        When the documents in scope hold more chunks than this, the scoped
        pass scores only the store's nearest neighbours of the topic
        vector instead of every chunk.  ``0`` disables the shortcut.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        scorer: RelevanceScorer,
        document_source: IDocumentSource | None = None,
        text_extractor: ITextExtractor | None = None,
        per_document_concurrency: int = DEFAULT_CONCURRENCY,
        extraction_timeout_s: float = _DEFAULT_EXTRACTION_TIMEOUT_S,
        max_results: int = MAX_RESULT_CHUNKS,
        nearest_neighbour_threshold: int = _DEFAULT_NEAREST_NEIGHBOUR_THRESHOLD,
    ) -> None:
        self._vector_store = vector_store
        self._scorer = scorer
        self._document_source = document_source
        self._text_extractor = text_extractor
        self._concurrency = max(1, per_document_concurrency)
        self._extraction_timeout_s = extraction_timeout_s
        self._max_results = max(1, min(max_results, MAX_RESULT_CHUNKS))
        self._nearest_neighbour_threshold = max(0, nearest_neighbour_threshold)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def retrieve(
        self,
        query: RelevanceQuery,
        auth_token: str | None = None,
    ) -> RetrievalResult:
        """Return ranked, capped chunks for *query*.

        Raises
        ------
        QueryValidationError
            Before any external call, if the query is malformed or unsafe.
        NoRelevantContentError
            If no strategy produced a chunk with a positive score.
        """
        query = validate_query(query)
        cap = min(query.result_cap, self._max_results)

        query_vectors = await self._scorer.embed_query(query)
        degraded = query_vectors is None

        scored = rank(await self._scoped_pass(query, query_vectors, cap), cap)
        if not scored:
            logger.info(
                "scoped_retrieval_empty_per_document_pass",
                documents=len(query.document_ids),
            )
            scored = rank(await self._per_document_pass(query, query_vectors, auth_token), cap)

        if not scored:
            logger.info("no_relevant_content", topic=query.topic[:80])
            raise NoRelevantContentError(topic=query.topic)

        strategy = self._overall_strategy(scored, degraded)
        logger.info(
            "retrieval_complete",
            documents=len(query.document_ids),
            chunks=len(scored),
            cap=cap,
            strategy=strategy.value,
            degraded=degraded,
            top_score=round(scored[0].score, 4),
        )
        return RetrievalResult(
            chunks=scored,
            strategy=strategy,
            degraded=degraded,
            context=build_context(scored),
        )

    async def retrieve_context(
        self,
        query: RelevanceQuery,
        auth_token: str | None = None,
    ) -> str:
        """Return only the assembled context for *query*."""
        result = await self.retrieve(query, auth_token=auth_token)
        return result.context

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def _scoped_pass(
        self,
        query: RelevanceQuery,
        query_vectors: list[list[float]] | None,
        cap: int,
    ) -> list[ScoredChunk]:
        try:
            if query_vectors is not None and await self._exceeds_neighbour_threshold(query):
                chunks = await self._nearest_candidates(query, query_vectors[0], cap)
            else:
                chunks = await self._vector_store.get_chunks(
                    query.document_ids, workspace_id=query.workspace_id
                )
        except VectorStoreError as exc:
            logger.warning("scoped_chunk_fetch_failed", error=str(exc))
            return []
        return self._scorer.score_chunks(query, chunks, query_vectors)

    async def _exceeds_neighbour_threshold(self, query: RelevanceQuery) -> bool:
        if not self._nearest_neighbour_threshold:
            return False
        total = await self._vector_store.count(query.document_ids)
        return total > self._nearest_neighbour_threshold

    async def _nearest_candidates(
        self,
        query: RelevanceQuery,
        topic_vector: list[float],
        cap: int,
    ) -> list[Chunk]:
        """Fetch the chunks nearest to the topic vector; they are re-scored by the caller."""
        hits = await self._vector_store.query(
            topic_vector,
            top_k=cap * _CANDIDATES_PER_RESULT,
            document_ids=query.document_ids,
            workspace_id=query.workspace_id,
        )
        logger.info(
            "scoped_pass_nearest_neighbours",
            documents=len(query.document_ids),
            candidates=len(hits),
        )
        return [hit.chunk for hit in hits]

    async def _per_document_pass(
        self,
        query: RelevanceQuery,
        query_vectors: list[list[float]] | None,
        auth_token: str | None,
    ) -> list[ScoredChunk]:
        quota = query.per_document_quota
        coros = [
            self._retrieve_document(query, doc_id, query_vectors, auth_token, quota)
            for doc_id in query.document_ids
        ]
        return await gather_flat(
            coros,
            labels=list(query.document_ids),
            limit=self._concurrency,
            logger=logger,
            error_msg="document_retrieval_failed",
        )

    async def _retrieve_document(
        self,
        query: RelevanceQuery,
        document_id: str,
        query_vectors: list[list[float]] | None,
        auth_token: str | None,
        quota: int,
    ) -> list[ScoredChunk]:
        chunks = await self._vector_store.get_chunks(
            [document_id], workspace_id=query.workspace_id
        )
        scored = rank(self._scorer.score_chunks(query, chunks, query_vectors), quota)
        if scored:
            return scored

        text = await self._raw_text(document_id, auth_token)
        if not text:
            return []
        return rank(
            self._scorer.score_raw_text(query, text, document_id, query.workspace_id or ""),
            quota,
        )

    async def _raw_text(self, document_id: str, auth_token: str | None) -> str:
        if self._document_source is None or self._text_extractor is None:
            return ""
        source = await self._document_source.fetch(document_id, auth_token=auth_token)
        try:
            return await asyncio.wait_for(
                self._text_extractor.extract(
                    source.content, source.mime_type, source.filename, add_page_markers=False
                ),
                timeout=self._extraction_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise TextExtractionError(
                message=f"Extraction timed out after {self._extraction_timeout_s}s",
                provider_name=self._document_source.get_provider_name(),
            ) from exc

    @staticmethod
    def _overall_strategy(scored: list[ScoredChunk], degraded: bool) -> ScoringStrategy:
        if any(sc.strategy is ScoringStrategy.RAW_TEXT for sc in scored):
            return ScoringStrategy.RAW_TEXT
        if degraded or all(sc.strategy is ScoringStrategy.LEXICAL for sc in scored):
            return ScoringStrategy.LEXICAL
        return ScoringStrategy.VECTOR
