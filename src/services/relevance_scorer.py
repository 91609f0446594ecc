"""Relevance scoring of chunks against a topic and secondary terms.

Three strategies, tried in order of preference:

* **vector** -- cosine similarity between the chunk's stored embedding
  and the embedding of each query term.
* **lexical** -- whole-word keyword coverage and density.  Used for the
  whole run when the query cannot be embedded, and per chunk when a
  chunk has no (or a mismatched) embedding.
* **raw text** -- when a document has no stored chunks at all, its raw
  text is cut into ad-hoc fixed windows and scored lexically.

Every strategy combines scores the same way: ``0.7 * topic`` plus
``0.3 * best secondary term`` (subject names and free-text instructions).
With no secondary terms the topic score stands alone.
"""

from __future__ import annotations

import asyncio
import re

import structlog

from src.models.document import Chunk
from src.models.retrieval import RelevanceQuery, ScoredChunk, ScoringStrategy
from src.services.embedding_manager import EmbeddingManager
from src.services.ingestion.chunker import TextChunker
from src.utils.errors import EmbeddingError
from src.utils.similarity import clamp_unit, cosine_similarity

logger = structlog.get_logger(logger_name=__name__)

TOPIC_WEIGHT = 0.7
SECONDARY_WEIGHT = 0.3
_COVERAGE_WEIGHT = 0.7
_DENSITY_WEIGHT = 0.3
_MIN_WORD_LENGTH = 3
# Raw-text fallback windows.
_RAW_CHUNK_SIZE = 1800
_RAW_CHUNK_OVERLAP = 300


def lexical_score(text: str, term: str) -> float:
    """Score how well *text* matches *term* by keyword coverage and density.

    Words of *term* shorter than three characters are ignored.

    * ``coverage`` = distinct matched words / words considered
    * ``density`` = ``min(1, occurrences / (len(text) / 100))``

    Returns ``0.7 * coverage + 0.3 * density``, in ``[0, 1]``.
    """
    if not text or not term:
        return 0.0

    words = [w for w in term.lower().split() if len(w) >= _MIN_WORD_LENGTH]
    if not words:
        return 0.0

    lowered = text.lower()
    occurrences = 0
    matched = 0
    for word in words:
        hits = len(re.findall(rf"\b{re.escape(word)}\b", lowered))
        if hits:
            occurrences += hits
            matched += 1

    coverage = matched / len(words)
    density = min(1.0, occurrences / (len(text) / 100))
    return _COVERAGE_WEIGHT * coverage + _DENSITY_WEIGHT * density


def combine_scores(topic_score: float, secondary_scores: list[float]) -> float:
    """Weight the topic score against the best secondary-term score."""
    if not secondary_scores:
        return clamp_unit(topic_score)
    return clamp_unit(TOPIC_WEIGHT * topic_score + SECONDARY_WEIGHT * max(secondary_scores))


def rank(scored: list[ScoredChunk], cap: int) -> list[ScoredChunk]:
    """Sort by score descending, drop zero scores, keep at most *cap*."""
    kept = [s for s in scored if s.score > 0.0]
    kept.sort(key=lambda s: s.score, reverse=True)
    return kept[:cap]


class RelevanceScorer:
    """Scores candidate chunks for a :class:`RelevanceQuery`.

    Parameters
    ----------
    embedding_manager:
        Used to embed the query terms in a single batch.
    raw_chunker:
        Windowing for the raw-text fallback; defaults to 1800/300 windows.
    """

    def __init__(
        self,
        embedding_manager: EmbeddingManager,
        raw_chunker: TextChunker | None = None,
    ) -> None:
        self._embedding_manager = embedding_manager
        self._raw_chunker = raw_chunker or TextChunker(
            chunk_size=_RAW_CHUNK_SIZE, overlap=_RAW_CHUNK_OVERLAP
        )

    # ------------------------------------------------------------------
    # Query embedding
    # ------------------------------------------------------------------

    async def embed_query(self, query: RelevanceQuery) -> list[list[float]] | None:
        """Embed ``[topic, *secondary_terms]``; ``None`` when the provider fails."""
        terms = [query.topic, *query.secondary_terms]
        try:
            return await self._embedding_manager.embed_batch(terms)
        except (EmbeddingError, asyncio.TimeoutError) as exc:
            logger.warning(
                "query_embedding_failed_lexical_fallback",
                topic=query.topic[:80],
                error=str(exc),
            )
            return None

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_chunks(
        self,
        query: RelevanceQuery,
        chunks: list[Chunk],
        query_vectors: list[list[float]] | None,
    ) -> list[ScoredChunk]:
        """Score every chunk; vector where possible, lexical otherwise.

        With ``query_vectors=None`` (the query could not be embedded) every
        chunk is scored lexically.
        """
        scored: list[ScoredChunk] = []
        for chunk in chunks:
            if query_vectors is not None and self._has_usable_embedding(chunk, query_vectors):
                scored.append(self._vector_score(chunk, query_vectors))
            else:
                scored.append(self.lexical_chunk_score(query, chunk))
        return scored

    def lexical_chunk_score(
        self,
        query: RelevanceQuery,
        chunk: Chunk,
        strategy: ScoringStrategy = ScoringStrategy.LEXICAL,
    ) -> ScoredChunk:
        topic = lexical_score(chunk.text, query.topic)
        secondary = [lexical_score(chunk.text, t) for t in query.secondary_terms]
        return ScoredChunk(chunk=chunk, score=combine_scores(topic, secondary), strategy=strategy)

    def score_raw_text(
        self,
        query: RelevanceQuery,
        text: str,
        document_id: str,
        workspace_id: str = "",
    ) -> list[ScoredChunk]:
        """Cut *text* into fixed windows and score them lexically."""
        if not text or not text.strip():
            return []

        content, _ = self._raw_chunker.split_pages(text)
        windows = [
            Chunk(
                id=f"{document_id}:raw:{idx}",
                document_id=document_id,
                workspace_id=workspace_id,
                chunk_index=idx,
                text=content[start:end],
                start_char=start,
                end_char=end,
            )
            for idx, (start, end) in enumerate(self._raw_chunker.window_spans(len(content)))
            if content[start:end].strip()
        ]
        logger.debug("raw_text_windows", document_id=document_id, windows=len(windows))
        return [
            self.lexical_chunk_score(query, w, strategy=ScoringStrategy.RAW_TEXT) for w in windows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _has_usable_embedding(chunk: Chunk, query_vectors: list[list[float]]) -> bool:
        return bool(chunk.embedding) and len(chunk.embedding or []) == len(query_vectors[0])

    @staticmethod
    def _vector_score(chunk: Chunk, query_vectors: list[list[float]]) -> ScoredChunk:
        vector = chunk.embedding or []
        topic = clamp_unit(cosine_similarity(vector, query_vectors[0]))
        secondary = [clamp_unit(cosine_similarity(vector, qv)) for qv in query_vectors[1:]]
        return ScoredChunk(
            chunk=chunk,
            score=combine_scores(topic, secondary),
            strategy=ScoringStrategy.VECTOR,
        )
