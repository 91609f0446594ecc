"""Unit tests for relevance scoring: lexical, vector and raw-text strategies."""

from __future__ import annotations

import pytest

from src.models.retrieval import RelevanceQuery, ScoredChunk, ScoringStrategy
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.embedding_manager import EmbeddingManager
from src.services.relevance_scorer import (
    RelevanceScorer,
    combine_scores,
    lexical_score,
    rank,
)
from tests.conftest import MockEmbeddingProvider, make_chunk


def _query(**overrides) -> RelevanceQuery:
    fields = {"topic": "photosynthesis", "document_ids": ["doc"]}
    fields.update(overrides)
    return RelevanceQuery(**fields)


def _scorer(provider: MockEmbeddingProvider | None = None) -> RelevanceScorer:
    manager = EmbeddingManager(
        provider=provider or MockEmbeddingProvider(),
        cache=MemoryCacheProvider(max_size=100),
        timeout_s=1.0,
    )
    return RelevanceScorer(embedding_manager=manager)


# ======================================================================
# Lexical scoring
# ======================================================================


class TestLexicalScore:
    def test_full_coverage_in_short_text(self) -> None:
        assert lexical_score("Photosynthesis needs light.", "photosynthesis") == pytest.approx(1.0)

    def test_every_keyword_present(self) -> None:
        text = "Machine learning is great. Learning happens daily."
        score = lexical_score(text, "machine learning")
        # Both words matched (coverage 1.0); 3 hits over 50 chars saturate density.
        assert score > 0.7
        assert score == pytest.approx(1.0)

    def test_partial_coverage(self) -> None:
        text = "The cell stores energy. " * 20
        score = lexical_score(text, "cell division energy")
        # coverage 2/3; 40 hits over 480 chars saturate density.
        assert score == pytest.approx(0.7 * (2 / 3) + 0.3 * 1.0)

    def test_density_scales_with_length(self) -> None:
        text = "enzyme " + "filler " * 199  # 1400 chars, one hit
        assert lexical_score(text, "enzyme") == pytest.approx(0.7 + 0.3 * (1 / 14))

    def test_whole_words_only(self) -> None:
        assert lexical_score("A category of cats.", "cat") == 0.0

    def test_short_words_are_ignored(self) -> None:
        assert lexical_score("a to of in", "of a") == 0.0

    def test_empty_inputs(self) -> None:
        assert lexical_score("", "topic") == 0.0
        assert lexical_score("text", "") == 0.0

    def test_case_insensitive(self) -> None:
        assert lexical_score("MITOSIS explained", "Mitosis") > 0.7


class TestCombineAndRank:
    def test_topic_alone(self) -> None:
        assert combine_scores(0.4, []) == pytest.approx(0.4)

    def test_weighted_with_best_secondary(self) -> None:
        assert combine_scores(0.5, [0.2, 0.9]) == pytest.approx(0.7 * 0.5 + 0.3 * 0.9)

    def test_result_is_clamped(self) -> None:
        assert combine_scores(-0.3, []) == 0.0

    def test_rank_sorts_drops_zero_and_caps(self) -> None:
        scored = [
            ScoredChunk(chunk=make_chunk("doc", i, f"t{i}"), score=s)
            for i, s in enumerate([0.2, 0.0, 0.9, 0.5])
        ]
        ranked = rank(scored, cap=2)
        assert [s.score for s in ranked] == [0.9, 0.5]


# ======================================================================
# Vector scoring
# ======================================================================


class TestScoreChunks:
    def test_vector_strategy_for_embedded_chunks(self) -> None:
        chunk = make_chunk("doc", 0, "anything", [1.0, 0.0])
        scored = _scorer().score_chunks(_query(), [chunk], [[1.0, 0.0]])

        assert scored[0].strategy is ScoringStrategy.VECTOR
        assert scored[0].score == pytest.approx(1.0)

    def test_secondary_terms_weighted(self) -> None:
        chunk = make_chunk("doc", 0, "anything", [1.0, 0.0])
        query = _query(subject_terms=["light"])
        scored = _scorer().score_chunks(query, [chunk], [[1.0, 0.0], [0.0, 1.0]])
        assert scored[0].score == pytest.approx(0.7)

    def test_negative_similarity_clamped_to_zero(self) -> None:
        chunk = make_chunk("doc", 0, "anything", [-1.0, 0.0])
        scored = _scorer().score_chunks(_query(), [chunk], [[1.0, 0.0]])
        assert scored[0].score == 0.0

    def test_missing_or_mismatched_embedding_scores_lexically(self) -> None:
        chunks = [
            make_chunk("doc", 0, "Photosynthesis in leaves.", None),
            make_chunk("doc", 1, "Photosynthesis in algae.", [1.0, 0.0, 0.0]),
        ]
        scored = _scorer().score_chunks(_query(), chunks, [[1.0, 0.0]])
        assert [s.strategy for s in scored] == [ScoringStrategy.LEXICAL, ScoringStrategy.LEXICAL]
        assert all(s.score > 0 for s in scored)

    def test_no_query_vectors_means_lexical(self) -> None:
        chunk = make_chunk("doc", 0, "Photosynthesis in leaves.", [1.0, 0.0])
        scored = _scorer().score_chunks(_query(), [chunk], None)
        assert scored[0].strategy is ScoringStrategy.LEXICAL


class TestEmbedQuery:
    @pytest.mark.asyncio
    async def test_embeds_topic_and_secondary_terms(self) -> None:
        provider = MockEmbeddingProvider()
        vectors = await _scorer(provider).embed_query(
            _query(subject_terms=["light"], instructions="focus on leaves")
        )
        assert vectors is not None
        assert len(vectors) == 3
        assert provider.calls[0] == ["photosynthesis", "light", "focus on leaves"]

    @pytest.mark.asyncio
    async def test_provider_failure_returns_none(self) -> None:
        vectors = await _scorer(MockEmbeddingProvider(fail=True)).embed_query(_query())
        assert vectors is None


# ======================================================================
# Raw-text fallback
# ======================================================================


class TestScoreRawText:
    def test_windows_are_scored_lexically(self) -> None:
        text = ("Photosynthesis happens in the leaves of green plants. " * 80)[:4000]
        scored = _scorer().score_raw_text(_query(), text, "doc", "ws")

        assert len(scored) == 3
        assert [s.chunk.id for s in scored] == ["doc:raw:0", "doc:raw:1", "doc:raw:2"]
        assert [(s.chunk.start_char, s.chunk.end_char) for s in scored] == [
            (0, 1800),
            (1500, 3300),
            (3000, 4000),
        ]
        assert all(s.strategy is ScoringStrategy.RAW_TEXT for s in scored)
        assert all(s.chunk.workspace_id == "ws" for s in scored)
        assert all(s.score > 0 for s in scored)

    def test_blank_text_gives_nothing(self) -> None:
        assert _scorer().score_raw_text(_query(), "   ", "doc") == []
