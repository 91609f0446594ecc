"""Unit tests for document, retrieval and subject models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.document import Chunk, Document, DocumentStatus
from src.models.retrieval import RelevanceQuery, RetrievalResult, ScoredChunk
from src.models.subject import Cluster, ImportanceLabel
from src.utils.errors import (
    DocCoreError,
    EmbeddingError,
    NoRelevantContentError,
    ProviderError,
)
from tests.conftest import make_chunk


class TestChunk:
    def test_end_must_exceed_start(self) -> None:
        with pytest.raises(ValidationError):
            Chunk(id="d:0", document_id="d", chunk_index=0, text="x", start_char=5, end_char=5)

    def test_page_number_is_one_based(self) -> None:
        with pytest.raises(ValidationError):
            Chunk(
                id="d:0",
                document_id="d",
                chunk_index=0,
                text="x",
                start_char=0,
                end_char=1,
                page_number=0,
            )

    def test_with_embedding_returns_copy(self) -> None:
        chunk = make_chunk("d", 0, "text")
        embedded = chunk.with_embedding([0.1, 0.2])
        assert chunk.embedding is None
        assert embedded.embedding == [0.1, 0.2]
        assert embedded.id == chunk.id

    def test_chunks_are_frozen(self) -> None:
        chunk = make_chunk("d", 0, "text")
        with pytest.raises(ValidationError):
            chunk.text = "changed"  # type: ignore[misc]

    def test_metadata_record(self) -> None:
        chunk = make_chunk("d", 2, "text", page_number=4).model_copy(
            update={"total_chunks": 9, "extra": {"source": "upload"}}
        )
        metadata = chunk.metadata
        assert metadata.chunk_index == 2
        assert metadata.page_number == 4
        assert metadata.total_chunks == 9
        assert metadata.extra == {"source": "upload"}


class TestDocument:
    def test_defaults(self) -> None:
        document = Document(id="doc-1")
        assert document.status is DocumentStatus.PENDING
        assert document.language == "unknown"
        assert document.chunk_count == 0
        assert document.created_at.tzinfo is not None


class TestRelevanceQuery:
    def test_result_cap(self) -> None:
        assert RelevanceQuery(topic="t", document_ids=["a"], requested_count=5).result_cap == 10
        assert RelevanceQuery(topic="t", document_ids=["a"], requested_count=30).result_cap == 40

    def test_per_document_quota(self) -> None:
        query = RelevanceQuery(topic="t", document_ids=["a", "b", "c"], requested_count=10)
        assert query.per_document_quota == 4

    def test_secondary_terms_include_instructions(self) -> None:
        query = RelevanceQuery(
            topic="t",
            document_ids=["a"],
            subject_terms=["Mitosis", "  "],
            instructions="simple words",
        )
        assert query.secondary_terms == ["Mitosis", "simple words"]

    def test_requested_count_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RelevanceQuery(topic="t", document_ids=["a"], requested_count=0)


class TestRetrievalResult:
    def test_document_ids_in_rank_order_without_duplicates(self) -> None:
        result = RetrievalResult(
            chunks=[
                ScoredChunk(chunk=make_chunk("b", 0, "x"), score=0.9),
                ScoredChunk(chunk=make_chunk("a", 0, "y"), score=0.8),
                ScoredChunk(chunk=make_chunk("b", 1, "z"), score=0.7),
            ]
        )
        assert result.document_ids == ["b", "a"]

    def test_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ScoredChunk(chunk=make_chunk("a", 0, "x"), score=1.5)


class TestSubjects:
    @pytest.mark.parametrize(
        ("score", "label"),
        [(1, ImportanceLabel.LOW), (2, ImportanceLabel.MEDIUM), (4, ImportanceLabel.MEDIUM), (5, ImportanceLabel.HIGH)],
    )
    def test_importance_label(self, score: int, label: ImportanceLabel) -> None:
        assert ImportanceLabel.from_score(score) is label

    def test_mean_chunk_index(self) -> None:
        cluster = Cluster(
            centroid=[1.0],
            members=[make_chunk("d", 2, "a"), make_chunk("d", 6, "b")],
            importance=2,
        )
        assert cluster.mean_chunk_index == 4.0


class TestErrors:
    def test_provider_prefix_in_str(self) -> None:
        assert str(EmbeddingError(message="timeout", provider_name="openai")) == "[openai] timeout"
        assert str(DocCoreError(message="plain")) == "plain"

    def test_hierarchy(self) -> None:
        assert issubclass(EmbeddingError, ProviderError)
        assert issubclass(NoRelevantContentError, DocCoreError)

    def test_no_relevant_content_defaults(self) -> None:
        exc = NoRelevantContentError(topic="volcanoes")
        assert exc.topic == "volcanoes"
        assert "volcanoes" in exc.message
        assert exc.suggestions[0] == "Try a different topic"
