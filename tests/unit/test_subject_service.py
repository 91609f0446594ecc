"""Unit tests for SubjectService — cluster, select, label and persist subjects."""

from __future__ import annotations

import pytest

from src.models.document import Document, DocumentStatus
from src.models.subject import ImportanceLabel
from src.services.cluster_engine import ClusterEngine
from src.services.subject_labeler import SubjectLabeler
from src.services.subject_service import SubjectService
from src.utils.errors import DocumentNotFoundError, NoRelevantContentError
from tests.conftest import (
    MockDocumentRepository,
    MockLLMProvider,
    MockVectorStore,
    make_chunk,
)


def _one_hot(index: int, dim: int) -> list[float]:
    vector = [0.0] * dim
    vector[index] = 1.0
    return vector


@pytest.fixture
def repository() -> MockDocumentRepository:
    repo = MockDocumentRepository()
    repo.documents["bio"] = Document(id="bio", filename="bio.pdf", status=DocumentStatus.READY)
    return repo


def _service(
    store: MockVectorStore,
    repository: MockDocumentRepository,
    reply: str = "",
    max_subjects: int = 10,
) -> SubjectService:
    return SubjectService(
        vector_store=store,
        repository=repository,
        cluster_engine=ClusterEngine(similarity_threshold=0.6, target_groups=8),
        labeler=SubjectLabeler(MockLLMProvider(reply=reply)),
        max_subjects=max_subjects,
    )


class TestGenerate:
    @pytest.mark.asyncio
    async def test_unknown_document_raises(self, repository: MockDocumentRepository) -> None:
        with pytest.raises(DocumentNotFoundError):
            await _service(MockVectorStore(), repository).generate("missing")

    @pytest.mark.asyncio
    async def test_document_without_chunks_raises(
        self, repository: MockDocumentRepository
    ) -> None:
        with pytest.raises(NoRelevantContentError) as exc_info:
            await _service(MockVectorStore(), repository).generate("bio")
        assert exc_info.value.suggestions

    @pytest.mark.asyncio
    async def test_natural_clusters_become_subjects(
        self, repository: MockDocumentRepository
    ) -> None:
        store = MockVectorStore()
        await store.add_chunks(
            [
                make_chunk("bio", 0, "Light reactions", [1.0, 0.0]),
                make_chunk("bio", 1, "Mitosis", [0.0, 1.0]),
                make_chunk("bio", 2, "Chlorophyll", [0.95, 0.05]),
                make_chunk("bio", 3, "Meiosis", [0.05, 0.95]),
            ]
        )
        result = await _service(store, repository, reply="Photosynthesis\nCell Division").generate(
            "bio"
        )

        assert [s.name for s in result.subjects] == ["Photosynthesis", "Cell Division"]
        assert result.cluster_count == 2
        assert result.used_fallback_grouping is False
        assert result.used_default_titles is False
        first = result.subjects[0]
        assert first.importance is ImportanceLabel.MEDIUM
        assert first.importance_score == 2
        assert first.source_chunk_ids == ["bio:0", "bio:2"]
        assert first.document_id == "bio"
        assert await repository.get_subjects("bio") == result.subjects

    @pytest.mark.asyncio
    async def test_fallback_groups_when_nothing_is_similar(
        self, repository: MockDocumentRepository
    ) -> None:
        store = MockVectorStore()
        await store.add_chunks(
            [make_chunk("bio", i, f"Section {i}", _one_hot(i, 6)) for i in range(6)]
        )
        result = await _service(store, repository, reply="Part One\nPart Two").generate("bio")

        assert result.used_fallback_grouping is True
        assert [s.importance_score for s in result.subjects] == [5, 1]
        assert result.subjects[0].importance is ImportanceLabel.HIGH
        assert result.subjects[1].importance is ImportanceLabel.LOW

    @pytest.mark.asyncio
    async def test_subject_count_is_capped(self, repository: MockDocumentRepository) -> None:
        store = MockVectorStore()
        # Pairs of identical vectors: 8 natural clusters of two.
        await store.add_chunks(
            [make_chunk("bio", i, f"Section {i}", _one_hot(i // 2, 8)) for i in range(16)]
        )
        result = await _service(store, repository, max_subjects=5).generate("bio")

        assert result.cluster_count == 8
        assert len(result.subjects) == 5
        assert result.used_default_titles is True

    @pytest.mark.asyncio
    async def test_regeneration_replaces_previous_subjects(
        self, repository: MockDocumentRepository
    ) -> None:
        store = MockVectorStore()
        await store.add_chunks(
            [
                make_chunk("bio", 0, "Light", [1.0, 0.0]),
                make_chunk("bio", 1, "More light", [1.0, 0.0]),
            ]
        )
        service = _service(store, repository, reply="Light")
        first = await service.generate("bio")
        second = await service.generate("bio")

        stored = await service.list_subjects("bio")
        assert stored == second.subjects
        assert {s.id for s in first.subjects}.isdisjoint({s.id for s in stored})

    @pytest.mark.asyncio
    async def test_workspace_scope_is_applied(self, repository: MockDocumentRepository) -> None:
        store = MockVectorStore()
        await store.add_chunks([make_chunk("bio", 0, "Light", [1.0, 0.0], workspace_id="ws-a")])

        with pytest.raises(NoRelevantContentError):
            await _service(store, repository).generate("bio", workspace_id="ws-b")
