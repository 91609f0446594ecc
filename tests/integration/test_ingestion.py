"""End-to-end tests for ingest -> subjects -> retrieve.

Runs the real extractor (PyMuPDF), chunker, ChromaDB chunk store, SQLite
repository and local upload directory in a temporary folder.  Only the
embedding and LLM providers are test doubles, so no network calls are
made.
"""

from __future__ import annotations

from dataclasses import dataclass

import fitz
import pytest

from src.models.document import DocumentStatus
from src.models.retrieval import RelevanceQuery, ScoringStrategy
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.document_store.sqlite_document_repository import SQLiteDocumentRepository
from src.providers.extraction.local_text_extractor import LocalTextExtractor
from src.providers.source.local_document_source import LocalDocumentSource
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.cluster_engine import ClusterEngine
from src.services.embedding_manager import EmbeddingManager
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.relevance_scorer import RelevanceScorer
from src.services.retrieval_service import RetrievalService
from src.services.subject_labeler import SubjectLabeler
from src.services.subject_service import SubjectService
from src.utils.errors import NoRelevantContentError
from tests.conftest import MockEmbeddingProvider, MockLLMProvider

_VOCABULARY = ["photosynthesis", "light", "mitosis", "cell", "enzyme"]

_PAGE_ONE = [
    "Photosynthesis needs light in every leaf.",
    "Photosynthesis turns light into sugar.",
    "Light drives photosynthesis in plants.",
    "Photosynthesis stops when light fades.",
    "Algae use light for photosynthesis too.",
    "Photosynthesis and light feed the plant.",
    "Strong light speeds up photosynthesis.",
    "Photosynthesis captures light energy.",
    "Photosynthesis depends on light levels.",
    "Leaves collect light for photosynthesis.",
]
_PAGE_TWO = [
    "Mitosis copies a cell nucleus.",
    "Each cell divides by mitosis.",
    "Mitosis gives every cell a twin.",
    "A cell grows before mitosis.",
]


def _pdf(pages: list[list[str]]) -> bytes:
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page()
        for row, line in enumerate(lines):
            page.insert_text((72, 72 + row * 16), line, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@dataclass
class _Stack:
    source: LocalDocumentSource
    store: ChromaDBProvider
    repository: SQLiteDocumentRepository
    llm: MockLLMProvider
    ingestion: IngestionService
    subjects: SubjectService
    retrieval: RetrievalService


@pytest.fixture
async def stack(tmp_path) -> _Stack:
    source = LocalDocumentSource(upload_dir=tmp_path / "uploads")
    store = ChromaDBProvider(
        persist_directory=str(tmp_path / "chroma"),
        collection_name="e2e_chunks",
        expected_dimension=len(_VOCABULARY),
    )
    repository = SQLiteDocumentRepository(db_path=tmp_path / "documents.db")
    await repository.initialize()
    llm = MockLLMProvider(reply="1. Photosynthesis\n2. Cell division")
    extractor = LocalTextExtractor()
    manager = EmbeddingManager(
        provider=MockEmbeddingProvider(vocabulary=_VOCABULARY),
        cache=MemoryCacheProvider(max_size=500),
        timeout_s=5.0,
    )
    return _Stack(
        source=source,
        store=store,
        repository=repository,
        llm=llm,
        ingestion=IngestionService(
            document_source=source,
            text_extractor=extractor,
            chunker=TextChunker(chunk_size=200, overlap=50),
            embedding_manager=manager,
            vector_store=store,
            repository=repository,
            batch_size=2,
        ),
        subjects=SubjectService(
            vector_store=store,
            repository=repository,
            cluster_engine=ClusterEngine(similarity_threshold=0.6),
            labeler=SubjectLabeler(llm=llm, timeout_s=5.0),
        ),
        retrieval=RetrievalService(
            vector_store=store,
            scorer=RelevanceScorer(embedding_manager=manager),
            document_source=source,
            text_extractor=extractor,
        ),
    )


class TestPipelineEndToEnd:
    @pytest.mark.asyncio
    async def test_ingest_subjects_retrieve(self, stack: _Stack) -> None:
        await stack.source.store("bio", "biology.pdf", _pdf([_PAGE_ONE, _PAGE_TWO]))

        result = await stack.ingestion.ingest("bio", workspace_id="ws-1")
        assert result.status is DocumentStatus.READY
        assert result.failed_batches == 0
        assert result.chunks_stored == result.chunks_created
        assert await stack.store.count(["bio"]) == result.chunks_stored

        document = await stack.repository.get_document("bio")
        assert document is not None
        assert document.status is DocumentStatus.READY
        assert document.mime_type == "application/pdf"
        assert document.workspace_id == "ws-1"

        chunks = await stack.store.get_chunks(["bio"], workspace_id="ws-1")
        assert {c.page_number for c in chunks} == {1, 2}
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

        generated = await stack.subjects.generate("bio", workspace_id="ws-1")
        assert generated.used_fallback_grouping is False
        assert [s.name for s in generated.subjects] == ["Photosynthesis", "Cell division"]
        assert generated.subjects[0].importance_score >= generated.subjects[1].importance_score
        assert len(stack.llm.prompts) == 1
        assert [s.id for s in await stack.subjects.list_subjects("bio")] == [
            s.id for s in generated.subjects
        ]

        retrieved = await stack.retrieval.retrieve(
            RelevanceQuery(
                topic="mitosis",
                subject_terms=["Cell division"],
                document_ids=["bio"],
                workspace_id="ws-1",
                requested_count=2,
            )
        )
        assert retrieved.strategy is ScoringStrategy.VECTOR
        assert retrieved.chunks
        assert all(sc.chunk.page_number == 2 for sc in retrieved.chunks)
        assert "Mitosis" in retrieved.context

    @pytest.mark.asyncio
    async def test_reingestion_keeps_one_copy(self, stack: _Stack) -> None:
        await stack.source.store("bio", "biology.pdf", _pdf([_PAGE_ONE, _PAGE_TWO]))

        first = await stack.ingestion.ingest("bio")
        await stack.ingestion.ingest("bio")
        assert await stack.store.count(["bio"]) == first.chunks_stored

    @pytest.mark.asyncio
    async def test_raw_text_before_ingestion(self, stack: _Stack) -> None:
        await stack.source.store("fresh", "notes.txt", " ".join(_PAGE_TWO).encode("utf-8"))

        retrieved = await stack.retrieval.retrieve(
            RelevanceQuery(topic="mitosis", document_ids=["fresh"])
        )
        assert retrieved.strategy is ScoringStrategy.RAW_TEXT
        assert retrieved.chunks[0].chunk.id == "fresh:raw:0"

    @pytest.mark.asyncio
    async def test_unknown_topic_raises_with_suggestions(self, stack: _Stack) -> None:
        await stack.source.store("bio", "biology.pdf", _pdf([_PAGE_ONE, _PAGE_TWO]))
        await stack.ingestion.ingest("bio")

        with pytest.raises(NoRelevantContentError) as exc_info:
            await stack.retrieval.retrieve(
                RelevanceQuery(topic="volcanoes", document_ids=["bio"])
            )
        assert exc_info.value.suggestions

    @pytest.mark.asyncio
    async def test_corrupt_upload_marks_failed(self, stack: _Stack) -> None:
        await stack.source.store("broken", "broken.pdf", b"not really a pdf")

        result = await stack.ingestion.ingest("broken")
        document = await stack.repository.get_document("broken")

        assert result.status is DocumentStatus.FAILED
        assert document is not None
        assert document.status is DocumentStatus.FAILED
        assert document.error_message
