"""Shared pytest fixtures for the document relevance core test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path
from typing import Any

import pytest

from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.document_source import IDocumentSource, SourceDocument
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_extractor import ITextExtractor
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import Chunk, Document
from src.models.retrieval import ScoredChunk
from src.models.subject import Subject
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.embedding_manager import EmbeddingManager
from src.utils.errors import DocumentNotFoundError, EmbeddingError
from src.utils.similarity import clamp_unit, cosine_similarity

_EMBEDDING_DIM = 64


# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sample_document_text() -> str:
    """A short three-page biology handout with page markers."""
    return (
        "==== Page 1 ====\n"
        "Photosynthesis converts light energy into chemical energy. "
        "Chlorophyll in the chloroplast absorbs light. "
        "The light reactions produce oxygen and ATP.\n"
        "==== Page 2 ====\n"
        "Cell division happens through mitosis and meiosis. "
        "Mitosis produces two identical daughter cells. "
        "Meiosis produces gametes with half the chromosomes.\n"
        "==== Page 3 ====\n"
        "Enzymes are proteins that speed up reactions. "
        "Each enzyme has an active site that binds a substrate.\n"
    )


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal resolved configuration for component factories."""
    return {
        "chunking": {"chunk_size": 1800, "chunk_overlap": 300, "max_chunks": 100},
        "embedding": {"batch_size": 10, "cache_size": 100, "timeout_s": 5.0},
        "clustering": {
            "similarity_threshold": 0.60,
            "target_count": 8,
            "max_subjects": 10,
            "labeling_timeout_s": 5.0,
        },
        "retrieval": {"max_results": 40, "per_document_concurrency": 4},
        "extraction": {"timeout_s": 10.0},
    }


# ---------------------------------------------------------------------------
# Embedding fixtures
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    Same text always produces the same vector; different texts produce
    nearly orthogonal ones.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


def keyword_vector(text: str, vocabulary: list[str]) -> list[float]:
    """Bag-of-words vector over *vocabulary*; topical texts share directions.

    Text with none of the words maps to the zero vector, similar to nothing.
    """
    lowered = text.lower()
    return [float(lowered.count(word)) for word in vocabulary]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    When *vocabulary* is given, vectors are keyword counts so texts about
    the same topic are similar; otherwise vectors are hash based.
    """

    def __init__(
        self,
        vocabulary: list[str] | None = None,
        fail: bool = False,
        max_chars: int = 8000,
    ) -> None:
        self.vocabulary = vocabulary
        self.fail = fail
        self.max_chars = max_chars
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingError(message="embedding backend down", provider_name="mock-embedding")
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return len(self.vocabulary) if self.vocabulary else _EMBEDDING_DIM

    def get_max_input_chars(self) -> int:
        return self.max_chars

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True

    def _vector(self, text: str) -> list[float]:
        if self.vocabulary:
            return keyword_vector(text, self.vocabulary)
        return _hash_to_vector(text)


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


class MockVectorStore(IVectorStoreProvider):
    """In-memory chunk store backed by a dict keyed on chunk id."""

    def __init__(self) -> None:
        self._store: dict[str, Chunk] = {}
        self.fail_on_add = False

    async def add_chunks(self, chunks: list[Chunk]) -> int:
        if self.fail_on_add:
            from src.utils.errors import VectorStoreError

            raise VectorStoreError(message="store offline", provider_name="memory")
        for chunk in chunks:
            self._store[chunk.id] = chunk
        return len(chunks)

    async def get_chunks(
        self,
        document_ids: list[str],
        workspace_id: str | None = None,
        include_embeddings: bool = True,
    ) -> list[Chunk]:
        order = {doc_id: i for i, doc_id in enumerate(document_ids)}
        rows = [
            c
            for c in self._store.values()
            if c.document_id in order and (workspace_id is None or c.workspace_id == workspace_id)
        ]
        if not include_embeddings:
            rows = [c.model_copy(update={"embedding": None}) for c in rows]
        return sorted(rows, key=lambda c: (order[c.document_id], c.chunk_index))

    async def query(
        self,
        vector: list[float],
        top_k: int = 20,
        document_ids: list[str] | None = None,
        workspace_id: str | None = None,
    ) -> list[ScoredChunk]:
        candidates = [
            c
            for c in self._store.values()
            if c.embedding
            and (document_ids is None or c.document_id in document_ids)
            and (workspace_id is None or c.workspace_id == workspace_id)
        ]
        scored = [
            ScoredChunk(chunk=c, score=clamp_unit(cosine_similarity(vector, c.embedding or [])))
            for c in candidates
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:top_k]

    async def delete_by_document(self, document_id: str) -> int:
        doomed = [cid for cid, c in self._store.items() if c.document_id == document_id]
        for cid in doomed:
            del self._store[cid]
        return len(doomed)

    async def count(self, document_ids: list[str] | None = None) -> int:
        if document_ids is None:
            return len(self._store)
        return sum(1 for c in self._store.values() if c.document_id in document_ids)

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


class MockDocumentRepository(IDocumentRepository):
    """In-memory document and subject repository."""

    def __init__(self) -> None:
        self.documents: dict[str, Document] = {}
        self.subjects: dict[str, list[Subject]] = {}

    async def initialize(self) -> None:
        return None

    async def save_document(self, document: Document) -> Document:
        self.documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    async def list_documents(self, workspace_id: str | None = None) -> list[Document]:
        return [
            d
            for d in self.documents.values()
            if workspace_id is None or d.workspace_id == workspace_id
        ]

    async def replace_subjects(self, document_id: str, subjects: list[Subject]) -> int:
        self.subjects[document_id] = list(subjects)
        return len(subjects)

    async def get_subjects(self, document_id: str) -> list[Subject]:
        return list(self.subjects.get(document_id, []))

    async def get_subjects_by_ids(self, subject_ids: list[str]) -> list[Subject]:
        by_id = {s.id: s for subjects in self.subjects.values() for s in subjects}
        return [by_id[sid] for sid in subject_ids if sid in by_id]

    def get_provider_name(self) -> str:
        return "memory_documents"


class MockDocumentSource(IDocumentSource):
    """Serves uploads registered with :meth:`add`."""

    def __init__(self) -> None:
        self._docs: dict[str, SourceDocument] = {}
        self.tokens: list[str | None] = []

    def add(
        self,
        document_id: str,
        text: str,
        filename: str = "notes.txt",
        mime_type: str = "text/plain",
        workspace_id: str = "",
    ) -> None:
        self._docs[document_id] = SourceDocument(
            document_id=document_id,
            content=text.encode("utf-8"),
            mime_type=mime_type,
            filename=filename,
            workspace_id=workspace_id,
        )

    async def fetch(self, document_id: str, auth_token: str | None = None) -> SourceDocument:
        self.tokens.append(auth_token)
        if document_id not in self._docs:
            raise DocumentNotFoundError(message=f"Document {document_id} not found")
        return self._docs[document_id]

    def get_provider_name(self) -> str:
        return "memory_source"


class PlainTextExtractor(ITextExtractor):
    """Decodes bytes as UTF-8; the text already carries any page markers."""

    async def extract(
        self,
        content: bytes,
        mime_type: str,
        filename: str,
        language: str | None = None,
        add_page_markers: bool = True,
    ) -> str:
        return content.decode("utf-8")

    def supports(self, mime_type: str, filename: str) -> bool:
        return True


class MockLLMProvider(ILLMProvider):
    """Returns a canned reply, or raises when *error* is set."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> str:
        self.prompts.append(user_prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "mock-llm"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def embedding_manager(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingManager:
    return EmbeddingManager(
        provider=mock_embedding_provider,
        cache=MemoryCacheProvider(max_size=1000),
        batch_size=10,
        timeout_s=5.0,
    )


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def mock_repository() -> MockDocumentRepository:
    return MockDocumentRepository()


@pytest.fixture
def mock_document_source() -> MockDocumentSource:
    return MockDocumentSource()


@pytest.fixture
def plain_text_extractor() -> PlainTextExtractor:
    return PlainTextExtractor()


def make_chunk(
    document_id: str,
    index: int,
    text: str,
    embedding: list[float] | None = None,
    workspace_id: str = "",
    page_number: int = 1,
) -> Chunk:
    """Build a chunk with plausible offsets for *text*."""
    start = index * 1000
    return Chunk(
        id=f"{document_id}:{index}",
        document_id=document_id,
        workspace_id=workspace_id,
        chunk_index=index,
        text=text,
        start_char=start,
        end_char=start + max(1, len(text)),
        page_number=page_number,
        embedding=embedding,
    )
