"""Abstract base class for the persisted chunk store.

Defines the contract for storing chunk + vector rows and reading them back
scoped by document and workspace.  One row per chunk, keyed by chunk id,
carrying the document id, content, embedding and the typed
:class:`~src.models.document.ChunkMetadata` fields.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import Chunk
from src.models.retrieval import ScoredChunk


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
# Data persists to disk at CHROMADB_PERSIST_DIR.
class IVectorStoreProvider(ABC):
    """Contract for chunk-store services.

    All methods are async to support network-backed stores without
    blocking the event loop.  Scoping arguments combine with AND:
    ``document_ids`` is an ``IN (...)`` filter and ``workspace_id`` an
    equality filter; ``None`` means "no restriction".
    """

    @abstractmethod
    async def add_chunks(self, chunks: list[Chunk]) -> int:
        """Upsert embedded chunks.

        Parameters
        ----------
        chunks:
            Chunks whose ``embedding`` is set.

        Returns
        -------
        int
            Number of chunks stored.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the write fails.
        """

    @abstractmethod
    async def get_chunks(
        self,
        document_ids: list[str],
        workspace_id: str | None = None,
        include_embeddings: bool = True,
    ) -> list[Chunk]:
        """Return every stored chunk for *document_ids*, ordered by chunk index.

        Chunks of different documents are grouped by document in the order
        of *document_ids*.
        """

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int = 20,
        document_ids: list[str] | None = None,
        workspace_id: str | None = None,
    ) -> list[ScoredChunk]:
        """Nearest-neighbour search by cosine similarity within the given scope.

        Returned chunks carry their embeddings so callers can re-score them.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks of *document_id*; return the number removed."""

    @abstractmethod
    async def count(self, document_ids: list[str] | None = None) -> int:
        """Return the number of stored chunks, optionally scoped to *document_ids*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
