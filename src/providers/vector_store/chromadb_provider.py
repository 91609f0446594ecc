"""ChromaDB chunk store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local and Python-native,
no external service required.

Every row is one chunk: the chunk id is the ChromaDB id, the chunk text is
the ChromaDB document, the vector is passed in pre-computed, and the typed
chunk metadata plus ``document_id``/``workspace_id`` go into the metadata
map so scoped reads can use ``where`` clauses.
"""

from __future__ import annotations

import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  The bundled
# PostHog client can break on version mismatches, so it is switched off
# through the env var, the PostHog SDK flag and the client Settings.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import Chunk
from src.models.retrieval import ScoredChunk, ScoringStrategy
from src.utils.errors import VectorStoreError
from src.utils.similarity import clamp_unit

logger = structlog.get_logger(logger_name=__name__)

# Metadata keys owned by the store; anything else round-trips through Chunk.extra.
_EXTRA_PREFIX = "extra_"
_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Chunks always arrive with pre-computed embeddings, so ChromaDB's
    built-in embedding is never invoked.  Without this, ChromaDB downloads
    and loads its default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Chunks carry pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Chunk store backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory for ChromaDB's on-disk data.
    collection_name:
        Name of the chunk collection.
    expected_dimension:
        Dimension of the configured embedding provider.  When given, the
        first stored vector is checked against it at startup.
    batch_size:
        Upsert page size for :meth:`add_chunks`.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "document_chunks",
        expected_dimension: int | None = None,
        batch_size: int = 500,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._batch_size = batch_size
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by older ChromaDB versions reject a different
        # embedding function; reopen them with whatever was persisted.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        if expected_dimension is not None:
            self._validate_embedding_dimensions(expected_dimension)

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self, expected_dim: int) -> None:
        """Verify the configured embedding dimension matches stored vectors.

        A mismatch would make every vector comparison fail, so it is
        logged loudly.  Retrieval still works through lexical scoring.
        """
        try:
            collection_count = self._collection.count()
            if collection_count == 0:
                return

            sample = self._collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return

            stored_dim = len(embeddings[0])
            if stored_dim != expected_dim:
                logger.error(
                    "embedding_dimension_mismatch",
                    stored_dim=stored_dim,
                    expected_dim=expected_dim,
                    collection=self._collection_name,
                )
                return

            logger.info(
                "embedding_dimension_validated",
                dimension=stored_dim,
                stored_chunks=collection_count,
            )
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[Chunk]) -> int:
        """Upsert embedded chunks in pages of ``batch_size`` rows.

        Paging bounds peak memory, since ChromaDB builds internal
        structures proportional to each upsert.
        """
        if not chunks:
            return 0
        missing = [c.id for c in chunks if c.embedding is None]
        if missing:
            raise VectorStoreError(
                message=f"{len(missing)} chunk(s) have no embedding, e.g. {missing[0]}",
                provider_name=self.get_provider_name(),
            )

        try:
            total_stored = 0
            for start in range(0, len(chunks), self._batch_size):
                batch = chunks[start : start + self._batch_size]
                self._collection.upsert(
                    ids=[c.id for c in batch],
                    embeddings=[c.embedding for c in batch],
                    documents=[c.text for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
                total_stored += len(batch)

            logger.info(
                "chromadb_add_chunks",
                count=total_stored,
                batches=(len(chunks) + self._batch_size - 1) // self._batch_size,
            )
            return total_stored

        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB add_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_chunks(
        self,
        document_ids: list[str],
        workspace_id: str | None = None,
        include_embeddings: bool = True,
    ) -> list[Chunk]:
        """Return every chunk of *document_ids*, grouped by document, ordered by index.

        Paginates in 5K-row pages to stay under SQLite's bind-parameter
        limit on large documents.
        """
        if not document_ids:
            return []
        include = ["documents", "metadatas"]
        if include_embeddings:
            include.append("embeddings")

        try:
            where = self._build_where(document_ids, workspace_id)
            chunks: list[Chunk] = []
            offset = 0
            while True:
                page = self._collection.get(
                    where=where,
                    include=include,
                    limit=_PAGE_SIZE,
                    offset=offset,
                )
                ids = page["ids"] or []
                if not ids:
                    break
                documents = page["documents"] or [""] * len(ids)
                metadatas = page["metadatas"] or [{}] * len(ids)
                embeddings = page.get("embeddings") if include_embeddings else None
                for i, chunk_id in enumerate(ids):
                    vector = embeddings[i] if embeddings is not None else None
                    chunks.append(
                        self._row_to_chunk(chunk_id, documents[i], metadatas[i], vector)
                    )
                if len(ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        order = {doc_id: pos for pos, doc_id in enumerate(document_ids)}
        chunks.sort(key=lambda c: (order.get(c.document_id, len(order)), c.chunk_index))
        logger.debug(
            "chromadb_get_chunks",
            documents=len(document_ids),
            workspace_id=workspace_id,
            count=len(chunks),
        )
        return chunks

    async def query(
        self,
        vector: list[float],
        top_k: int = 20,
        document_ids: list[str] | None = None,
        workspace_id: str | None = None,
    ) -> list[ScoredChunk]:
        """Nearest-neighbour search; similarity is ``1 - cosine distance`` clamped to [0, 1]."""
        try:
            total = self._collection.count()
            if total == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(top_k, total),
                "include": ["documents", "metadatas", "distances", "embeddings"],
            }
            where = self._build_where(document_ids, workspace_id)
            if where:
                kwargs["where"] = where

            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)
        embeddings = results.get("embeddings")
        vectors = embeddings[0] if embeddings is not None and len(embeddings) else [None] * len(ids)

        scored = [
            ScoredChunk(
                chunk=self._row_to_chunk(chunk_id, text, meta, vector),
                score=clamp_unit(1.0 - distance),
                strategy=ScoringStrategy.VECTOR,
            )
            for chunk_id, text, meta, distance, vector in zip(
                ids, documents, metadatas, distances, vectors, strict=True
            )
        ]
        scored.sort(key=lambda sc: sc.score, reverse=True)
        logger.info(
            "chromadb_query",
            results_count=len(scored),
            top_score=scored[0].score if scored else 0.0,
        )
        return scored

    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks belonging to *document_id*."""
        try:
            existing = self._collection.get(where={"document_id": document_id}, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(where={"document_id": document_id})

            logger.info(
                "chromadb_delete_by_document",
                document_id=document_id,
                deleted_count=count,
            )
            return count

        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def count(self, document_ids: list[str] | None = None) -> int:
        try:
            if not document_ids:
                return self._collection.count()
            existing = self._collection.get(
                where=self._build_where(document_ids, None),
                include=[],
            )
            return len(existing["ids"]) if existing["ids"] else 0
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_where(
        document_ids: list[str] | None,
        workspace_id: str | None,
    ) -> dict[str, Any] | None:
        """Translate the scope arguments to a ChromaDB ``where`` clause."""
        clauses: list[dict[str, Any]] = []
        if document_ids:
            if len(document_ids) == 1:
                clauses.append({"document_id": document_ids[0]})
            else:
                clauses.append({"document_id": {"$in": list(document_ids)}})
        if workspace_id is not None:
            clauses.append({"workspace_id": workspace_id})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk) -> dict[str, str | int | float | bool]:
        """Convert a Chunk to a ChromaDB-compatible metadata dict.

        ChromaDB metadata values must be str, int, float, or bool, which is
        exactly what :class:`ChunkMetadata` allows.
        """
        meta = chunk.metadata
        row: dict[str, str | int | float | bool] = {
            "document_id": chunk.document_id,
            "workspace_id": chunk.workspace_id,
            "start_char": meta.start_char,
            "end_char": meta.end_char,
            "page_number": meta.page_number,
            "chunk_index": meta.chunk_index,
            "total_chunks": meta.total_chunks,
        }
        for key, value in meta.extra.items():
            row[f"{_EXTRA_PREFIX}{key}"] = value
        return row

    @staticmethod
    def _row_to_chunk(
        chunk_id: str,
        text: str | None,
        meta: dict[str, Any] | None,
        vector: Any,
    ) -> Chunk:
        """Rebuild a Chunk from a stored row (reverse of :meth:`_chunk_to_metadata`)."""
        meta = meta or {}
        extra = {
            key[len(_EXTRA_PREFIX) :]: value
            for key, value in meta.items()
            if key.startswith(_EXTRA_PREFIX)
        }
        start_char = int(meta.get("start_char", 0))
        end_char = int(meta.get("end_char", start_char + max(1, len(text or ""))))
        return Chunk(
            id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            workspace_id=str(meta.get("workspace_id", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            text=text or "",
            start_char=start_char,
            end_char=end_char,
            page_number=int(meta.get("page_number", 1)),
            total_chunks=int(meta.get("total_chunks", 0)),
            # ChromaDB returns numpy arrays for embeddings.
            embedding=[float(x) for x in vector] if vector is not None else None,
            extra=extra,
        )
