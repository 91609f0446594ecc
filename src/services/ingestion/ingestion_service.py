"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **fetch -> extract -> detect -> chunk -> embed -> store**.

The :class:`IngestionService` coordinates its collaborators (document
source, text extractor, chunker, embedding manager, chunk store, document
repository) without any of them knowing about each other.  All of them are
injected, so providers can be swapped (e.g. OpenAI -> FastEmbed) without
changing this class.

Failure policy:

* Fetch or extraction failure (including the extraction timeout) is fatal
  for the run: the document is marked ``failed`` with the reason.
* Failure to clear a document's previous chunks is fatal as well.
* An embedding or store failure only skips the affected batch; the run
  succeeds as long as at least one batch was stored.

:meth:`IngestionService.schedule` starts a run in the background and
returns immediately so an HTTP trigger does not wait for embedding.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from src.models.document import Document, DocumentStatus, IngestionResult, utc_now
from src.services.ingestion.chunker import TextChunker
from src.utils.errors import (
    DocumentNotFoundError,
    ProviderError,
    TextExtractionError,
    VectorStoreError,
)
from src.utils.text_normalizer import detect_language, has_non_segmentable_script, normalize_text

if TYPE_CHECKING:
    from src.interfaces.document_repository import IDocumentRepository
    from src.interfaces.document_source import IDocumentSource, SourceDocument
    from src.interfaces.text_extractor import ITextExtractor
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.document import Chunk
    from src.services.embedding_manager import EmbeddingManager

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 10
_DEFAULT_EXTRACTION_TIMEOUT_S = 120.0


class IngestionService:
    """Runs the ingestion pipeline up to storage for one document at a time.

    Parameters
    ----------
    document_source:
        Turns a document id (+ auth token) into the uploaded bytes.
    text_extractor:
        Bytes -> text with ``==== Page N ====`` markers.
    chunker:
        Page-aware chunker.
    embedding_manager:
        Cached, batched embedding generation.
    vector_store:
        Persisted chunk store.
    repository:
        Document status records.
    batch_size:
        Chunks embedded and stored per batch (default 10).
    extraction_timeout_s:
        Upper bound on text extraction.
    max_chunks:
        Default chunk cap per document; the chunker's own cap when ``None``.
    """

    def __init__(
        self,
        document_source: IDocumentSource,
        text_extractor: ITextExtractor,
        chunker: TextChunker,
        embedding_manager: EmbeddingManager,
        vector_store: IVectorStoreProvider,
        repository: IDocumentRepository,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        extraction_timeout_s: float = _DEFAULT_EXTRACTION_TIMEOUT_S,
        max_chunks: int | None = None,
    ) -> None:
        self._document_source = document_source
        self._text_extractor = text_extractor
        self._chunker = chunker
        self._embedding_manager = embedding_manager
        self._vector_store = vector_store
        self._repository = repository
        self._batch_size = max(1, batch_size)
        self._extraction_timeout_s = extraction_timeout_s
        self._max_chunks = max_chunks
        # Strong references keep scheduled runs alive until they finish.
        self._tasks: set[asyncio.Task[IngestionResult]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        document_id: str,
        auth_token: str | None = None,
        workspace_id: str | None = None,
        max_chunks: int | None = None,
    ) -> IngestionResult:
        """Ingest *document_id* end to end and record the outcome.

        Never raises for fetch, extraction, embedding or store failures;
        they are reported through the returned result and the stored
        document status.
        """
        start = time.monotonic()
        document = await self._repository.get_document(document_id)

        try:
            source = await self._document_source.fetch(document_id, auth_token=auth_token)
        except (DocumentNotFoundError, TextExtractionError) as exc:
            return await self._fail(
                document or Document(id=document_id, workspace_id=workspace_id or ""),
                str(exc),
                start,
            )

        document = self._document_for(document, source, workspace_id)
        document = await self._save(document, status=DocumentStatus.PROCESSING, error_message=None)

        try:
            text = await self._extract(source)
        except TextExtractionError as exc:
            return await self._fail(document, str(exc), start)

        language = detect_language(text)
        non_latin = has_non_segmentable_script(text)
        # Whitespace cleanup is skipped for scripts it can mangle.
        cleaned = text if non_latin else normalize_text(text)
        if not cleaned.strip():
            return await self._fail(
                document.model_copy(update={"language": language}),
                "No extractable text in document",
                start,
            )

        chunks = self._chunker.chunk(
            cleaned,
            document_id=document_id,
            workspace_id=document.workspace_id,
            max_chunks=max_chunks if max_chunks is not None else self._max_chunks,
        )
        document = await self._save(
            document,
            language=language,
            char_length=len(cleaned),
            has_non_latin_script=non_latin,
        )

        embed_start = time.monotonic()
        try:
            await self._vector_store.delete_by_document(document_id)
        except (ProviderError, VectorStoreError) as exc:
            return await self._fail(
                document,
                f"Could not clear previous chunks: {exc}",
                start,
                chunks_created=len(chunks),
            )
        stored, failed_batches = await self._embed_and_store(chunks)
        embedding_duration = time.monotonic() - embed_start

        if chunks and stored == 0:
            return await self._fail(
                document,
                f"All {failed_batches} embedding batches failed",
                start,
                chunks_created=len(chunks),
                failed_batches=failed_batches,
            )

        await self._save(
            document,
            status=DocumentStatus.READY,
            chunk_count=stored,
            embedding_duration_s=round(embedding_duration, 3),
        )
        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "ingestion_complete",
            document_id=document_id,
            language=language,
            chunks=len(chunks),
            stored=stored,
            failed_batches=failed_batches,
            time_s=elapsed,
        )
        return IngestionResult(
            document_id=document_id,
            status=DocumentStatus.READY,
            language=language,
            chunks_created=len(chunks),
            chunks_stored=stored,
            failed_batches=failed_batches,
            ingestion_time=elapsed,
        )

    def schedule(
        self,
        document_id: str,
        auth_token: str | None = None,
        workspace_id: str | None = None,
        max_chunks: int | None = None,
    ) -> asyncio.Task[IngestionResult]:
        """Start :meth:`ingest` in the background and return its task."""
        task = asyncio.create_task(
            self.ingest(
                document_id,
                auth_token=auth_token,
                workspace_id=workspace_id,
                max_chunks=max_chunks,
            ),
            name=f"ingest:{document_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("ingestion_scheduled", document_id=document_id, pending=len(self._tasks))
        return task

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled run to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _extract(self, source: SourceDocument) -> str:
        try:
            return await asyncio.wait_for(
                self._text_extractor.extract(
                    source.content,
                    source.mime_type,
                    source.filename,
                    add_page_markers=True,
                ),
                timeout=self._extraction_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise TextExtractionError(
                message=f"Text extraction timed out after {self._extraction_timeout_s}s",
            ) from exc

    async def _embed_and_store(self, chunks: list[Chunk]) -> tuple[int, int]:
        """Embed and store *chunks* batch by batch; return ``(stored, failed_batches)``."""
        stored = 0
        failed = 0
        for i in range(0, len(chunks), self._batch_size):
            batch = chunks[i : i + self._batch_size]
            try:
                vectors = await self._embedding_manager.embed_batch([c.text for c in batch])
                embedded = [c.with_embedding(v) for c, v in zip(batch, vectors, strict=True)]
                stored += await self._vector_store.add_chunks(embedded)
            except (ProviderError, VectorStoreError) as exc:
                failed += 1
                logger.warning(
                    "ingestion_batch_skipped",
                    document_id=batch[0].document_id,
                    first_chunk=batch[0].chunk_index,
                    size=len(batch),
                    error=str(exc),
                )
        return stored, failed

    # ------------------------------------------------------------------
    # Document bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _document_for(
        existing: Document | None,
        source: SourceDocument,
        workspace_id: str | None,
    ) -> Document:
        workspace = workspace_id or source.workspace_id or (existing.workspace_id if existing else "")
        if existing is None:
            return Document(
                id=source.document_id,
                workspace_id=workspace,
                filename=source.filename,
                mime_type=source.mime_type,
            )
        return existing.model_copy(
            update={
                "workspace_id": workspace,
                "filename": existing.filename or source.filename,
                "mime_type": existing.mime_type or source.mime_type,
            }
        )

    async def _save(self, document: Document, **updates: object) -> Document:
        updated = document.model_copy(update={**updates, "updated_at": utc_now()})
        return await self._repository.save_document(updated)

    async def _fail(
        self,
        document: Document,
        reason: str,
        start: float,
        chunks_created: int = 0,
        failed_batches: int = 0,
    ) -> IngestionResult:
        logger.error("ingestion_failed", document_id=document.id, error=reason)
        await self._save(document, status=DocumentStatus.FAILED, error_message=reason)
        return IngestionResult(
            document_id=document.id,
            status=DocumentStatus.FAILED,
            language=document.language,
            chunks_created=chunks_created,
            failed_batches=failed_batches,
            ingestion_time=round(time.monotonic() - start, 3),
            error_message=reason,
        )
