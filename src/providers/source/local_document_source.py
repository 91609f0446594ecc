"""Document source backed by a local upload directory.

Uploads live at ``<upload_dir>/<document_id>/<filename>``, one file per
document directory.  The CLI writes files there with :meth:`store`; an
application that shares the disk can do the same.  The auth token is
ignored because the directory is trusted.
"""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path

import structlog

from src.interfaces.document_source import IDocumentSource, SourceDocument
from src.utils.errors import DocumentNotFoundError, TextExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MIME_TYPE = "application/octet-stream"


class LocalDocumentSource(IDocumentSource):
    """Reads uploaded documents from ``upload_dir``."""

    def __init__(self, upload_dir: str | Path = "data/uploads") -> None:
        self._upload_dir = Path(upload_dir)

    async def fetch(self, document_id: str, auth_token: str | None = None) -> SourceDocument:
        path = self._find_file(document_id)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise TextExtractionError(
                message=f"Could not read upload for document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        mime_type = mimetypes.guess_type(path.name)[0] or _DEFAULT_MIME_TYPE
        logger.info(
            "document_fetched",
            document_id=document_id,
            filename=path.name,
            bytes=len(content),
        )
        return SourceDocument(
            document_id=document_id,
            content=content,
            mime_type=mime_type,
            filename=path.name,
        )

    async def store(self, document_id: str, filename: str, content: bytes) -> Path:
        """Write *content* as the upload for *document_id*, replacing any previous file."""
        doc_dir = self._document_dir(document_id)
        doc_dir.mkdir(parents=True, exist_ok=True)
        for old in doc_dir.iterdir():
            if old.is_file():
                old.unlink()
        target = doc_dir / Path(filename).name
        await asyncio.to_thread(target.write_bytes, content)
        logger.info("document_stored", document_id=document_id, path=str(target))
        return target

    def get_provider_name(self) -> str:
        return "local_files"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _document_dir(self, document_id: str) -> Path:
        # Ids map straight to directory names, so anything path-like is rejected.
        if not document_id or "/" in document_id or "\\" in document_id or document_id in {".", ".."}:
            raise DocumentNotFoundError(
                message=f"Invalid document id: {document_id!r}",
                provider_name=self.get_provider_name(),
            )
        return self._upload_dir / document_id

    def _find_file(self, document_id: str) -> Path:
        doc_dir = self._document_dir(document_id)
        files = sorted(p for p in doc_dir.iterdir() if p.is_file()) if doc_dir.is_dir() else []
        if not files:
            raise DocumentNotFoundError(
                message=f"No upload found for document {document_id}",
                provider_name=self.get_provider_name(),
            )
        return files[0]
