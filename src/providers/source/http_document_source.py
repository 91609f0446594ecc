"""Document source that fetches uploads from the calling application over HTTP.

Issues ``GET {base_url}/documents/{document_id}/content`` with the
caller's token as a bearer credential and returns the response body.  The
``Content-Type`` header gives the MIME type; the file name comes from
``Content-Disposition`` when present, and the workspace from
``X-Workspace-Id``.
"""

from __future__ import annotations

import re

import httpx
import structlog

from src.interfaces.document_source import IDocumentSource, SourceDocument
from src.utils.errors import DocumentNotFoundError, TextExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 60.0
_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


class HttpDocumentSource(IDocumentSource):
    """Fetches document bytes from the application's content endpoint."""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=True,
        )

    async def fetch(self, document_id: str, auth_token: str | None = None) -> SourceDocument:
        url = f"{self._base_url}/documents/{document_id}/content"
        headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("document_fetch_error", document_id=document_id, error=str(exc))
            raise TextExtractionError(
                message=f"Could not fetch document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code == 404:
            raise DocumentNotFoundError(
                message=f"Document {document_id} not found at source",
                provider_name=self.get_provider_name(),
            )
        if response.status_code >= 400:
            raise TextExtractionError(
                message=f"Document source returned HTTP {response.status_code} for {document_id}",
                provider_name=self.get_provider_name(),
            )

        mime_type = response.headers.get("content-type", "application/octet-stream")
        mime_type = mime_type.split(";")[0].strip()
        filename = self._filename(response.headers.get("content-disposition", ""), document_id)

        logger.info(
            "document_fetched",
            document_id=document_id,
            filename=filename,
            bytes=len(response.content),
        )
        return SourceDocument(
            document_id=document_id,
            content=response.content,
            mime_type=mime_type,
            filename=filename,
            workspace_id=response.headers.get("x-workspace-id", ""),
        )

    async def close(self) -> None:
        await self._client.aclose()

    def get_provider_name(self) -> str:
        return "http_source"

    @staticmethod
    def _filename(disposition: str, fallback: str) -> str:
        match = _FILENAME_RE.search(disposition)
        return match.group(1).strip() if match else fallback
