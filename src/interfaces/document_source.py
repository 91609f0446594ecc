"""Abstract base class for document content sources.

The calling application triggers ingestion with a document id and an
auth token; a document source turns that pair into the uploaded bytes.
File storage itself is out of scope; this is only its boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SourceDocument:
    """Raw upload fetched from the document source.

    Attributes
    ----------
    document_id:
        Identifier of the document.
    content:
        Raw file bytes.
    mime_type:
        MIME type reported by the source.
    filename:
        Original file name.
    workspace_id:
        Workspace that owns the document, if the source knows it.
    """

    document_id: str
    content: bytes
    mime_type: str
    filename: str
    workspace_id: str = ""


# Concrete implementations: LocalDocumentSource, HttpDocumentSource
# Located in: src/providers/source/
class IDocumentSource(ABC):
    """Contract for fetching uploaded document bytes."""

    @abstractmethod
    async def fetch(self, document_id: str, auth_token: str | None = None) -> SourceDocument:
        """Fetch the upload for *document_id*.

        Raises
        ------
        src.utils.errors.DocumentNotFoundError
            If the source has no such document.
        src.utils.errors.TextExtractionError
            If the content cannot be retrieved.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local_files"``."""
