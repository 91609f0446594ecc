"""Abstract base class for the relational document/subject metadata store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import Document
from src.models.subject import Subject


# Concrete implementation: SQLiteDocumentRepository (src/providers/document_store/)
class IDocumentRepository(ABC):
    """Contract for persisting document records and derived subjects."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they do not exist."""

    @abstractmethod
    async def save_document(self, document: Document) -> Document:
        """Insert or replace *document*; return the stored record."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def list_documents(self, workspace_id: str | None = None) -> list[Document]:
        """Return documents, newest first, optionally scoped to a workspace."""

    @abstractmethod
    async def replace_subjects(self, document_id: str, subjects: list[Subject]) -> int:
        """Replace every subject of *document_id* with *subjects*; return the count."""

    @abstractmethod
    async def get_subjects(self, document_id: str) -> list[Subject]:
        """Return the subjects of *document_id* in stored order."""

    @abstractmethod
    async def get_subjects_by_ids(self, subject_ids: list[str]) -> list[Subject]:
        """Return the subjects with the given ids (unknown ids are skipped)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_documents"``."""
