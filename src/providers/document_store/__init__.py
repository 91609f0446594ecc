"""Document metadata persistence providers.

SQLiteDocumentRepository stores document records (status, language, chunk
counts) and the subjects derived from each document in data/documents.db.
"""

from src.providers.document_store.sqlite_document_repository import SQLiteDocumentRepository

__all__ = ["SQLiteDocumentRepository"]
