"""Document source providers.

Two implementations of IDocumentSource:
    - LocalDocumentSource -- reads uploads from UPLOAD_DIR (default data/uploads)
    - HttpDocumentSource  -- fetches uploads from DOCUMENT_SOURCE_URL with the
      caller's bearer token

main.py selects HttpDocumentSource when DOCUMENT_SOURCE_URL is set.
"""

from src.providers.source.http_document_source import HttpDocumentSource
from src.providers.source.local_document_source import LocalDocumentSource

__all__ = ["HttpDocumentSource", "LocalDocumentSource"]
