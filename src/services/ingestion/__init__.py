"""Document ingestion pipeline.

Orchestrates the full pipeline: **fetch -> extract -> chunk -> embed -> store**.

Pipeline stages overview:

1. **Fetch** (via IDocumentSource) -- Turns a document id plus the caller's
   auth token into the uploaded bytes.

2. **Extract** (via ITextExtractor) -- Converts PDF or plain-text bytes into
   text with ``==== Page N ====`` marker lines.

3. **Chunk** (chunker.py / TextChunker) -- Splits each page into
   ~1800-character overlapping chunks on sentence boundaries, or fixed
   windows for scripts without reliable sentence punctuation.

4. **Embed** (via EmbeddingManager) -- Generates cached, batched vectors
   for each chunk's text.

5. **Store** (via IVectorStoreProvider) -- Persists embedded chunks to the
   chunk store; the document record goes to IDocumentRepository.

The IngestionService class orchestrates all five stages and can also run
them as a background task.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "IngestionService",
    "TextChunker",
]
