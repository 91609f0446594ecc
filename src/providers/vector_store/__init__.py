"""Chunk store provider implementations.

ChromaDB is the sole chunk store implementation.  It keeps chunk text,
typed chunk metadata and pre-computed embeddings on disk and supports
cosine-similarity search scoped by document and workspace.  Data persists
at CHROMADB_PERSIST_DIR (default: data/chromadb).

To swap ChromaDB for another vector database (Qdrant, pgvector), create a
new class implementing IVectorStoreProvider and register it in main.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
