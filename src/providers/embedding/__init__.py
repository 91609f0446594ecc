"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in ChromaDB next to each chunk and compared by the
cluster engine and the relevance scorer.

Two implementations of IEmbeddingProvider:
    1. OpenAIEmbeddingProvider    -- text-embedding-3-small (1536 dims).
       Selected when an OpenAI key is configured.
    2. FastEmbedEmbeddingProvider -- ONNX-based, local, no API key.
       Selected otherwise (or explicitly via EMBEDDING_PROVIDER=fastembed).

Note: FastEmbedEmbeddingProvider is imported directly where needed so this
package imports cleanly without the optional ``fastembed`` extra.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
