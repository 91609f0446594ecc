"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.  The
contract assumes nothing provider-specific beyond two numbers: the output
dimension and the maximum accepted input size.  Callers (the
:class:`~src.services.embedding_manager.EmbeddingManager`) truncate input
to :meth:`IEmbeddingProvider.get_max_input_chars` before sending it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider     — text-embedding-3-small (requires API key)
#   FastEmbedEmbeddingProvider  — local ONNX model, no API key
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    Vectors produced here are persisted by
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider` and
    compared by the cluster engine and the relevance scorer.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed, each already within
            :meth:`get_max_input_chars`.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider instance.  Example values:
        ``1536`` (OpenAI ``text-embedding-3-small``), ``384``
        (``BAAI/bge-small-en-v1.5``).
        """

    @abstractmethod
    def get_max_input_chars(self) -> int:
        """Return the maximum number of characters accepted per input text.

        Character-based, not token-aware.  Longer inputs are truncated by
        the caller before hashing, caching and sending.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable."""
