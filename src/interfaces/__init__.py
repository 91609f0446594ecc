"""Public interface definitions for all external service providers.

Every external service the core touches is accessed through the abstract
base classes defined in this package.  Concrete adapters implement these
interfaces and are injected at startup (``src/main.py`` and the CLI
factories), so the services never import an SDK directly and unit tests can
pass in fakes.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider,
                                  FastEmbedEmbeddingProvider
    ICacheProvider             →  MemoryCacheProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IDocumentRepository        →  SQLiteDocumentRepository
    ITextExtractor             →  LocalTextExtractor
    IDocumentSource            →  LocalDocumentSource, HttpDocumentSource
    ILLMProvider               →  OpenAILLMProvider, AnthropicLLMProvider,
                                  OllamaLLMProvider
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.document_source import IDocumentSource, SourceDocument
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_extractor import PAGE_MARKER_TEMPLATE, ITextExtractor
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IDocumentRepository",
    "IDocumentSource",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ITextExtractor",
    "IVectorStoreProvider",
    "PAGE_MARKER_TEMPLATE",
    "SourceDocument",
]
