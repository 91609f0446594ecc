"""Document relevance core FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

Also exposes :func:`build_components` so the CLI assembles exactly the same
services as the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.document_source import IDocumentSource
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.document_store.sqlite_document_repository import SQLiteDocumentRepository
from src.providers.extraction.local_text_extractor import LocalTextExtractor
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.source.http_document_source import HttpDocumentSource
from src.providers.source.local_document_source import LocalDocumentSource
from src.services.cluster_engine import ClusterEngine
from src.services.embedding_manager import EmbeddingManager
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.relevance_scorer import RelevanceScorer
from src.services.retrieval_service import RetrievalService
from src.services.subject_labeler import SubjectLabeler
from src.services.subject_service import SubjectService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available LLM provider based on configured API keys.

    Priority order: Anthropic -> OpenAI -> Ollama (always constructed; a
    server that is not running only means default subject titles).
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding provider from ``EMBEDDING_PROVIDER``.

    ``openai`` and ``fastembed`` force a provider; ``auto`` uses OpenAI
    when a key is configured and FastEmbed otherwise.  Imports are
    deferred so an OpenAI deployment never loads ONNX Runtime.

    Raises
    ------
    ConfigurationError
        If the requested provider cannot be used.
    """
    choice = (app_settings.embedding_provider or "auto").strip().lower()
    if choice not in {"auto", "openai", "fastembed"}:
        raise ConfigurationError(
            message=f"Unknown EMBEDDING_PROVIDER '{choice}' (expected auto, openai or fastembed)"
        )

    if choice in {"auto", "openai"} and app_settings.openai_api_key:
        from src.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider
    if choice == "openai":
        raise ConfigurationError(
            message="EMBEDDING_PROVIDER=openai but OPENAI_API_KEY is not set",
            provider_name="openai_embedding",
        )

    from src.providers.embedding.fastembed_embedding_provider import (
        FastEmbedEmbeddingProvider,
    )

    provider = FastEmbedEmbeddingProvider(model_name=app_settings.fastembed_model or None)
    if not provider.is_available():
        raise ConfigurationError(
            message="No embedding provider available: set OPENAI_API_KEY or install fastembed",
            provider_name=provider.get_provider_name(),
        )
    return provider


def _build_document_source(app_settings: Settings) -> IDocumentSource:
    """HTTP source when ``DOCUMENT_SOURCE_URL`` is set, the upload directory otherwise."""
    if app_settings.document_source_url:
        return HttpDocumentSource(
            base_url=app_settings.document_source_url,
            timeout_s=app_settings.extraction_timeout_s,
        )
    return LocalDocumentSource(upload_dir=app_settings.upload_dir)


# ---------------------------------------------------------------------------
# Component assembly (shared by the API and the CLI)
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service from settings and resolved config.

    Parameters
    ----------
    app_settings:
        Credentials, paths and provider choices.
    app_config:
        Resolved tunables from :func:`load_config`; loaded when omitted.

    Returns
    -------
    dict
        Named components, stored on ``app.state`` by the API.
    """
    cfg = app_config if app_config is not None else load_config(settings=app_settings)
    chunking = cfg.get("chunking", {})
    embedding = cfg.get("embedding", {})
    clustering = cfg.get("clustering", {})
    retrieval = cfg.get("retrieval", {})
    extraction = cfg.get("extraction", {})

    # -- Providers --
    embedding_provider = _build_embedding_provider(app_settings)
    llm = _build_llm_provider(app_settings)
    cache = MemoryCacheProvider(max_size=int(embedding.get("cache_size", 1000)))
    document_source = _build_document_source(app_settings)
    text_extractor = LocalTextExtractor()
    repository = SQLiteDocumentRepository(db_path=app_settings.document_db_path)

    from src.providers.vector_store.chromadb_provider import ChromaDBProvider

    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        expected_dimension=embedding_provider.get_dimension(),
    )

    # -- Services --
    embedding_manager = EmbeddingManager(
        provider=embedding_provider,
        cache=cache,
        batch_size=int(embedding.get("batch_size", 10)),
        timeout_s=float(embedding.get("timeout_s", 30.0)),
    )
    chunker = TextChunker(
        chunk_size=int(chunking.get("chunk_size", 1800)),
        overlap=int(chunking.get("chunk_overlap", 300)),
        max_chunks=int(chunking.get("max_chunks", 100)),
    )
    extraction_timeout = float(extraction.get("timeout_s", 120.0))

    ingestion_service = IngestionService(
        document_source=document_source,
        text_extractor=text_extractor,
        chunker=chunker,
        embedding_manager=embedding_manager,
        vector_store=vector_store,
        repository=repository,
        batch_size=int(embedding.get("batch_size", 10)),
        extraction_timeout_s=extraction_timeout,
        max_chunks=int(chunking.get("ingestion_max_chunks", 200)),
    )
    subject_service = SubjectService(
        vector_store=vector_store,
        repository=repository,
        cluster_engine=ClusterEngine(
            similarity_threshold=float(clustering.get("similarity_threshold", 0.60)),
            target_groups=int(clustering.get("target_count", 8)),
        ),
        labeler=SubjectLabeler(
            llm=llm,
            timeout_s=float(clustering.get("labeling_timeout_s", 60.0)),
        ),
        max_subjects=int(clustering.get("max_subjects", 10)),
    )
    retrieval_service = RetrievalService(
        vector_store=vector_store,
        scorer=RelevanceScorer(embedding_manager=embedding_manager),
        document_source=document_source,
        text_extractor=text_extractor,
        per_document_concurrency=int(retrieval.get("per_document_concurrency", 4)),
        extraction_timeout_s=extraction_timeout,
        max_results=int(retrieval.get("max_results", 40)),
        nearest_neighbour_threshold=int(retrieval.get("nearest_neighbour_threshold", 2000)),
    )

    _logger.info(
        "components_built",
        embedding_provider=embedding_provider.get_provider_name(),
        llm=llm.get_provider_name(),
        document_source=document_source.get_provider_name(),
        persist_dir=app_settings.chromadb_persist_dir,
    )

    return {
        "embedding_provider": embedding_provider,
        "primary_llm": llm,
        "document_source": document_source,
        "text_extractor": text_extractor,
        "vector_store": vector_store,
        "document_repository": repository,
        "embedding_manager": embedding_manager,
        "ingestion_service": ingestion_service,
        "subject_service": subject_service,
        "retrieval_service": retrieval_service,
    }


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct all components plus the provider metadata used by /health and /providers."""
    components = build_components(app_settings, app_config)
    embedding_provider: IEmbeddingProvider = components["embedding_provider"]
    llm: ILLMProvider = components["primary_llm"]

    # -- Provider registry for /health --
    provider_registry: dict[str, bool] = {
        "embedding": embedding_provider.is_available(),
        "llm": llm.is_available(),
        "extraction": True,
        "document_source": True,
    }

    # -- Provider list for /providers --
    provider_list: list[dict[str, Any]] = [
        {
            "name": embedding_provider.get_provider_name(),
            "type": "embedding",
            "available": provider_registry["embedding"],
        },
        {"name": llm.get_provider_name(), "type": "llm", "available": provider_registry["llm"]},
    ]
    for key, provider_type in (
        ("vector_store", "vector_store"),
        ("document_repository", "document_store"),
        ("text_extractor", "extraction"),
        ("document_source", "document_source"),
    ):
        provider_list.append(
            {"name": components[key].get_provider_name(), "type": provider_type, "available": True}
        )

    return {
        **components,
        "provider_registry": provider_registry,
        "provider_list": provider_list,
        "primary_llm_name": llm.get_provider_name(),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["document_repository"].initialize()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        primary_llm=components["primary_llm_name"],
        providers=len(components["provider_list"]),
    )

    yield

    # -- Shutdown: let background ingestion finish, close the HTTP source --
    ingestion_service: IngestionService = components["ingestion_service"]
    pending = ingestion_service.pending_count
    await ingestion_service.drain()
    document_source = components["document_source"]
    if isinstance(document_source, HttpDocumentSource):
        await document_source.close()
    _logger.info("app_shutdown", drained_ingestions=pending)


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Document Relevance Core API",
        version=_VERSION,
        description=(
            "Ingest uploaded documents into page-aware, embedded chunks, derive "
            "labeled subjects by similarity clustering, and retrieve the content "
            "most relevant to a topic across one or more documents."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
