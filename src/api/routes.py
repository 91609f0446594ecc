"""FastAPI API routes for the document relevance core.

Provides REST endpoints for ingestion, document status, subject
generation, relevance search and context assembly, plus health, provider
listing and corpus statistics.  Service dependencies are resolved from
``app.state`` via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                 Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents/{id}/ingest            POST    Fetch, chunk, embed, store
# /api/v1/documents/{id}                   GET     Document status record
# /api/v1/documents/{id}/subjects          POST    Cluster + label subjects
# /api/v1/documents/{id}/subjects          GET     Stored subjects
# /api/v1/documents/{id}/chunks            DELETE  Remove stored chunks
# /api/v1/retrieval/search                 POST    Ranked relevant chunks
# /api/v1/retrieval/context                POST    Assembled context string
# /api/v1/health                           GET     Health + provider status
# /api/v1/providers                        GET     Configured providers
# /api/v1/corpus/stats                     GET     Chunk/document counts
#
# Application errors (DocCoreError subclasses) propagate out of the
# handlers and are turned into JSON bodies by ErrorHandlingMiddleware.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections import Counter
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, Request

from src.api.schemas import (
    ContextResponse,
    CorpusStatsResponse,
    DeleteChunksResponse,
    DocumentResponse,
    GenerateSubjectsRequest,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    ProvidersResponse,
    SearchChunk,
    SearchRequest,
    SearchResponse,
    SubjectsResponse,
)
from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.retrieval import RelevanceQuery
from src.services.ingestion.ingestion_service import IngestionService
from src.services.query_validator import validate_query, validate_subject_ids
from src.services.retrieval_service import RetrievalService
from src.services.subject_service import SubjectService
from src.utils.errors import DocumentNotFoundError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_subject_service(request: Request) -> SubjectService:
    """Return the subject service from application state."""
    return request.app.state.subject_service


def _get_retrieval_service(request: Request) -> RetrievalService:
    """Return the retrieval service from application state."""
    return request.app.state.retrieval_service


def _get_repository(request: Request) -> IDocumentRepository:
    """Return the document repository from application state."""
    return request.app.state.document_repository


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    """Return the chunk store from application state."""
    return request.app.state.vector_store


def _get_auth_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Extract the bearer token forwarded to the document source."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return authorization.strip()


IngestionServiceDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
SubjectServiceDep = Annotated[SubjectService, Depends(_get_subject_service)]
RetrievalServiceDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
RepositoryDep = Annotated[IDocumentRepository, Depends(_get_repository)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]
AuthTokenDep = Annotated[str | None, Depends(_get_auth_token)]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents/{document_id}/ingest",
    response_model=IngestResponse,
    status_code=202,
    summary="Ingest a document",
)
async def ingest_document(
    document_id: str,
    ingestion_service: IngestionServiceDep,
    auth_token: AuthTokenDep,
    body: IngestRequest | None = None,
) -> IngestResponse:
    """Fetch, chunk, embed and store a document.

    By default the run is scheduled in the background and the response
    returns immediately; poll ``GET /documents/{id}`` for the outcome.
    With ``wait=true`` the response carries the finished result.
    """
    options = body or IngestRequest()
    if options.wait:
        result = await ingestion_service.ingest(
            document_id,
            auth_token=auth_token,
            workspace_id=options.workspace_id,
            max_chunks=options.max_chunks,
        )
        return IngestResponse(document_id=document_id, status=result.status.value, result=result)

    ingestion_service.schedule(
        document_id,
        auth_token=auth_token,
        workspace_id=options.workspace_id,
        max_chunks=options.max_chunks,
    )
    return IngestResponse(document_id=document_id, status="accepted")


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    summary="Get a document's ingestion record",
)
async def get_document(document_id: str, repository: RepositoryDep) -> DocumentResponse:
    document = await repository.get_document(document_id)
    if document is None:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    return DocumentResponse.from_document(document)


@router.delete(
    "/documents/{document_id}/chunks",
    response_model=DeleteChunksResponse,
    summary="Delete a document's stored chunks",
)
async def delete_document_chunks(
    document_id: str,
    vector_store: VectorStoreDep,
) -> DeleteChunksResponse:
    deleted = await vector_store.delete_by_document(document_id)
    _logger.info("document_chunks_deleted", document_id=document_id, deleted=deleted)
    return DeleteChunksResponse(document_id=document_id, deleted=deleted)


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------


@router.post(
    "/documents/{document_id}/subjects",
    response_model=SubjectsResponse,
    summary="Generate subjects for a document",
)
async def generate_subjects(
    document_id: str,
    subject_service: SubjectServiceDep,
    body: GenerateSubjectsRequest | None = None,
) -> SubjectsResponse:
    """Cluster the document's chunks, label the clusters, store the subjects."""
    options = body or GenerateSubjectsRequest()
    result = await subject_service.generate(document_id, workspace_id=options.workspace_id)
    return SubjectsResponse(
        document_id=document_id,
        subjects=result.subjects,
        language=result.language,
        cluster_count=result.cluster_count,
        used_fallback_grouping=result.used_fallback_grouping,
        used_default_titles=result.used_default_titles,
    )


@router.get(
    "/documents/{document_id}/subjects",
    response_model=SubjectsResponse,
    summary="List stored subjects for a document",
)
async def list_subjects(
    document_id: str,
    subject_service: SubjectServiceDep,
    repository: RepositoryDep,
) -> SubjectsResponse:
    if await repository.get_document(document_id) is None:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    subjects = await subject_service.list_subjects(document_id)
    return SubjectsResponse(document_id=document_id, subjects=subjects)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


async def _to_query(body: SearchRequest, repository: IDocumentRepository) -> RelevanceQuery:
    """Build a validated RelevanceQuery, resolving ``subject_ids`` to subject names.

    The query and the ids are validated before the repository is read.
    """
    query = validate_query(
        RelevanceQuery(
            topic=body.topic,
            subject_terms=body.subject_terms,
            instructions=body.instructions,
            document_ids=body.document_ids,
            workspace_id=body.workspace_id,
            requested_count=body.requested_count,
        )
    )
    if not body.subject_ids:
        return query

    subject_ids = validate_subject_ids(body.subject_ids)
    subjects = await repository.get_subjects_by_ids(subject_ids)
    terms = list(query.subject_terms)
    terms.extend(s.name for s in subjects if s.name not in terms)
    return query.model_copy(update={"subject_terms": terms})


@router.post(
    "/retrieval/search",
    response_model=SearchResponse,
    summary="Rank chunks by relevance to a topic",
)
async def search(
    body: SearchRequest,
    retrieval_service: RetrievalServiceDep,
    repository: RepositoryDep,
    auth_token: AuthTokenDep,
) -> SearchResponse:
    query = await _to_query(body, repository)
    result = await retrieval_service.retrieve(query, auth_token=auth_token)
    return SearchResponse(
        chunks=[SearchChunk.from_scored(sc) for sc in result.chunks],
        total=len(result.chunks),
        strategy=result.strategy,
        degraded=result.degraded,
    )


@router.post(
    "/retrieval/context",
    response_model=ContextResponse,
    summary="Assemble source material for a topic",
)
async def build_context(
    body: SearchRequest,
    retrieval_service: RetrievalServiceDep,
    repository: RepositoryDep,
    auth_token: AuthTokenDep,
) -> ContextResponse:
    query = await _to_query(body, repository)
    result = await retrieval_service.retrieve(query, auth_token=auth_token)
    return ContextResponse(
        context=result.context,
        document_ids=result.document_ids,
        chunk_count=len(result.chunks),
        strategy=result.strategy,
        degraded=result.degraded,
    )


# ---------------------------------------------------------------------------
# Operational
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability.

    ``healthy`` needs the embedding provider and chunk store; a missing
    labeling LLM only makes the service ``degraded`` since subjects then
    fall back to default titles.
    """
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = vector_store.is_available()

    critical_ok = providers.get("embedding", False) and providers.get("vector_store", False)
    if critical_ok and providers.get("llm", False):
        status = "healthy"
    elif critical_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=_VERSION, providers=providers)


@router.get(
    "/providers",
    response_model=ProvidersResponse,
    summary="List configured providers",
)
async def list_providers(request: Request) -> ProvidersResponse:
    """List all configured providers, their types, and availability status."""
    return ProvidersResponse(providers=list(getattr(request.app.state, "provider_list", [])))


@router.get(
    "/corpus/stats",
    response_model=CorpusStatsResponse,
    summary="Chunk store and document statistics",
)
async def corpus_stats(
    vector_store: VectorStoreDep,
    repository: RepositoryDep,
    ingestion_service: IngestionServiceDep,
) -> CorpusStatsResponse:
    documents = await repository.list_documents()
    by_status = Counter(d.status.value for d in documents)
    return CorpusStatsResponse(
        total_chunks=await vector_store.count(),
        total_documents=len(documents),
        documents_by_status=dict(by_status),
        pending_ingestions=ingestion_service.pending_count,
    )
