"""Document relevance API layer: routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ContextResponse,
    ErrorResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    ProvidersResponse,
    SearchRequest,
    SearchResponse,
    SubjectsResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ContextResponse",
    "ErrorResponse",
    "HealthResponse",
    "IngestRequest",
    "IngestResponse",
    "ProvidersResponse",
    "SearchRequest",
    "SearchResponse",
    "SubjectsResponse",
]
