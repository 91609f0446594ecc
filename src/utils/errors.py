"""Custom exception hierarchy for the document relevance core.

All application exceptions inherit from :class:`DocCoreError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai_embedding", "chromadb", "pymupdf") caused
the failure.

The hierarchy is organized by failure category:

    DocCoreError  (base -- catch-all for any application error)
    +-- TextExtractionError       (document bytes -> text failed; fatal for ingestion)
    +-- ProviderError             (external call failed or timed out; absorbed)
    |   +-- EmbeddingError        (embedding provider)
    |   +-- LLMError              (labeling LLM)
    |   +-- ProviderUnavailableError
    +-- VectorStoreError          (chunk store read/write)
    +-- DimensionMismatchError    (vectors of different length compared)
    +-- NoRelevantContentError    (retrieval found nothing; user-actionable)
    +-- QueryValidationError      (malformed query, rejected before any call)
    +-- DocumentNotFoundError     (unknown document id)
    +-- ConfigurationError        (startup / missing config)

Only :class:`TextExtractionError` and :class:`QueryValidationError` abort
the current run.  Provider failures are caught by the services and turned
into degraded-but-successful outcomes (skipped batches, default subject
titles, lexical scoring).
"""


class DocCoreError(Exception):
    """Base exception for all application errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai_embedding] Request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class TextExtractionError(DocCoreError):
    """Raised when document content cannot be fetched or turned into text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(DocCoreError):
    """Raised when an external provider call errors or times out.

    Callers absorb this: ingestion skips the failed batch, subject
    labeling falls back to default titles, retrieval degrades to lexical
    scoring.
    """

    def __init__(
        self,
        message: str = "External provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(ProviderError):
    """Raised when the embedding provider fails after its single retry."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(ProviderError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(ProviderError):
    """Raised when a required provider is not configured or unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / vector errors
# ---------------------------------------------------------------------------

class VectorStoreError(DocCoreError):
    """Raised when a chunk-store operation fails."""

    def __init__(
        self,
        message: str = "Chunk store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(DocCoreError):
    """Raised when vectors of different dimension are compared in one run."""

    def __init__(
        self,
        message: str = "Embedding dimensions do not match",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval / request errors
# ---------------------------------------------------------------------------

_DEFAULT_SUGGESTIONS = (
    "Try a different topic",
    "Ensure file content is related to the topic",
    "Try with fewer or different subject filters",
)


class NoRelevantContentError(DocCoreError):
    """Raised when retrieval yields zero chunks after every strategy.

    Distinct from an empty success so callers can show actionable
    guidance (``suggestions``) instead of a transport failure.
    """

    def __init__(
        self,
        topic: str = "",
        message: str | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        self._topic = topic
        self._suggestions = list(suggestions) if suggestions else list(_DEFAULT_SUGGESTIONS)
        if message is None:
            message = f'Could not find relevant content for "{topic}" in the selected documents.'
        super().__init__(message=message)

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def suggestions(self) -> list[str]:
        return list(self._suggestions)


class QueryValidationError(DocCoreError):
    """Raised when a query or document scope is malformed or unsafe."""

    def __init__(
        self,
        message: str = "Invalid query",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(DocCoreError):
    """Raised when a document id is unknown to the repository or source."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocCoreError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
