"""Utility modules for the document relevance core.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at DocCoreError;
  the API maps each subclass to an HTTP status.
- **concurrency** -- asyncio semaphore throttling and fan-out helpers used by
  the per-document retrieval pass.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **similarity** -- cosine similarity over embedding vectors (numpy).
- **text_normalizer** -- script detection, language detection and
  whitespace normalization ahead of chunking.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DocCoreError,
    DocumentNotFoundError,
    NoRelevantContentError,
    ProviderUnavailableError,
    QueryValidationError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import gather_flat, throttled_gather

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Vector math -----------------------------------------------------------
from src.utils.similarity import cosine_similarity, similarity_matrix

# -- Script / language detection -------------------------------------------
from src.utils.text_normalizer import detect_language, has_non_segmentable_script

__all__ = [
    "ConfigurationError",
    "DocCoreError",
    "DocumentNotFoundError",
    "NoRelevantContentError",
    "ProviderUnavailableError",
    "QueryValidationError",
    "configure_logging",
    "cosine_similarity",
    "detect_language",
    "gather_flat",
    "get_logger",
    "has_non_segmentable_script",
    "similarity_matrix",
    "throttled_gather",
]
