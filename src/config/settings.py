"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Two sources, in priority order:
#
#   1. **Environment variables** — e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** — key=value lines in the project root
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# below apply when neither source defines the field.
#
# Chunking / retrieval numbers may also be set in config/config.yaml;
# see src/config/loader.py for how the two are merged.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Document relevance core settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM Providers (subject labeling) ===
    # Empty string = "not configured"; main.py falls through to the next.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === Embeddings ===
    # "auto" = OpenAI when a key is set, else FastEmbed.
    embedding_provider: str = "auto"
    fastembed_model: str = ""
    embedding_batch_size: int = 10
    embedding_cache_size: int = 1000
    embedding_timeout_s: float = 30.0

    # === Chunking ===
    chunk_size: int = 1800
    chunk_overlap: int = 300
    max_chunks: int = 100
    # Background ingestion runs with a larger budget than interactive calls.
    ingestion_max_chunks: int = 200

    # === Clustering / Subjects ===
    cluster_similarity_threshold: float = 0.60
    cluster_target_count: int = 8
    max_subjects: int = 10
    labeling_timeout_s: float = 60.0

    # === Retrieval ===
    retrieval_max_results: int = 40
    retrieval_per_document_concurrency: int = 4
    retrieval_nearest_neighbour_threshold: int = 2000

    # === Extraction / Sources ===
    extraction_timeout_s: float = 120.0
    upload_dir: str = "data/uploads"
    document_source_url: str = ""  # When set, documents are fetched over HTTP.

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "document_chunks"
    document_db_path: str = "data/documents.db"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have non-empty credentials."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
