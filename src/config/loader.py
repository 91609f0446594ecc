"""YAML configuration loader with environment variable override support."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings

# section -> {yaml key: Settings field}.  Every tunable number the services
# read from the resolved config dict is listed here.
_SECTION_FIELDS: dict[str, dict[str, str]] = {
    "app": {
        "host": "app_host",
        "port": "app_port",
        "env": "app_env",
    },
    "logging": {
        "level": "log_level",
    },
    "chunking": {
        "chunk_size": "chunk_size",
        "chunk_overlap": "chunk_overlap",
        "max_chunks": "max_chunks",
        "ingestion_max_chunks": "ingestion_max_chunks",
    },
    "embedding": {
        "provider": "embedding_provider",
        "batch_size": "embedding_batch_size",
        "cache_size": "embedding_cache_size",
        "timeout_s": "embedding_timeout_s",
    },
    "clustering": {
        "similarity_threshold": "cluster_similarity_threshold",
        "target_count": "cluster_target_count",
        "max_subjects": "max_subjects",
        "labeling_timeout_s": "labeling_timeout_s",
    },
    "retrieval": {
        "max_results": "retrieval_max_results",
        "per_document_concurrency": "retrieval_per_document_concurrency",
        "nearest_neighbour_threshold": "retrieval_nearest_neighbour_threshold",
    },
    "extraction": {
        "timeout_s": "extraction_timeout_s",
    },
}


def load_config(
    path: str = "config/config.yaml",
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Resolution order (lowest to highest): Settings defaults, YAML values,
    values explicitly provided through the environment or ``.env``.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to read; a fresh one is built if omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()

    config = _sections_from(settings, fields=None)

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    # model_fields_set holds only the fields that came from env / .env /
    # init kwargs, so untouched defaults never clobber YAML values.
    env_overrides = _sections_from(settings, fields=settings.model_fields_set)
    _deep_merge(config, env_overrides)

    config.setdefault("llm", {})["available_providers"] = settings.get_available_llm_providers()
    return config


def _sections_from(settings: Settings, fields: set[str] | None) -> dict[str, Any]:
    """Project *settings* onto the sectioned layout, optionally limited to *fields*."""
    sections: dict[str, Any] = {}
    for section, mapping in _SECTION_FIELDS.items():
        values = {
            key: getattr(settings, field)
            for key, field in mapping.items()
            if fields is None or field in fields
        }
        if values:
            sections[section] = values
    return sections


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
