# =============================================================================
# src/cli/__init__.py — CLI Module Overview
# =============================================================================
#
# Command-line access to the document relevance core for operators and
# developers working outside the HTTP API.
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Heavy imports (ChromaDB, embedding providers) are deferred inside
#     functions to keep startup fast for --help.
#   - Services are assembled by src.main.build_components, the same
#     factory the API uses, so both see identical configuration.
# =============================================================================

"""CLI tools for the document relevance core.

- ``python -m src.cli ingest FILE``: ingest a local PDF or text file
- ``python -m src.cli subjects DOC_ID``: generate labeled subjects
- ``python -m src.cli search --topic T --doc DOC_ID``: rank relevant chunks
- ``python -m src.cli stats`` / ``purge DOC_ID``: maintenance
"""
