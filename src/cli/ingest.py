# =============================================================================
# src/cli/ingest.py — Document CLI (ingest, subjects, search, stats, purge)
# =============================================================================
#
# Standalone CLI for operating the document relevance core without the HTTP
# API.  It assembles the same services as the web server (src/main.py's
# build_components) but always reads uploads from the local upload
# directory, so a file on disk can be ingested directly.
#
# Supported subcommands:
#
#   ingest    — Copy a local file into the upload directory and ingest it
#   subjects  — Cluster and label a document's chunks into subjects
#   search    — Rank chunks of one or more documents against a topic
#   stats     — Show chunk and document counts
#   purge     — Delete a document's stored chunks
#
# Usage examples:
#   python -m src.cli ingest notes.pdf --id biology-101
#   python -m src.cli subjects biology-101
#   python -m src.cli search --topic "cell division" --doc biology-101 --count 5
#   python -m src.cli search --topic "mitosis" --doc biology-101 --context
#   python -m src.cli stats
#   python -m src.cli purge biology-101 --yes
# =============================================================================

"""Standalone CLI for ingesting documents and querying relevant content.

Usage::

    python -m src.cli ingest /path/to/file.pdf --id doc-1
    python -m src.cli subjects doc-1
    python -m src.cli search --topic "photosynthesis" --doc doc-1 --doc doc-2
    python -m src.cli stats
    python -m src.cli purge doc-1 --yes
"""

from __future__ import annotations

import argparse
import asyncio
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from src.config.settings import Settings

_ID_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _document_id_for(path: Path) -> str:
    """Derive a path-safe document id from a file name."""
    return _ID_UNSAFE.sub("-", path.stem).strip("-.") or "document"


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Assemble services the same way the API does, reading uploads from disk.

    Imports are deferred so ``--help`` stays fast and does not load
    ChromaDB or an embedding model.
    """
    from src.main import build_components

    local_settings = app_settings.model_copy(update={"document_source_url": ""})
    return build_components(local_settings)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Store a local file as an upload and ingest it."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    document_id = args.id or _document_id_for(path)
    print(f"Ingesting {path.name} as document '{document_id}'")

    await components["document_source"].store(document_id, path.name, path.read_bytes())
    result = await components["ingestion_service"].ingest(
        document_id,
        workspace_id=args.workspace,
        max_chunks=args.max_chunks,
    )

    print("\nIngestion finished:")
    print(f"  Status:          {result.status.value}")
    print(f"  Language:        {result.language}")
    print(f"  Chunks created:  {result.chunks_created}")
    print(f"  Chunks stored:   {result.chunks_stored}")
    print(f"  Failed batches:  {result.failed_batches}")
    print(f"  Time:            {result.ingestion_time:.2f}s")
    if result.error_message:
        print(f"  Error:           {result.error_message}")
    return 0 if result.chunks_stored > 0 else 1


async def _handle_subjects(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Generate and print subjects for a document."""
    result = await components["subject_service"].generate(
        args.document_id, workspace_id=args.workspace
    )

    print(f"Subjects for '{result.document_id}' (language: {result.language})")
    print("=" * 40)
    for i, subject in enumerate(result.subjects, start=1):
        print(f"  {i:>2}. {subject.name}  [{subject.importance.value}, {subject.importance_score} chunks]")
    print()
    print(f"  Clusters found:     {result.cluster_count}")
    if result.used_fallback_grouping:
        print("  Grouping:           sequential fallback")
    if result.used_default_titles:
        print("  Titles:             defaults (labeling unavailable)")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Rank chunks against a topic, or print the assembled context."""
    from src.models.retrieval import RelevanceQuery

    query = RelevanceQuery(
        topic=args.topic,
        subject_terms=args.subject or [],
        instructions=args.instructions,
        document_ids=args.doc,
        workspace_id=args.workspace,
        requested_count=args.count,
    )
    result = await components["retrieval_service"].retrieve(query)

    if args.context:
        print(result.context)
        return 0

    print(f"Top {len(result.chunks)} chunks for '{args.topic}' (strategy: {result.strategy.value})")
    if result.degraded:
        print("  (embedding unavailable, scored lexically)")
    print("=" * 40)
    for scored in result.chunks:
        chunk = scored.chunk
        preview = " ".join(chunk.text.split())[:100]
        print(f"  {scored.score:.3f}  {chunk.document_id} p.{chunk.page_number} #{chunk.chunk_index}")
        print(f"         {preview}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    """Display chunk store and document statistics."""
    vector_store = components["vector_store"]
    if not vector_store.is_available():
        print("Vector store not available.")
        return 1

    documents = await components["document_repository"].list_documents()
    by_status = Counter(d.status.value for d in documents)

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Total chunks:     {await vector_store.count()}")
    print(f"  Total documents:  {len(documents)}")
    if by_status:
        print("\n  Documents by status:")
        for status, count in sorted(by_status.items()):
            print(f"    {status:<15} {count}")
    return 0


async def _handle_purge(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete all stored chunks of one document.

    Destructive: requires confirmation unless --yes is passed.
    """
    vector_store = components["vector_store"]
    count = await vector_store.count([args.document_id])
    if count == 0:
        print(f"No chunks found for document '{args.document_id}'. Nothing to purge.")
        return 0

    print(f"  Found {count} chunks for document '{args.document_id}'")
    if not args.yes:
        confirm = input(f"  Delete all {count} chunks? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    deleted = await vector_store.delete_by_document(args.document_id)
    print(f"\n  Deleted {deleted} chunks.")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.utils.errors import DocCoreError, NoRelevantContentError

    try:
        components = _build_components(app_settings)
        await components["document_repository"].initialize()

        if args.command == "ingest":
            return await _handle_ingest(args, components)
        if args.command == "subjects":
            return await _handle_subjects(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        if args.command == "stats":
            return await _handle_stats(components)
        return await _handle_purge(args, components)
    except NoRelevantContentError as exc:
        print(exc.message, file=sys.stderr)
        for suggestion in exc.suggestions:
            print(f"  - {suggestion}", file=sys.stderr)
        return 2
    except DocCoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the document CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Ingest documents, generate subjects and retrieve relevant content.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a local PDF or text file")
    ingest_parser.add_argument("file", help="Path to the file")
    ingest_parser.add_argument("--id", help="Document id (default: derived from the file name)")
    ingest_parser.add_argument("--workspace", default=None, help="Workspace id")
    ingest_parser.add_argument(
        "--max-chunks", type=int, default=None, dest="max_chunks", help="Chunk cap"
    )

    # -- subjects --
    subjects_parser = subparsers.add_parser("subjects", help="Generate subjects for a document")
    subjects_parser.add_argument("document_id", help="Document id")
    subjects_parser.add_argument("--workspace", default=None, help="Workspace id")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Find content relevant to a topic")
    search_parser.add_argument("--topic", required=True, help="Main topic")
    search_parser.add_argument(
        "--doc", action="append", required=True, help="Document id (repeatable)"
    )
    search_parser.add_argument(
        "--subject", action="append", default=None, help="Subject term (repeatable)"
    )
    search_parser.add_argument("--instructions", default=None, help="Free-text instructions")
    search_parser.add_argument("--workspace", default=None, help="Workspace id")
    search_parser.add_argument(
        "--count", type=int, default=10, help="Number of items the content is for (default: 10)"
    )
    search_parser.add_argument(
        "--context", action="store_true", help="Print the assembled context instead of a ranking"
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show chunk and document statistics")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", help="Delete a document's stored chunks")
    purge_parser.add_argument("document_id", help="Document id")
    purge_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, loads Settings from the environment / .env
    file, and dispatches to the matching handler.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
