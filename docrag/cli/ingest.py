# =============================================================================
# docrag/cli/ingest.py — CLI for the document knowledge base
# =============================================================================
#
# Standalone CLI for feeding documents into a conversation's knowledge base,
# querying it the way the chat route does, and draining the embedding job
# queue from a terminal.
#
# Supported subcommands:
#
#   ingest     — Extract, chunk and store a file for a conversation
#   query      — Print the context block retrieved for a message
#   worker     — Run the background job worker (or one drain with --once)
#   queue      — Show job counts and recent terminal failures
#   reprocess  — Queue a full re-chunk and re-embed of a stored document
#
# Provider Selection (see docrag.main):
#   - Embedding: OpenAI / Azure OpenAI (if a key is set) -> sentence-transformers
#   - Vectors:   ChromaDB when NATIVE_VECTOR_SEARCH=true, manual scan otherwise
#
# Usage examples:
#   docrag ingest report.pdf --conversation 7
#   docrag query "what were the Q3 results?" --conversation 7
#   docrag worker --once
#   docrag queue
# =============================================================================

"""Command-line interface for the docrag ingestion and retrieval pipeline.

Usage::

    docrag ingest /path/to/report.pdf --conversation 7 --user 3

    docrag query "summarise the findings" --conversation 7

    docrag worker --once

    docrag queue
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from docrag.config.settings import Settings


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the docrag CLI."""
    parser = argparse.ArgumentParser(
        prog="docrag",
        description="Ingest documents and retrieve context for conversations.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a document file")
    ingest_parser.add_argument("file", help="Path to the document")
    ingest_parser.add_argument(
        "--conversation", required=True, type=int, help="Conversation id"
    )
    ingest_parser.add_argument("--user", type=int, default=None, help="Owning user id")
    ingest_parser.add_argument(
        "--media-type",
        dest="media_type",
        default=None,
        help="MIME type (guessed from the file name when omitted)",
    )

    # -- query --
    query_parser = subparsers.add_parser("query", help="Retrieve context for a message")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument(
        "--conversation", required=True, type=int, help="Conversation id"
    )
    query_parser.add_argument("--user", type=int, default=None, help="Requesting user id")
    query_parser.add_argument("--limit", type=int, default=None, help="Maximum chunks")

    # -- worker --
    worker_parser = subparsers.add_parser("worker", help="Run the background job worker")
    worker_parser.add_argument(
        "--once",
        action="store_true",
        help="Process every due job, then exit",
    )

    # -- queue --
    subparsers.add_parser("queue", help="Show job queue state")

    # -- reprocess --
    reprocess_parser = subparsers.add_parser(
        "reprocess", help="Re-chunk and re-embed a stored document"
    )
    reprocess_parser.add_argument("document_id", type=int, help="Document id")

    return parser


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest one file from disk."""
    from docrag.models.document import IngestRequest

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    data = path.read_bytes()
    media_type = args.media_type or mimetypes.guess_type(path.name)[0] or "text/plain"

    print(f"Ingesting: {path.name} ({media_type}, {len(data)} bytes)")
    document = await components["ingestion_service"].ingest_document(
        IngestRequest(
            data=data,
            file_name=path.name,
            media_type=media_type,
            byte_size=len(data),
            conversation_id=args.conversation,
            user_id=args.user,
        )
    )

    meta = document.metadata
    print("\nIngestion complete:")
    print(f"  Document ID:   {document.id}")
    print(f"  Status:        {meta.processing_status.value}")
    print(f"  Chunks:        {meta.total_chunks} ({meta.chunking_strategy})")
    print(f"  Embedded:      {meta.embedded_chunks}")
    if meta.error_message:
        print(f"  Last error:    {meta.error_message}")
    return 0


async def _handle_query(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Print the context block the chat route would prepend."""
    context = await components["retrieval_service"].find_relevant_context(
        args.text,
        args.conversation,
        limit=args.limit,
        user_id=args.user,
    )
    if context.is_empty:
        print("No relevant context found.")
        return 0

    for result in context.results:
        print(
            f"  {result.similarity:.3f}  {result.document.file_name} "
            f"chunk {result.chunk.chunk_index + 1}"
        )
    print(f"  (strategy: {context.strategy})\n")
    print(components["context_assembler"].format_context(context))
    return 0


async def _handle_worker(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Drain the queue once, or poll until interrupted."""
    worker = components["worker"]
    if args.once:
        results = await worker.run_until_idle()
        succeeded = sum(1 for r in results if r.outcome.value == "success")
        print(f"Processed {len(results)} job attempt(s), {succeeded} succeeded.")
        return 0

    print("Worker running. Press Ctrl+C to stop.")
    worker.start()
    try:
        await asyncio.Event().wait()
    finally:
        await worker.stop()
    return 0


async def _handle_queue(components: dict[str, Any]) -> int:
    """Display job counts and the most recent terminal failures."""
    queue = components["job_queue"]
    counts = await queue.counts()

    print("Job Queue")
    print("=" * 40)
    for state, count in counts.items():
        print(f"  {state:<10} {count}")

    failed = await queue.get_failed(limit=10)
    if failed:
        print("\nRecent failures:")
        for job in failed:
            print(f"  #{job.id} {job.job_type.value} after {job.attempts} attempt(s)")
            print(f"      {job.last_error}")
    return 0


async def _handle_reprocess(args: argparse.Namespace, components: dict[str, Any]) -> int:
    job = await components["ingestion_service"].reprocess_document(args.document_id)
    print(f"Queued job #{job.id} to reprocess document {args.document_id}.")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from docrag.main import bootstrap, initialize_services
    from docrag.utils.errors import DocRAGError

    try:
        components = bootstrap(app_settings)
        await initialize_services(components)

        if args.command == "ingest":
            return await _handle_ingest(args, components)
        if args.command == "query":
            return await _handle_query(args, components)
        if args.command == "worker":
            return await _handle_worker(args, components)
        if args.command == "queue":
            return await _handle_queue(components)
        if args.command == "reprocess":
            return await _handle_reprocess(args, components)
    except DocRAGError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 1


def main() -> None:
    """CLI entry point.

    Parses the subcommand and arguments, loads Settings from environment
    variables / .env file, wires the services and dispatches to the handler.
    """
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
