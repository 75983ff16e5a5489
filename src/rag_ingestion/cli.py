"""``rag-ingest`` command-line entry point.

Usage
-----
    rag-ingest ingest ./docs --pattern "*.md"
    rag-ingest --preset technical-docs ingest-file ./docs/guide.md
    rag-ingest search "how do I rotate keys?" -k 3
    rag-ingest chunks guide.md
    rag-ingest delete guide.md
    rag-ingest config
    rag-ingest env-template .env.template
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from rag_ingestion.config import ChunkingStrategy, Settings, load_settings, write_env_template
from rag_ingestion.exceptions import IngestionError
from rag_ingestion.ingestion.chunker import describe_strategy
from rag_ingestion.ingestion.pipeline import IngestionPipeline
from rag_ingestion.presets import PRESETS
from rag_ingestion.storage.factory import BACKENDS, create_writer

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rag-ingest",
        description="Ingest documents into a vector store for retrieval-augmented generation.",
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), help="Apply a chunking preset")
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in ChunkingStrategy],
        help="Override CHUNKING_STRATEGY",
    )
    parser.add_argument("--max-tokens", type=int, help="Override MAX_TOKENS_PER_CHUNK")
    parser.add_argument("--overlap", type=int, help="Override OVERLAP_TOKENS")
    parser.add_argument("--backend", choices=BACKENDS, help="Override STORE_BACKEND")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest every matching file in a directory")
    ingest.add_argument("directory")
    ingest.add_argument("--pattern", default="*.md", help="File glob (default: *.md)")

    ingest_file = sub.add_parser("ingest-file", help="Ingest a single file")
    ingest_file.add_argument("path")

    search = sub.add_parser("search", help="Similarity search over stored chunks")
    search.add_argument("query")
    search.add_argument("-k", "--top-k", type=int, default=5)

    chunks = sub.add_parser("chunks", help="List the stored chunks of a document")
    chunks.add_argument("document_id")

    delete = sub.add_parser("delete", help="Delete every chunk of a document")
    delete.add_argument("document_id")

    sub.add_parser("config", help="Show the effective configuration")

    template = sub.add_parser("env-template", help="Write a .env template")
    template.add_argument("path", nargs="?", default=".env.template")

    return parser.parse_args(argv)


def _build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.strategy:
        overrides["chunking_strategy"] = args.strategy
    if args.max_tokens is not None:
        overrides["max_tokens_per_chunk"] = args.max_tokens
    if args.overlap is not None:
        overrides["overlap_tokens"] = args.overlap
    if args.backend:
        overrides["store_backend"] = args.backend

    settings = load_settings(**overrides)
    if args.preset:
        settings = PRESETS[args.preset](settings)
    return settings


async def _ingest(settings: Settings, args: argparse.Namespace) -> int:
    async with IngestionPipeline.from_settings(settings) as pipeline:
        if args.command == "ingest":
            outcomes = await pipeline.process_documents(args.directory, args.pattern)
        else:
            outcomes = [await pipeline.process_single_document(args.path)]
    for outcome in outcomes:
        print(outcome)
    return 0 if all(o.succeeded for o in outcomes) else 1


async def _query(settings: Settings, args: argparse.Namespace) -> int:
    async with create_writer(settings) as writer:
        if args.command == "search":
            for hit in await writer.search_similar_text(args.query, top_k=args.top_k):
                print(hit)
        elif args.command == "chunks":
            records = await writer.get_by_document(args.document_id)
            for record in records:
                print(f"#{record.chunk_index} {record.id} ({record.content_length} chars)")
            print(f"{len(records)} chunk(s) for {args.document_id}")
        elif args.command == "delete":
            deleted = await writer.delete_all_for_document(args.document_id)
            print(f"Deleted {deleted} chunk(s) for {args.document_id}")
    return 0


def _show_config(settings: Settings) -> int:
    print(json.dumps(settings.masked(), indent=2))
    print()
    print(describe_strategy(settings.chunking_strategy))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    if args.command == "env-template":
        path = write_env_template(args.path)
        print(f"Template written → {path}")
        return 0

    try:
        settings = _build_settings(args)
        if args.command == "config":
            return _show_config(settings)
        if args.command in ("ingest", "ingest-file"):
            return asyncio.run(_ingest(settings, args))
        return asyncio.run(_query(settings, args))
    except IngestionError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
