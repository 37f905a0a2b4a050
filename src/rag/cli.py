#!/usr/bin/env python3
"""
CLI for the local knowledge base.

Usage:
    ollama-rag --help
    ollama-rag ingest docs/ README.md --pattern "*.md"
    ollama-rag query "How is logging configured?" --top-k 5
    ollama-rag ask "How is logging configured?"
    ollama-rag delete docs/setup.md
    ollama-rag sources
    ollama-rag stats
"""

import argparse
import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from .config.config_loader import RAGConfig
from .core.exceptions import RAGError
from .core.logging import configure_logging, parse_log_level
from .retrieval.augment import build_chat_messages
from .retrieval.retriever import Retriever


logger = logging.getLogger(__name__)


def build_retriever(config: RAGConfig, store=None, client=None) -> Retriever:
    """Wire a Retriever from configuration."""
    return Retriever(
        store=store if store is not None else config.build_store(),
        embedder=client if client is not None else config.build_client(),
        embed_model=config.rag["embed_model"],
        policy=config.chunking_policy(),
        allowed_files=config.allowed_files,
    )


def cmd_ingest(args: argparse.Namespace, config: RAGConfig) -> int:
    """Ingest files and directories."""
    files = [p for p in args.paths if not os.path.isdir(p)]
    directories = [p for p in args.paths if os.path.isdir(p)]

    with config.build_store() as store:
        retriever = build_retriever(config, store=store)

        results = []
        if files:
            results.extend(retriever.ingest_files(files))
        for directory in directories:
            results.extend(retriever.ingest_directory(directory, args.pattern or None))

    total = sum(r.chunk_count for r in results)
    print(f"Ingested {len(results)} files ({total} chunks)")
    for result in results:
        print(f"  {result.source}: {result.chunk_count} chunks")
    return 0


def cmd_query(args: argparse.Namespace, config: RAGConfig) -> int:
    """Show the chunks most similar to a query."""
    top_k = args.top_k if args.top_k is not None else config.top_k

    with config.build_store() as store:
        retriever = build_retriever(config, store=store)
        results = retriever.retrieve(args.text, top_k)

    if args.json:
        output = [
            {
                "id": r.document.id,
                "source": r.document.source,
                "chunk_index": r.document.chunk_index,
                "similarity": r.similarity,
                "content": r.document.content,
            }
            for r in results
        ]
        print(json.dumps(output, indent=2))
        return 0

    if not results:
        print("No matching documents.")
        return 0

    for i, result in enumerate(results, start=1):
        doc = result.document
        print(f"\n[{i}] {doc.source} (chunk {doc.chunk_index}, similarity: {result.similarity:.3f})")
        print("-" * 50)
        print(doc.content)

    return 0


def cmd_ask(args: argparse.Namespace, config: RAGConfig) -> int:
    """Answer a question with retrieved context."""
    client = config.build_client()

    with config.build_store() as store:
        retriever = build_retriever(config, store=store, client=client)
        context = retriever.retrieve_context(args.text, config.top_k)

    if not context:
        logger.info("No relevant context found, asking without augmentation")

    response = client.chat(
        build_chat_messages(context, args.text),
        model=args.model or config.rag["chat_model"],
    )
    print(response.content or "")
    return 0


def cmd_delete(args: argparse.Namespace, config: RAGConfig) -> int:
    """Remove every chunk of a source file."""
    with config.build_store() as store:
        retriever = build_retriever(config, store=store)
        deleted = retriever.delete_source(args.source)

    print(f"Deleted {deleted} documents from {os.path.abspath(args.source)}")
    return 0


def cmd_sources(args: argparse.Namespace, config: RAGConfig) -> int:
    """List ingested source files."""
    with config.build_store() as store:
        sources = store.list_sources()

    if not sources:
        print("Knowledge base is empty.")
        return 0

    for source, count in sources:
        print(f"{count:6d}  {source}")
    return 0


def cmd_stats(args: argparse.Namespace, config: RAGConfig) -> int:
    """Show knowledge base statistics."""
    with config.build_store() as store:
        total = store.count()
        sources = store.list_sources()

    print("\nKnowledge Base")
    print("=" * 50)
    print(f"Backend:     {config.rag['backend']}")
    if config.rag["backend"] == "sqlite":
        print(f"Path:        {config.knowledge_base_path}")
    print(f"Embed model: {config.rag['embed_model']}")
    print(f"Sources:     {len(sources)}")
    print(f"Documents:   {total}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-rag",
        description="Local knowledge base for Ollama (retrieval augmented generation)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config YAML (default: ~/.ollama-rag/config.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--structured-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest files or directories")
    ingest_parser.add_argument("paths", nargs="+", help="Files or directories to ingest")
    ingest_parser.add_argument(
        "-p", "--pattern", action="append", default=[],
        help="File name pattern for directories (repeatable, default: common text/code files)",
    )
    ingest_parser.set_defaults(func=cmd_ingest)

    # query command
    query_parser = subparsers.add_parser("query", help="Show chunks most similar to a query")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument("-k", "--top-k", type=int, help="Number of results (default: rag.top_k)")
    query_parser.add_argument("--json", action="store_true", help="Output JSON")
    query_parser.set_defaults(func=cmd_query)

    # ask command
    ask_parser = subparsers.add_parser("ask", help="Ask a question using retrieved context")
    ask_parser.add_argument("text", help="Question")
    ask_parser.add_argument("-m", "--model", help="Chat model (default: rag.chat_model)")
    ask_parser.set_defaults(func=cmd_ask)

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Remove all chunks of a source file")
    delete_parser.add_argument("source", help="Source file path")
    delete_parser.set_defaults(func=cmd_delete)

    # sources command
    sources_parser = subparsers.add_parser("sources", help="List ingested source files")
    sources_parser.set_defaults(func=cmd_sources)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show knowledge base statistics")
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = RAGConfig(args.config)
    except RAGError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if args.verbose else parse_log_level(config.config["log_level"])
    configure_logging(level=level, structured=args.structured_logs)

    try:
        return args.func(args, config)
    except RAGError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
