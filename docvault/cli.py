"""Command-line interface for DocVault."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from docvault.config.settings import VectorStoreConfig
from docvault.errors import ConfigurationError, EmbeddingError
from docvault.indexer.store import VectorStore
from docvault.observability.logging import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "default"
REBUILD_COLLECTION = "rebuild-test"

REBUILD_SAMPLE_TEXT = """Smart contracts are programs stored on a blockchain that run when predetermined conditions are met.
They are typically used to automate the execution of an agreement so that all participants can be immediately certain of the outcome, without any intermediary's involvement or time loss.

Smart contracts work by following simple "if/when...then..." statements that are written into code on a blockchain.
A network of computers executes the actions when predetermined conditions have been met and verified.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docvault", description="Local semantic document store")
    parser.add_argument("--config", help="Path to docvault.yaml")
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log records")

    subparsers = parser.add_subparsers(dest="command", required=True)

    add_docs = subparsers.add_parser("add-docs", help="Fetch a URL (optionally crawling) into a collection")
    add_docs.add_argument("url", help="Seed URL")
    add_docs.add_argument("-n", "--name", default=DEFAULT_COLLECTION, help="Collection name")
    add_docs.add_argument("--crawl", action="store_true", help="Follow same-host links")
    add_docs.add_argument("--max-pages", type=int, default=None, help="Page budget when crawling")
    add_docs.add_argument("--max-depth", type=int, default=None, help="Link depth when crawling")

    add_file = subparsers.add_parser("add-file", help="Add a local file to a collection")
    add_file.add_argument("path", help="File to add")
    add_file.add_argument("-n", "--name", default=DEFAULT_COLLECTION, help="Collection name")
    add_file.add_argument("-t", "--title", help="Title stored in the chunk metadata")

    add_text = subparsers.add_parser("add-text", help="Add raw text to a collection")
    add_text.add_argument("text", help="Text to add")
    add_text.add_argument("-n", "--name", default=DEFAULT_COLLECTION, help="Collection name")

    search = subparsers.add_parser("search", help="Search a collection")
    search.add_argument("query", help="Query text")
    search.add_argument("-n", "--name", default=DEFAULT_COLLECTION, help="Collection name")
    search.add_argument("-k", type=int, default=5, help="Number of results")

    subparsers.add_parser("list", help="List persisted collections")
    subparsers.add_parser("rebuild", help="Delete all data and seed a test collection")

    return parser


def run(args: argparse.Namespace, store: VectorStore) -> None:
    if args.command == "add-docs":
        added = store.add_docs_sync(args.name, args.url, crawl=args.crawl,
                                    max_pages=args.max_pages, max_depth=args.max_depth)
        print(f"Added {added} chunks to '{args.name}'")

    elif args.command == "add-file":
        if not Path(args.path).is_file():
            raise FileNotFoundError(f"File not found: {args.path}")
        metadata = {"title": args.title} if args.title else None
        added = store.add_file(args.name, args.path, metadata)
        print(f"Added {added} chunks to '{args.name}'")

    elif args.command == "add-text":
        added = store.add_text(args.name, args.text, {"source": "cli"})
        print(f"Added {added} chunks to '{args.name}'")

    elif args.command == "search":
        results = store.search(args.name, args.query, args.k)
        print(json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False))

    elif args.command == "list":
        for name in store.list_collections():
            print(name)

    elif args.command == "rebuild":
        store.reset()
        added = store.add_text(REBUILD_COLLECTION, REBUILD_SAMPLE_TEXT,
                               {"source": "rebuild", "title": "Smart contracts"})
        print(f"Rebuilt data directory; '{REBUILD_COLLECTION}' holds {added} chunks")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = VectorStoreConfig.load(args.config)
        setup_logging(level=args.log_level or config.log_level, use_json=args.json_logs)
        store = VectorStore(config)
        run(args, store)
    except (ConfigurationError, EmbeddingError, OSError, UnicodeDecodeError, ValueError) as e:
        logger.error(f"Error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
