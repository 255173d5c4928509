"""Command line interface: ingest, status, analyze, search."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .config import load_config
from .core import make_embedder
from .core.errors import IndexUnavailable, RagError
from .indexing import IngestionPipeline, analyze_index
from .schemas import DocumentStatus, StatusSummary
from .search import HybridRetriever, status_message
from .storage import make_index_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragdesk", description="Local document retrieval for cited answers")
    parser.add_argument("--docs-dir", type=Path, default=None, help="Directory with source documents")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the index")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest new and modified documents")
    ingest.add_argument("--file", dest="filename", default=None, help="Only ingest this file")
    ingest.add_argument("--tags", default=None, help="Comma separated tags instead of inferred ones")
    ingest.add_argument("--force", action="store_true", help="Re-process files even when unchanged")

    sub.add_parser("status", help="Show which documents changed since the last ingestion")
    sub.add_parser("analyze", help="Show corpus statistics for the current index")

    search = sub.add_parser("search", help="Retrieve context blocks for a question")
    search.add_argument("query")
    search.add_argument("-k", type=int, default=None, help="Number of contexts")
    search.add_argument("--instruction", default=None, help="Instruction passed on to the answer generator")
    return parser


def _parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    tags = [t.strip() for t in raw.split(",") if t.strip()]
    return tags or None


def cmd_ingest(cfg: Dict, args: argparse.Namespace) -> int:
    docs_dir = Path(cfg["docs_dir"])
    pipeline = IngestionPipeline(make_embedder(cfg), make_index_store(cfg), cfg)

    changes = pipeline.status(docs_dir)
    counts = changes.summary()
    print(
        f"Documents: {counts['total']} (unchanged {counts['unchanged']}, modified {counts['modified']}, "
        f"new {counts['new']}, deleted {counts['deleted']})"
    )

    cancel_event = threading.Event()

    def _on_sigint(signum, frame):
        print("Cancelling after the current file...", file=sys.stderr)
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, _on_sigint)
    try:
        report = pipeline.ingest(
            docs_dir,
            files=[args.filename] if args.filename else None,
            tags=_parse_tags(args.tags),
            force=args.force,
            cancel_event=cancel_event,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print(report.to_summary().model_dump_json(indent=2))
    if report.failures and not report.processed:
        return 1
    return 0


def cmd_status(cfg: Dict, args: argparse.Namespace) -> int:
    pipeline = IngestionPipeline(make_embedder(cfg), make_index_store(cfg), cfg)
    changes = pipeline.status(Path(cfg["docs_dir"]))
    result = DocumentStatus(status=changes.to_dict(), summary=StatusSummary(**changes.summary()))
    print(result.model_dump_json(indent=2))
    return 0


def cmd_analyze(cfg: Dict, args: argparse.Namespace) -> int:
    store = make_index_store(cfg)
    try:
        index = store.load()
    except IndexUnavailable:
        index = None
    print(analyze_index(index).model_dump_json(indent=2))
    return 0


def cmd_search(cfg: Dict, args: argparse.Namespace) -> int:
    retriever = HybridRetriever(make_embedder(cfg), make_index_store(cfg), cfg)
    result = retriever.retrieve(args.query, k=args.k, instruction=args.instruction)
    if result.status != "ok":
        print(status_message(result), file=sys.stderr)
    print(result.model_dump_json(indent=2))
    return 0


COMMANDS = {
    "ingest": cmd_ingest,
    "status": cmd_status,
    "analyze": cmd_analyze,
    "search": cmd_search,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config(docs_dir=args.docs_dir, data_dir=args.data_dir)
    try:
        return COMMANDS[args.command](cfg, args)
    except RagError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        raise SystemExit(f"Error: {e}")


if __name__ == "__main__":
    raise SystemExit(main())
