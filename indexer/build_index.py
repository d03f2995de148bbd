# Builds and queries the handbook search index from the command line.

import argparse
import json
import logging
import sys
from typing import List, Optional

from config.search_config import SearchConfig
from observability.logging import setup_logging
from pipelines.corpus import CorpusLoader
from .errors import IndexExportError, SearchIndexError
from .models import SearchHit
from .search_index import SearchIndex

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to a search_config.yaml")
    common.add_argument("--log-level", default=None, help="Log level (default from config)")
    common.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")

    parser = argparse.ArgumentParser(prog="handbook-search", description="Handbook search index CLI")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", parents=[common], help="Build and export the index")
    build.add_argument("--docs-dir", help="Corpus root (default from config)")
    build.add_argument("--output", help="Export file (default from config)")

    query = commands.add_parser("query", parents=[common], help="Search the index")
    query.add_argument("term", help="Search text")
    source = query.add_mutually_exclusive_group()
    source.add_argument("--index", help="Exported index file to hydrate")
    source.add_argument("--docs-dir", help="Corpus root to build from")
    query.add_argument("--json", action="store_true", help="Print hits as JSON")

    return parser


def _configure_logging(args, config: SearchConfig) -> None:
    settings = config.get_logging_settings()
    setup_logging(
        level=args.log_level or settings["level"],
        log_file=settings["log_file"],
        use_json=args.json_logs or bool(settings["use_json"]),
    )


def _build_from_corpus(config: SearchConfig, docs_dir: Optional[str]) -> SearchIndex:
    sections = CorpusLoader.from_config(config, root=docs_dir).load_sections()
    return SearchIndex(config).build(sections)


def _print_hits(hits: List[SearchHit], as_json: bool) -> None:
    if as_json:
        payload = [hit.model_dump(mode="json", by_alias=True) for hit in hits]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    if not hits:
        print("No results found.")
        return

    print(f"\nFound {len(hits)} results:\n")
    for i, hit in enumerate(hits, 1):
        doc = hit.doc
        print(f"{i}. {doc.title} [{hit.matched_field}]")
        print(f"   Block: {doc.id}")
        if doc.section_title:
            print(f"   Section: {doc.section_title}")
        print(f"   Snippet: {hit.snippet[:200]}")
        print()


def run_build(args, config: SearchConfig) -> int:
    index = _build_from_corpus(config, args.docs_dir)
    try:
        target = index.save(args.output)
    except IndexExportError as e:
        logger.error(f"Index export failed: {e}")
        return 1
    finally:
        index.close()
    print(f"Indexed {len(index.blocks)} blocks into {target}")
    return 0


def run_query(args, config: SearchConfig) -> int:
    if args.index:
        index = SearchIndex.load(args.index, config)
    else:
        index = _build_from_corpus(config, args.docs_dir)
    try:
        hits = index.search(args.term)
    finally:
        index.close()
    _print_hits(hits, args.json)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = SearchConfig(config_path=args.config)
    _configure_logging(args, config)

    try:
        if args.command == "build":
            return run_build(args, config)
        return run_query(args, config)
    except (SearchIndexError, OSError) as e:
        logger.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
