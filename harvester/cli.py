"""
Entry point for the listing harvester.
Loads the input, wires the frontier, renderer, fetcher and dataset sink, runs the crawl.
"""

import argparse
import hashlib
import logging
import sys
from pathlib import Path

from frontier.orchestrator import Frontier
from frontier.sqlite_storage import SQLiteRequestStore
from frontier.storage import InMemoryRequestStore
from harvester.config import CrawlConfig, load_config
from harvester.core import DATA_DIR, INPUT_PATH, LOG_FILE, setup_logger, logger
from harvester.crawl import CrawlLoop
from harvester.errors import ConfigError
from harvester.fetcher import RecordFetcher
from harvester.identity import IdentityManager
from harvester.sink import JsonlDatasetSink
from rendering.engine import PageRenderer


def build_parser():
    parser = argparse.ArgumentParser(description="Harvest JSON records from a paginated, JS-rendered listing site.")
    parser.add_argument("--input", default=INPUT_PATH, help="Path to the crawl input JSON (default: %(default)s)")
    parser.add_argument("--store", choices=("memory", "sqlite"), default="memory",
                        help="Frontier storage; sqlite keeps a per-input frontier so an interrupted crawl "
                             "resumes on the next run with the same start URLs")
    parser.add_argument("--output", default=str(DATA_DIR / "dataset.jsonl"), help="Dataset output file (JSON lines)")
    parser.add_argument("--log-file", default=LOG_FILE, help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def frontier_db_path(config: CrawlConfig, data_dir=None) -> Path:
    """SQLite frontier file for this crawl, keyed by its (normalized) start URLs."""
    digest = hashlib.sha256("\n".join(sorted(set(config.start_urls))).encode("utf-8")).hexdigest()
    return Path(data_dir if data_dir is not None else DATA_DIR) / f"frontier-{digest[:16]}.db"


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logger(log_file=args.log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(args.input)
    except ConfigError as e:
        logger.critical(f"Invalid input: {e}", extra={'context': 'root'})
        return 1

    if args.store == "sqlite":
        db_path = frontier_db_path(config)
        logger.info(f"Using persistent frontier {db_path}", extra={'context': 'root'})
        store = SQLiteRequestStore(db_path)
    else:
        store = InMemoryRequestStore()

    frontier = Frontier(store, max_request_retries=config.budget.max_request_retries)
    sink = JsonlDatasetSink(args.output)
    fetcher = RecordFetcher()
    identity_manager = IdentityManager(config.proxy, headless=config.headless)

    try:
        with PageRenderer(live_view=config.live_view, use_managed_proxy=config.proxy.use_managed_proxy) as renderer:
            loop = CrawlLoop(config, frontier, renderer, sink, fetcher=fetcher, identity_manager=identity_manager)
            loop.run()
    finally:
        fetcher.close()
        sink.close()
        if isinstance(store, SQLiteRequestStore):
            store.close()

    logger.info(f"Dataset written to {sink.path}", extra={'context': 'root'})
    return 0


if __name__ == "__main__":
    sys.exit(main())
