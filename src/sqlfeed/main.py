"""Command line entry point: run crawl cycles into Azure AI Search."""

import argparse
import logging
import sys
import time
from typing import List, Optional

from azure.core.exceptions import AzureError

from sqlfeed.clients.database_client import DatabaseIOError
from sqlfeed.clients.search_client import AzureSearchError, AzureSearchFeedPusher, create_feed_index
from sqlfeed.config.configuration import ConfigurationError, load_config, log_config, setup_logging
from sqlfeed.crawl.full_crawl import CrawlError
from sqlfeed.services.connector import SqlFeedConnector

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlfeed",
        description="List database rows as documents and push them to Azure AI Search",
    )
    parser.add_argument(
        "--config",
        "-c",
        metavar="PATH",
        default=None,
        help="Path to the YAML config file (default: SQLFEED_CONFIG, then APP_ENV)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("full", help="Run one full crawl cycle")

    incremental = subparsers.add_parser("incremental", help="Run incremental crawl cycles")
    incremental.add_argument(
        "--cycles",
        type=int,
        default=1,
        help="Number of cycles to run; 0 runs until interrupted (default: 1)",
    )
    incremental.add_argument(
        "--interval",
        type=float,
        default=900.0,
        help="Seconds to wait between cycles (default: 900)",
    )

    subparsers.add_parser("create-index", help="Create or update the search index")
    return parser


def _run_incremental(connector: SqlFeedConnector, pusher: AzureSearchFeedPusher, cycles: int, interval: float) -> int:
    total = 0
    cycle = 0
    while cycles == 0 or cycle < cycles:
        if cycle > 0:
            time.sleep(interval)
        total += connector.get_modified_doc_ids(pusher)
        cycle += 1
    return total


def main(args: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        0 on success, 1 when a crawl or push fails, 2 on configuration errors.
    """
    parsed_args = _build_parser().parse_args(args)

    try:
        config = load_config(parsed_args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging)
    log_config(config)

    try:
        if parsed_args.command == "create-index":
            create_feed_index(config.azure_ai_search)
            return 0

        pusher = AzureSearchFeedPusher.from_config(config.azure_ai_search)
        with SqlFeedConnector.from_config(config) as connector:
            if parsed_args.command == "full":
                total = connector.get_doc_ids(pusher)
            else:
                total = _run_incremental(connector, pusher, parsed_args.cycles, parsed_args.interval)
        print(f"Records pushed: {total}")
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except (CrawlError, DatabaseIOError, AzureSearchError, AzureError) as e:
        logger.error(f"{parsed_args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
