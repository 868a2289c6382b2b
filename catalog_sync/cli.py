"""Command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import httpx

from catalog_sync.config import Settings
from catalog_sync.errors import CatalogSyncError, ConfigError, GitError
from catalog_sync.jobs.sync import SyncOptions, check_config, list_tables, run_sync

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_SYNC = 2
EXIT_PUBLISH = 3


def configure_logging(verbose: bool = False) -> None:
    level = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-sync",
        description="Sync product data from Feishu Bitable into the storefront repository",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Fetch, transform, write and publish the catalog")
    sync.add_argument("--dry-run", action="store_true", help="Fetch and transform only; write nothing")
    sync.add_argument("--no-push", action="store_true", help="Write files but skip git commit and push")

    commands.add_parser("check", help="Validate configuration, credentials and table ids")
    commands.add_parser("list-tables", help="List the tables of the Bitable app")
    return parser


def _print_tables(tables) -> None:
    print(f"{'Name':<30} {'Table ID':<30}")
    print("-" * 60)
    for table in tables:
        print(f"{table.name:<30} {table.table_id:<30}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    try:
        if args.command == "check":
            asyncio.run(check_config(settings))
            logger.info("All checks passed")
        elif args.command == "list-tables":
            _print_tables(asyncio.run(list_tables(settings)))
        else:
            options = SyncOptions(dry_run=args.dry_run, no_push=args.no_push)
            asyncio.run(run_sync(settings, options))
            logger.info("Sync completed successfully")
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    except GitError as exc:
        logger.error("Publish failed: %s", exc)
        return EXIT_PUBLISH
    except (CatalogSyncError, httpx.HTTPError) as exc:
        logger.error("Sync failed: %s", exc)
        return EXIT_SYNC
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
