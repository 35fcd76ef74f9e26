#!/usr/bin/env python
"""Maintenance command line for a notekeeper database."""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from notekeeper import __version__
from notekeeper.config import config
from notekeeper.exceptions import NotekeeperError
from notekeeper.observability import configure_logging
from notekeeper.services.note_service import NoteService


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="notekeeper database maintenance")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--data-dir",
        help="Directory holding the database file",
        type=str,
        default=os.environ.get("NOTEKEEPER_DATA_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=config.log_level
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init", help="Create or upgrade the schema")
    subparsers.add_parser("reindex", help="Rebuild the search index")
    subparsers.add_parser("health", help="Compare the search index with the notes")
    search = subparsers.add_parser("search", help="Search notes")
    search.add_argument("query", help="Free-text query")
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    config.log_level = args.log_level


def main(argv=None) -> int:
    """Run one maintenance command."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, config.log_level, logging.INFO)
    try:
        configure_logging(config.get_log_dir(), level=log_level, console=True)
    except OSError as e:
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")

    logger = logging.getLogger(__name__)

    try:
        config.ensure_data_dir()
        service = NoteService(cfg=config)
    except (NotekeeperError, OSError) as e:
        logger.error(f"Failed to open database: {e}")
        return 1

    try:
        print(service.initialize())
        if args.command == "reindex":
            print(f"Indexed {service.reindex()} notes")
        elif args.command == "health":
            print(json.dumps(service.index_health(), indent=2))
        elif args.command == "search":
            for note in service.search_notes(args.query):
                print(f"{note.id}\t{note.title}")
    except NotekeeperError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
