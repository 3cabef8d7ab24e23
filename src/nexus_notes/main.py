#!/usr/bin/env python
"""Main entry point for the NexusNotes MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from nexus_notes import __version__
from nexus_notes.config import config
from nexus_notes.exceptions import StorageInitializationError
from nexus_notes.observability import configure_logging, metrics
from nexus_notes.server.mcp_server import NexusNotesMcpServer
from nexus_notes.storage.engine import StorageEngine


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="NexusNotes MCP Server")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir",
        help="Directory holding the NexusNotes database",
        type=str,
        default=os.environ.get("NEXUSNOTES_DATA_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NEXUSNOTES_LOG_LEVEL", "INFO")
    )
    parser.add_argument(
        "--no-seed",
        help="Do not insert starter notebooks and notes into an empty database",
        action="store_true",
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.no_seed:
        config.seed_default_data = False


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown."""
    try:
        if metrics.save_metrics():
            logging.getLogger(__name__).info("Metrics saved to disk on shutdown")
    except Exception as e:
        logging.getLogger(__name__).warning(f"Failed to save metrics on shutdown: {e}")


def main():
    """Run the NexusNotes MCP server."""
    # Parse arguments and update config
    args = parse_args()
    update_config(args)

    # Configure logging (console + persistent file logging with rotation)
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(config.get_log_dir(), level=log_level, console=True)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    # Open the single storage engine shared by all repositories
    storage = StorageEngine(config)
    try:
        storage.open()
    except StorageInitializationError as e:
        logger.error(f"Failed to initialize storage: {e}")
        sys.exit(1)

    metrics.set_metrics_file(config.data_dir.expanduser() / "metrics.json")
    atexit.register(_save_metrics_on_exit)
    atexit.register(storage.close)

    try:
        logger.info("Starting NexusNotes MCP server")
        server = NexusNotesMcpServer(storage)
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
