"""Entry point for the photo backup server.

Starts the server on the preferred port, prints the LAN addresses clients
can reach, and stops cleanly on SIGINT/SIGTERM.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

from common.logging_config import setup_logging
from photobackup.config import Settings
from photobackup.exceptions import BindError, StorageError
from photobackup.lifecycle import ServerLifecycle
from photobackup.network import base_urls


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LAN photo backup server")
    parser.add_argument("--port", type=int, default=None, help="preferred port (default 3000)")
    parser.add_argument("--root", type=Path, default=None, help="backup root directory")
    parser.add_argument(
        "--no-discovery",
        action="store_true",
        help="do not advertise the service over mDNS",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


def log_addresses(logger, port: int) -> None:
    """Log every URL a client on the LAN can use."""
    urls = base_urls(port)
    if not urls:
        logger.warning(f"No LAN IPv4 address found; server is on port {port}")
        return
    logger.info("Available addresses:")
    for url in urls:
        logger.info(f"  Base URL: {url}")
        logger.info(f"  Status: {url}/status")
        logger.info(f"  Upload: {url}/upload")


async def serve(settings: Settings, logger) -> None:
    """
    Run the server until a termination signal arrives.
    """
    lifecycle = ServerLifecycle(settings)
    port = await lifecycle.start(settings.preferred_port)
    log_addresses(logger, port)

    stop_event = asyncio.Event()
    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
        logger.info("Shutting down server...")
    finally:
        await lifecycle.stop()


def main(argv: Optional[List[str]] = None) -> None:
    """Bootstrap the photo backup server."""
    args = parse_args(argv)
    logger = setup_logging('photobackup', log_level='DEBUG' if args.debug else None)
    setup_logging('uvicorn', log_level='DEBUG' if args.debug else None)

    settings = Settings.from_env().with_overrides(
        preferred_port=args.port,
        backup_root=args.root.expanduser() if args.root else None,
        discovery_enabled=False if args.no_discovery else None,
    )

    try:
        asyncio.run(serve(settings, logger))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except (BindError, StorageError) as e:
        logger.error(f"Server start failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
