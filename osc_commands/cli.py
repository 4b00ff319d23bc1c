"""
OSC Commands - CLI

Loads the configuration, binds the listening socket and serves until
interrupted.

Usage:
    osc-commands [--config PATH] [--workers N] [-v]
    python -m osc_commands
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Iterable, Optional

from .config import load_config
from .errors import ConfigError
from .pool import DEFAULT_WORKERS
from .server import CommandServer

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osc-commands",
        description="Run configured shell commands in response to OSC messages",
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None,
        help="Configuration file (default: ./config.json, ~/.osc-commands.config.json, "
             "/etc/ents/osc-commands.json)",
    )
    parser.add_argument(
        "-w", "--workers", type=positive_int, default=DEFAULT_WORKERS,
        help=f"Commands allowed to run at once (default: {DEFAULT_WORKERS})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable verbose logging"
    )
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(asctime)s [%(levelname)s] %(message)s"
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error(str(exc))
        return 1

    server = CommandServer(config, workers=args.workers)
    try:
        server.start()
    except OSError as exc:
        logger.error(f"Failed to bind a UDP socket to {config.bind}:{config.port}: {exc}")
        return 1

    stop_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        while not stop_event.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
