"""feedhandler CLI entrypoint.

Connects to a market data WebSocket, streams records into the in-memory
history and logs a summary of the history on a fixed interval.

Usage: feedhandler --url wss://stream.example.com/ws --channels ticker trades

Settings are read from FEED_* environment variables first; command line
options override them.

Exit codes: 0 when the peer closes the stream, 1 on a fatal feed error,
2 on invalid configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any, Optional

from feedhandler.config import FeedConfig
from feedhandler.errors import ConfigurationError, FeedError
from feedhandler.feed import FeedHandler
from feedhandler.monitor import poll_history

logger = logging.getLogger("feedhandler")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FEED_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """
    Return the CLI argument parser.
    """
    p = argparse.ArgumentParser(prog="feedhandler", description="Stream market data into memory")
    p.add_argument("--url", help="WebSocket endpoint (env: FEED_URL)")
    p.add_argument(
        "--channels",
        nargs="+",
        metavar="CHANNEL",
        help="Channels to subscribe to, e.g. ticker trades (env: FEED_CHANNELS)",
    )
    p.add_argument(
        "--poll-interval",
        type=float,
        dest="poll_interval_s",
        help="Seconds between history reports (env: FEED_POLL_INTERVAL_S)",
    )
    p.add_argument(
        "--receive-timeout",
        type=float,
        dest="receive_timeout_s",
        help="Fail if no frame arrives within this many seconds (default: wait forever)",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return p


def resolve_config(args: argparse.Namespace, base: Optional[FeedConfig] = None) -> FeedConfig:
    """Apply command line overrides on top of the environment config."""
    config = base if base is not None else FeedConfig.from_env()

    overrides: dict[str, Any] = {}
    if args.url:
        overrides["url"] = args.url
    if args.channels:
        overrides["channels"] = tuple(args.channels)
    if args.poll_interval_s is not None:
        overrides["poll_interval_s"] = args.poll_interval_s
    if args.receive_timeout_s is not None:
        overrides["receive_timeout_s"] = args.receive_timeout_s

    # replace() re-runs validation
    return replace(config, **overrides) if overrides else config


async def run_feed(config: FeedConfig) -> int:
    """Run the feed and the history reporter until the feed ends."""
    handler = FeedHandler(config.url, config)

    feed_task = asyncio.create_task(handler.run(), name="feed_run")
    poll_task = asyncio.create_task(
        poll_history(handler, config.poll_interval_s), name="feed_poll"
    )

    try:
        await asyncio.wait({feed_task})
    finally:
        poll_task.cancel()
        try:
            await poll_task
        except asyncio.CancelledError:
            pass
        if not feed_task.done():
            feed_task.cancel()

    try:
        feed_task.result()
    except FeedError as e:
        logger.error(f"Connection error: {e}")
        return EXIT_FEED_ERROR

    logger.info(f"Feed finished: {handler.get_stats()}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    logger.info("=== WebSocket Feed Handler ===")

    try:
        config = resolve_config(args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    try:
        return asyncio.run(run_feed(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
