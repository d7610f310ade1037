"""
WebSocket Market Data Feed Handler.

Streams market data from a single WebSocket endpoint into a bounded,
concurrency-safe in-memory history.

Components:
- FeedHandler: Connection lifecycle, subscription, frame dispatch
- HistoryStore: Last N records, FIFO eviction, lock-free snapshots
- MarketDataHandler: Text frame decoding into MarketData records
- poll_history: Periodic reader that logs a history summary

Usage:
    from feedhandler import FeedHandler

    handler = FeedHandler("wss://stream.example.com/ws")
    task = asyncio.create_task(handler.run())
    ...
    records = handler.snapshot()
"""

from feedhandler.config import FeedConfig
from feedhandler.errors import (
    ConfigurationError,
    ConnectionError,
    FeedError,
    MessageParseError,
    ReceiveError,
    SendError,
)
from feedhandler.feed import FeedHandler
from feedhandler.handlers import MarketDataHandler, decode_market_data
from feedhandler.monitor import HistorySummary, poll_history, summarize
from feedhandler.store import HistoryStore
from feedhandler.types import ConnectionState, FeedStats, FrameKind, MarketData

__all__ = [
    # Main entry point
    "FeedHandler",
    "FeedConfig",
    "HistoryStore",
    # Decoding
    "MarketDataHandler",
    "decode_market_data",
    # Reporting
    "HistorySummary",
    "poll_history",
    "summarize",
    # Types
    "MarketData",
    "ConnectionState",
    "FrameKind",
    "FeedStats",
    # Errors
    "FeedError",
    "ConnectionError",
    "SendError",
    "ReceiveError",
    "MessageParseError",
    "ConfigurationError",
]
