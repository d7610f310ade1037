"""
Bounded history store for decoded market data.

Holds the most recent N records in arrival order. One writer (the ingestion
loop) and any number of readers, from other tasks or other threads.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from feedhandler.config import DEFAULT_HISTORY_CAPACITY
from feedhandler.errors import ConfigurationError
from feedhandler.types import MarketData


class HistoryStore:
    """
    Insertion-ordered, FIFO-evicting container of MarketData records.

    Writes are serialized by a lock. After every write the current contents
    are published as an immutable tuple, so readers copy a complete state
    without taking the lock and never see a half-applied append.

    Publishing copies the whole buffer, so an append costs O(capacity). At the
    default capacity of 1000 that is a few microseconds per record. Reads
    between appends share one published tuple.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ConfigurationError(
                "capacity must be positive",
                field="capacity",
                value=capacity,
                component="HistoryStore",
            )
        self._capacity = capacity
        self._buffer: Deque[MarketData] = deque(maxlen=capacity)
        self._published: tuple[MarketData, ...] = ()
        self._write_lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of records kept."""
        return self._capacity

    def append(self, record: MarketData) -> None:
        """Add a record, evicting the oldest one if the store is full."""
        with self._write_lock:
            self._buffer.append(record)
            self._published = tuple(self._buffer)

    def snapshot(self) -> list[MarketData]:
        """Return an independent copy of the current contents, oldest first."""
        return list(self._published)

    def latest(self) -> Optional[MarketData]:
        """Most recent record, or None if the store is empty."""
        published = self._published
        return published[-1] if published else None

    def __len__(self) -> int:
        return len(self._published)
