"""
Shared types, enums, and data structures for the feed handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

U64_MAX = 2**64 - 1


class ConnectionState(str, Enum):
    """Linear lifecycle of a single feed connection."""

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    CLOSED = "closed"


class FrameKind(str, Enum):
    """Classification of an inbound WebSocket frame."""

    DATA = "data"  # text frame, candidate record
    PING = "ping"
    CLOSE = "close"  # peer-initiated close frame
    LOST = "lost"  # transport ended without a close handshake
    ERROR = "error"
    IGNORED = "ignored"  # binary, pong, anything else


class MarketData(BaseModel):
    """
    One decoded market-data unit.

    Immutable once constructed. Strict validation: strings are not coerced
    into numbers, floats and booleans are not accepted as a timestamp.
    Unknown keys in the source payload are ignored.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    symbol: str = Field(min_length=1)
    price: float
    volume: float
    timestamp: int = Field(ge=0, le=U64_MAX)  # source-provided, not checked for freshness


@dataclass
class FeedStats:
    """Frame-level counters for a feed handler run."""

    messages_received: int = 0
    pongs_sent: int = 0
    frames_ignored: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "messages_received": self.messages_received,
            "pongs_sent": self.pongs_sent,
            "frames_ignored": self.frames_ignored,
            "errors": self.errors,
        }
