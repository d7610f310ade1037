"""
Frame classification for the ingestion loop.

Maps transport-level WebSocket message types onto the small set of frame
kinds the loop acts on.
"""

from __future__ import annotations

import aiohttp

from feedhandler.types import FrameKind

FRAME_KIND_MAP: dict[aiohttp.WSMsgType, FrameKind] = {
    aiohttp.WSMsgType.TEXT: FrameKind.DATA,
    aiohttp.WSMsgType.PING: FrameKind.PING,
    aiohttp.WSMsgType.CLOSE: FrameKind.CLOSE,
    aiohttp.WSMsgType.CLOSING: FrameKind.LOST,
    aiohttp.WSMsgType.CLOSED: FrameKind.LOST,
    aiohttp.WSMsgType.ERROR: FrameKind.ERROR,
}


def classify(msg: aiohttp.WSMessage) -> FrameKind:
    """Classify an inbound message. Unlisted types (binary, pong) are ignored."""
    return FRAME_KIND_MAP.get(msg.type, FrameKind.IGNORED)

