"""
Feed ingestion loop.

Owns one WebSocket connection end to end:
- Handshake with the configured endpoint
- One subscription message right after connecting
- Receive, classify and decode frames in arrival order
- Keepalive replies (pong with the ping payload)
- Appending decoded records to the bounded history store

There is no reconnect logic here. Every fatal condition is raised from
`run()`; the caller decides whether to run the handler again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional

import aiohttp
import orjson

from feedhandler.config import FeedConfig
from feedhandler.errors import ConnectionError, FeedError, ReceiveError, SendError
from feedhandler.handlers import MarketDataHandler
from feedhandler.router import classify
from feedhandler.store import HistoryStore
from feedhandler.types import ConnectionState, FeedStats, FrameKind, MarketData

logger = logging.getLogger(__name__)


class FeedHandler:
    """
    Market data ingestion client for a single WebSocket endpoint.

    State Machine:
        [UNCONNECTED] --run()--> [CONNECTING] --> [SUBSCRIBING] --> [STREAMING]
                                      |                |                 |
                                      +----------------+-----------------+--> [CLOSED]

    Usage:
        handler = FeedHandler("wss://stream.example.com/ws")
        task = asyncio.create_task(handler.run())
        # ... elsewhere, periodically ...
        records = handler.snapshot()
    """

    def __init__(
        self,
        url: str,
        config: Optional[FeedConfig] = None,
        name: str = "feed",
    ) -> None:
        """
        Initialize the feed handler. No I/O is performed.

        Args:
            url: WebSocket endpoint; overrides `config.url` when both are given
            config: Feed configuration, defaults are used if omitted
            name: Name for logging purposes
        """
        if config is None:
            config = FeedConfig(url=url)
        elif config.url != url:
            config = replace(config, url=url)

        self._config = config
        self._name = name

        # State
        self._state = ConnectionState.UNCONNECTED
        self._running = False

        # History and decoding
        self._store = HistoryStore(config.history_capacity)
        self._handler = MarketDataHandler(
            on_record=self._store.append,
            name=f"{name}_handler",
        )

        # Metrics
        self._stats = FeedStats()
        self._last_error: Optional[str] = None

    @property
    def url(self) -> str:
        """Endpoint URL."""
        return self._config.url

    @property
    def config(self) -> FeedConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> FeedStats:
        """Frame-level counters."""
        return self._stats

    @property
    def store(self) -> HistoryStore:
        return self._store

    def snapshot(self) -> list[MarketData]:
        """Point-in-time copy of the recent history, oldest first."""
        return self._store.snapshot()

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.debug(f"[{self._name}] State: {old_state.value} -> {new_state.value}")

    async def run(self) -> None:
        """
        Connect, subscribe and stream until the peer closes or a fatal error occurs.

        Returns normally on an orderly close.

        Raises:
            ConnectionError: If the handshake fails
            SendError: If the subscription or a keepalive reply cannot be sent
            ReceiveError: If the transport fails while waiting for a frame, or the
                connection is lost without a close frame
            FeedError: If the handler is already running
        """
        if self._running:
            raise FeedError("Feed handler is already running", component="FeedHandler")

        self._running = True
        try:
            timeout = aiohttp.ClientTimeout(total=self._config.connect_timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                ws = await self._connect(session)
                try:
                    await self._subscribe(ws)
                    await self._stream(ws)
                finally:
                    if not ws.closed:
                        await ws.close()
        finally:
            self._set_state(ConnectionState.CLOSED)
            self._running = False

    async def _connect(self, session: aiohttp.ClientSession) -> aiohttp.ClientWebSocketResponse:
        """Perform the WebSocket handshake."""
        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"[{self._name}] Connecting to WebSocket: {self._config.url}")

        try:
            # Keepalive replies are sent by the stream loop itself
            ws = await session.ws_connect(self._config.url, autoping=False)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self._record_error(e)
            self._set_state(ConnectionState.CLOSED)
            raise ConnectionError(
                f"WebSocket handshake failed: {e}",
                url=self._config.url,
                component="FeedHandler",
            ) from e

        logger.info(f"[{self._name}] WebSocket connected successfully")
        return ws

    async def _subscribe(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Send the channel subscription message."""
        self._set_state(ConnectionState.SUBSCRIBING)
        payload = self._config.subscription_message()

        try:
            await ws.send_str(orjson.dumps(payload).decode())
        except (aiohttp.ClientError, OSError) as e:
            self._record_error(e)
            self._set_state(ConnectionState.CLOSED)
            raise SendError(
                f"Failed to send subscription: {e}",
                frame="subscribe",
                component="FeedHandler",
            ) from e

        logger.info(f"[{self._name}] Subscribed to market data channels: {list(self._config.channels)}")

    async def _stream(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Process inbound frames strictly in arrival order until a terminal frame."""
        self._set_state(ConnectionState.STREAMING)

        try:
            while True:
                try:
                    msg = await ws.receive(timeout=self._config.receive_timeout_s)
                except asyncio.TimeoutError as e:
                    self._record_error(e)
                    logger.error(
                        f"[{self._name}] No frame within {self._config.receive_timeout_s}s"
                    )
                    raise ReceiveError(
                        "Timed out waiting for the next frame",
                        messages_received=self._stats.messages_received,
                        component="FeedHandler",
                    ) from e

                self._stats.messages_received += 1
                kind = classify(msg)

                if kind is FrameKind.DATA:
                    self._handler.handle(msg.data)

                elif kind is FrameKind.PING:
                    await self._send_pong(ws, msg.data)

                elif kind is FrameKind.CLOSE:
                    logger.warning(f"[{self._name}] WebSocket connection closed")
                    return

                elif kind is FrameKind.LOST:
                    # aiohttp reports a dropped transport as CLOSED, not as an exception
                    exc = ws.exception()
                    close_code = ws.close_code
                    self._record_error(exc or f"connection lost (close code {close_code})")
                    logger.error(
                        f"[{self._name}] WebSocket connection lost without close frame "
                        f"(code={close_code})"
                    )
                    raise ReceiveError(
                        "WebSocket connection lost without a close frame",
                        messages_received=self._stats.messages_received,
                        close_code=close_code,
                        component="FeedHandler",
                    ) from exc

                elif kind is FrameKind.ERROR:
                    exc = ws.exception() or msg.data
                    cause = exc if isinstance(exc, BaseException) else None
                    self._record_error(exc)
                    logger.error(f"[{self._name}] WebSocket error: {exc}")
                    raise ReceiveError(
                        f"WebSocket error: {exc}",
                        messages_received=self._stats.messages_received,
                        component="FeedHandler",
                    ) from cause

                else:
                    self._stats.frames_ignored += 1
                    logger.debug(f"[{self._name}] Ignored {msg.type.name} frame")
        finally:
            self._set_state(ConnectionState.CLOSED)

    async def _send_pong(self, ws: aiohttp.ClientWebSocketResponse, payload: bytes) -> None:
        try:
            await ws.pong(payload)
        except (aiohttp.ClientError, OSError) as e:
            self._record_error(e)
            raise SendError(
                f"Failed to send pong: {e}",
                frame="pong",
                component="FeedHandler",
            ) from e
        self._stats.pongs_sent += 1
        logger.debug(f"[{self._name}] Sent pong ({len(payload)} bytes)")

    def _record_error(self, error: Any) -> None:
        self._stats.errors += 1
        self._last_error = str(error)

    def get_stats(self) -> dict[str, Any]:
        """Get statistics summary."""
        handler_stats = self._handler.stats
        return {
            "state": self._state.value,
            "url": self._config.url,
            "running": self._running,
            "history_size": len(self._store),
            "history_capacity": self._store.capacity,
            "last_error": self._last_error,
            **self._stats.as_dict(),
            "handler": {
                "received": handler_stats.messages_received,
                "decoded": handler_stats.records_decoded,
                "dropped": handler_stats.parse_errors,
                "by_symbol": dict(handler_stats.by_symbol),
            },
        }
