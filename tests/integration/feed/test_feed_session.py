"""
End-to-end feed session against a local aiohttp WebSocket server.

The server plays a scripted exchange: it reads the subscription, sends
records, a malformed message, a binary frame and a ping, checks the pong,
then closes. Another server drops the TCP transport without a close frame.
"""

import asyncio
import json
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from feedhandler.errors import ReceiveError
from feedhandler.feed import FeedHandler
from feedhandler.monitor import poll_history
from feedhandler.types import ConnectionState, MarketData

BTC = {"symbol": "BTCUSD", "price": 50000.0, "volume": 1.5, "timestamp": 1234567890}
ETH = {"symbol": "ETHUSD", "price": 3000.25, "volume": 10.0, "timestamp": 1234567891}


def make_app(log: dict[str, list[Any]]) -> web.Application:
    async def feed(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(autoping=False)
        await ws.prepare(request)

        subscription = await ws.receive()
        log["subscriptions"].append(subscription.data)

        await ws.send_str(json.dumps(BTC))
        await ws.send_str('{"symbol": "BTCUSD", "volume": 1.5, "timestamp": 1}')
        await ws.send_bytes(json.dumps(ETH).encode())
        await ws.ping(b"keepalive-1")

        reply = await ws.receive()
        log["replies"].append((reply.type, reply.data))

        await ws.send_str(json.dumps(ETH))
        await ws.close()
        return ws

    app = web.Application()
    app.router.add_get("/ws", feed)
    return app


@pytest.mark.asyncio
async def test_feed_session_end_to_end() -> None:
    log: dict[str, list[Any]] = {"subscriptions": [], "replies": []}

    async with TestServer(make_app(log)) as server:
        handler = FeedHandler(str(server.make_url("/ws")))
        await asyncio.wait_for(handler.run(), timeout=10)

    assert [json.loads(s) for s in log["subscriptions"]] == [
        {"type": "subscribe", "channels": ["ticker", "trades"]}
    ]
    assert log["replies"] == [(aiohttp.WSMsgType.PONG, b"keepalive-1")]

    assert handler.snapshot() == [MarketData(**BTC), MarketData(**ETH)]
    assert handler.state == ConnectionState.CLOSED

    stats = handler.get_stats()
    assert stats["pongs_sent"] == 1
    assert stats["frames_ignored"] == 1
    assert stats["handler"]["dropped"] == 1


@pytest.mark.asyncio
async def test_poller_reads_while_feed_streams() -> None:
    release = asyncio.Event()

    async def feed(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(autoping=False)
        await ws.prepare(request)
        await ws.receive()
        for i in range(5):
            await ws.send_str(json.dumps({**BTC, "timestamp": i}))
        await release.wait()
        await ws.close()
        return ws

    app = web.Application()
    app.router.add_get("/ws", feed)

    async with TestServer(app) as server:
        handler = FeedHandler(str(server.make_url("/ws")))
        feed_task = asyncio.create_task(handler.run())

        for _ in range(100):
            if len(handler.snapshot()) == 5:
                break
            await asyncio.sleep(0.02)

        summary = await poll_history(handler, 0.01, iterations=2)
        release.set()
        await asyncio.wait_for(feed_task, timeout=10)

    assert summary is not None
    assert summary.count == 5
    assert summary.latest is not None
    assert summary.latest.timestamp == 4


@pytest.mark.asyncio
async def test_peer_dropping_transport_is_fatal() -> None:
    async def feed(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(autoping=False)
        await ws.prepare(request)
        await ws.receive()
        await ws.send_str(json.dumps(BTC))
        # The pong comes back only after the record was handled
        await ws.ping(b"sync")
        await ws.receive()
        assert request.transport is not None
        request.transport.abort()
        return ws

    app = web.Application()
    app.router.add_get("/ws", feed)

    async with TestServer(app) as server:
        handler = FeedHandler(str(server.make_url("/ws")))
        with pytest.raises(ReceiveError):
            await asyncio.wait_for(handler.run(), timeout=10)

    assert handler.state == ConnectionState.CLOSED
    assert handler.is_running is False
    assert handler.snapshot() == [MarketData(**BTC)]

    stats = handler.get_stats()
    assert stats["errors"] == 1
    assert stats["last_error"] is not None
