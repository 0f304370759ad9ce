"""
WebSocket transport for the logs subscription.

Thin wrapper around an aiohttp client websocket exposing only what the
subscription manager needs: connect, a one-shot readiness future, send,
ping, receive and close.
"""

import asyncio
from typing import Any, Optional

import aiohttp

from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)


class TransportClosed(Exception):
    """The websocket was closed. `error` is set when it closed because of a failure."""

    def __init__(self, reason: str = "closed", error: Optional[BaseException] = None):
        super().__init__(reason)
        self.error = error


class TransportNotReady(Exception):
    """The transport did not become ready within the allowed attempts."""


class WebSocketTransport:
    """aiohttp websocket with a readiness future resolved exactly once."""

    def __init__(self, url: str, session: aiohttp.ClientSession):
        self.url = url
        self._session = session
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self.ready: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def closed(self) -> bool:
        return self._ws is None or self._ws.closed

    async def connect(self) -> None:
        # autoping answers server pings; our own keep-alive pings are sent by the manager
        self._ws = await self._session.ws_connect(self.url, autoping=True, heartbeat=None)
        if not self.ready.done():
            self.ready.set_result(True)

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed:
            raise TransportClosed("send on closed websocket")
        await self._ws.send_json(data)

    async def ping(self) -> None:
        if self.closed:
            raise TransportClosed("ping on closed websocket")
        await self._ws.ping()

    async def receive(self) -> str:
        """Next text frame. Raises TransportClosed when the socket goes away."""
        if self._ws is None:
            raise TransportClosed("not connected")
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data.decode("utf-8", errors="replace")
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportClosed("websocket error", error=self._ws.exception())
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                raise TransportClosed(f"websocket closed (code={self._ws.close_code})")
            # PING/PONG are handled by aiohttp

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if not self.ready.done():
            self.ready.cancel()
