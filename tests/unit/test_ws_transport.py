"""Tests for the aiohttp websocket transport"""
import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock

from swapwatch.monitoring.ws_transport import TransportClosed, WebSocketTransport


def frame(msg_type, data=None):
    msg = MagicMock()
    msg.type = msg_type
    msg.data = data
    return msg


@pytest.fixture
def ws():
    socket = MagicMock()
    socket.closed = False
    socket.close_code = 1000
    socket.send_json = AsyncMock()
    socket.ping = AsyncMock()
    socket.close = AsyncMock()
    socket.receive = AsyncMock()
    socket.exception = MagicMock(return_value=ConnectionResetError("reset"))
    return socket


@pytest.fixture
def session(ws):
    s = MagicMock()
    s.ws_connect = AsyncMock(return_value=ws)
    return s


@pytest.mark.asyncio
async def test_connect_resolves_ready(session):
    transport = WebSocketTransport("wss://rpc.example", session)
    assert transport.closed
    assert not transport.ready.done()

    await transport.connect()

    assert transport.ready.result() is True
    assert not transport.closed


@pytest.mark.asyncio
async def test_receive_skips_control_frames(session, ws):
    ws.receive.side_effect = [
        frame(aiohttp.WSMsgType.PONG),
        frame(aiohttp.WSMsgType.TEXT, '{"id": 1}'),
        frame(aiohttp.WSMsgType.BINARY, b'{"id": 2}'),
    ]
    transport = WebSocketTransport("wss://rpc.example", session)
    await transport.connect()

    assert await transport.receive() == '{"id": 1}'
    assert await transport.receive() == '{"id": 2}'


@pytest.mark.asyncio
async def test_close_frame_raises_clean_closure(session, ws):
    ws.receive.return_value = frame(aiohttp.WSMsgType.CLOSE)
    transport = WebSocketTransport("wss://rpc.example", session)
    await transport.connect()

    with pytest.raises(TransportClosed) as exc_info:
        await transport.receive()
    assert exc_info.value.error is None


@pytest.mark.asyncio
async def test_error_frame_carries_exception(session, ws):
    ws.receive.return_value = frame(aiohttp.WSMsgType.ERROR)
    transport = WebSocketTransport("wss://rpc.example", session)
    await transport.connect()

    with pytest.raises(TransportClosed) as exc_info:
        await transport.receive()
    assert isinstance(exc_info.value.error, ConnectionResetError)


@pytest.mark.asyncio
async def test_send_and_ping_require_open_socket(session, ws):
    transport = WebSocketTransport("wss://rpc.example", session)

    with pytest.raises(TransportClosed):
        await transport.send_json({"id": 1})

    await transport.connect()
    await transport.send_json({"id": 1})
    await transport.ping()
    ws.send_json.assert_awaited_once_with({"id": 1})
    ws.ping.assert_awaited_once()

    await transport.close()
    ws.close.assert_awaited_once()
