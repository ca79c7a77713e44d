import asyncio
import socket
from contextlib import asynccontextmanager

import pytest
from websockets.asyncio.server import serve

from mocopr.errors import ConnectionFailedError, NotReadyError, ReceiveFailedError
from mocopr.websocket import WebSocketTransport

TIMEOUT = 5


async def _echo(connection):
    async for message in connection:
        if message == "binary":
            await connection.send(b"binary payload")
        elif message == "badbinary":
            await connection.send(b"\xff\xfe\xfd")
        elif message == "close":
            await connection.close()
            return
        elif isinstance(message, str):
            await connection.send(f"Echo: {message}")


@asynccontextmanager
async def echo_server():
    async with serve(_echo, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _receive(transport):
    return await asyncio.wait_for(transport.receive(), TIMEOUT)


@pytest.mark.asyncio
async def test_websocket_connection():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            assert transport.is_connected()
            assert transport.url == url
            assert transport.transport_type() == "websocket"
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_send_receive():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            test_message = '{"jsonrpc":"2.0","method":"test","id":1}'
            await transport.send(test_message)
            received = await _receive(transport)
            assert received == f"Echo: {test_message}"

            assert transport.stats.messages_sent == 1
            assert transport.stats.messages_received == 1
            assert transport.stats.bytes_sent == len(test_message)
            assert transport.stats.bytes_received == len(received)
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_close():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        assert transport.is_connected()
        await transport.close()
        assert not transport.is_connected()

        with pytest.raises(NotReadyError):
            await transport.send("test message")
        with pytest.raises(NotReadyError):
            await transport.receive()


@pytest.mark.asyncio
async def test_websocket_connection_refused():
    with pytest.raises(ConnectionFailedError) as info:
        await WebSocketTransport.connect(f"ws://127.0.0.1:{_free_port()}")
    assert "Failed to connect to WebSocket" in str(info.value)


@pytest.mark.asyncio
async def test_websocket_invalid_url():
    with pytest.raises(ConnectionFailedError) as info:
        await asyncio.wait_for(
            WebSocketTransport.connect("ws://invalid-host:99999"), TIMEOUT
        )
    assert "Failed to connect to WebSocket" in str(info.value)


@pytest.mark.asyncio
async def test_websocket_reconnect():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            assert transport.is_connected()
            await transport.close()
            assert not transport.is_connected()

            await transport.reconnect()
            assert transport.is_connected()

            test_message = '{"jsonrpc":"2.0","method":"ping","id":2}'
            await transport.send(test_message)
            assert await _receive(transport) == f"Echo: {test_message}"
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_stats_tracking():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            assert transport.stats.messages_sent == 0
            assert transport.stats.messages_received == 0
            assert transport.stats.connection_time is not None
            assert transport.stats.last_activity is None

            for i in range(3):
                await transport.send(f"Message {i}")
                assert await _receive(transport) == f"Echo: Message {i}"

            assert transport.stats.messages_sent == 3
            assert transport.stats.messages_received == 3
            assert transport.stats.bytes_sent > 0
            assert transport.stats.bytes_received > transport.stats.bytes_sent
            assert transport.stats.last_activity is not None
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_large_message():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            large_content = "x" * (10 * 1024)
            large_message = (
                '{"jsonrpc":"2.0","method":"test","params":{"data":"'
                + large_content
                + '"}}'
            )
            await transport.send(large_message)
            received = await _receive(transport)
            assert received == f"Echo: {large_message}"
            assert transport.stats.bytes_sent >= 10 * 1024
            assert transport.stats.bytes_received >= 10 * 1024
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_binary_message_is_decoded():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            await transport.send("binary")
            assert await _receive(transport) == "binary payload"
            assert transport.stats.messages_received == 1
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_invalid_utf8_binary_fails():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            await transport.send("badbinary")
            with pytest.raises(ReceiveFailedError) as info:
                await _receive(transport)
            assert "Failed to decode binary message" in str(info.value)
            assert transport.stats.messages_received == 0
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_peer_close_returns_none():
    async with echo_server() as url:
        transport = await WebSocketTransport.connect(url)
        try:
            await transport.send("close")
            assert await _receive(transport) is None
        finally:
            await transport.close()


@pytest.mark.asyncio
async def test_websocket_context_manager_closes():
    async with echo_server() as url:
        async with await WebSocketTransport.connect(url) as transport:
            await transport.send("hi")
            assert await _receive(transport) == "Echo: hi"
        assert not transport.is_connected()