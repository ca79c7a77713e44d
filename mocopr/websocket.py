"""Message transport over a WebSocket connection."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import (
    ConnectionFailedError,
    NotReadyError,
    ReceiveFailedError,
    SendFailedError,
)
from .transport import Transport, TransportStats

logger = logging.getLogger(__name__)

# Accept messages as large as common WebSocket stacks do by default.
_MAX_MESSAGE_SIZE = 64 * 1024 * 1024

_CONNECT_ERRORS = (
    OSError,
    WebSocketException,
    asyncio.TimeoutError,
    TimeoutError,
    ValueError,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _open(url: str) -> ClientConnection:
    return await connect(url, max_size=_MAX_MESSAGE_SIZE)


class WebSocketTransport(Transport):
    """Exchanges text messages with a WebSocket server.

    Binary frames are accepted when they hold UTF-8 text. Pings are
    answered by the connection itself.
    """

    def __init__(
        self,
        url: str,
        connection: Optional[ClientConnection],
        stats: TransportStats,
    ) -> None:
        self.url = url
        self._connection = connection
        self.stats = stats

    @classmethod
    async def connect(cls, url: str) -> WebSocketTransport:
        """Open a WebSocket connection to the URL."""
        try:
            connection = await _open(url)
        except _CONNECT_ERRORS as exc:
            raise ConnectionFailedError(
                f"Failed to connect to WebSocket: {exc}"
            ) from exc
        return cls(url, connection, TransportStats(connection_time=_now()))

    async def reconnect(self) -> None:
        """Close the current connection, if any, and open a new one."""
        logger.debug("Reconnecting to WebSocket: %s", self.url)
        await self.close()
        try:
            connection = await _open(self.url)
        except _CONNECT_ERRORS as exc:
            raise ConnectionFailedError(
                f"Failed to reconnect to WebSocket: {exc}"
            ) from exc
        self._connection = connection
        self.stats.connection_time = _now()

    def _require_connection(self) -> ClientConnection:
        if self._connection is None:
            raise NotReadyError()
        return self._connection

    def _count_received(self, text: str) -> None:
        self.stats.messages_received += 1
        self.stats.bytes_received += len(text.encode("utf-8"))
        self.stats.last_activity = _now()

    async def send(self, message: str) -> None:
        connection = self._require_connection()
        logger.debug("Sending message via WebSocket: %s", message)
        try:
            await connection.send(message)
        except (OSError, WebSocketException) as exc:
            raise SendFailedError(
                f"Failed to send WebSocket message: {exc}"
            ) from exc
        self.stats.messages_sent += 1
        self.stats.bytes_sent += len(message.encode("utf-8"))
        self.stats.last_activity = _now()
        logger.debug("Message sent successfully via WebSocket")

    async def receive(self) -> Optional[str]:
        connection = self._require_connection()
        try:
            data = await connection.recv()
        except ConnectionClosed as exc:
            if exc.rcvd is not None:
                logger.debug("WebSocket connection closed by peer")
                return None
            logger.error("WebSocket error: %s", exc)
            raise ReceiveFailedError(f"WebSocket error: {exc}") from exc
        except (OSError, WebSocketException) as exc:
            logger.error("WebSocket error: %s", exc)
            raise ReceiveFailedError(f"WebSocket error: {exc}") from exc

        if isinstance(data, str):
            self._count_received(data)
            logger.debug("Received message via WebSocket: %s", data)
            return data

        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.error("Failed to decode binary WebSocket message: %s", exc)
            raise ReceiveFailedError(
                f"Failed to decode binary message: {exc}"
            ) from exc
        self._count_received(text)
        logger.debug("Received binary message via WebSocket: %s", text)
        return text

    async def close(self) -> None:
        logger.debug("Closing WebSocket transport")
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except (OSError, WebSocketException):
                pass

    def is_connected(self) -> bool:
        return self._connection is not None

    def transport_type(self) -> str:
        return "websocket"