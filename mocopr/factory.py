"""Creation of transports from a TransportConfig."""

from __future__ import annotations

from .errors import InternalError
from .http import HttpTransport
from .stdio import StdioTransport
from .transport import Transport, TransportConfig, TransportKind
from .websocket import WebSocketTransport


async def create_transport(config: TransportConfig) -> Transport:
    """Create the transport a configuration describes.

    A stdio transport is returned without a channel attached; WebSocket
    and HTTP transports connect to their URL first.
    """
    if config.kind is TransportKind.STDIO:
        return StdioTransport()
    if config.kind is TransportKind.WEBSOCKET:
        return await WebSocketTransport.connect(config.url)
    if config.kind is TransportKind.HTTP:
        return await HttpTransport.connect(config.url)
    raise InternalError("Custom transports are not supported by the factory")