"""The transport interface and its configuration and statistics types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Transport(ABC):
    """A bidirectional channel carrying one text message at a time.

    ``receive`` returns None once the peer has closed the channel.
    Transports are async context managers that close on exit, and
    async iterables over the messages received.
    """

    @abstractmethod
    async def send(self, message: str) -> None:
        """Send one message."""

    @abstractmethod
    async def receive(self) -> Optional[str]:
        """Receive one message, or None when the channel is closed."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the channel is open."""

    @abstractmethod
    def transport_type(self) -> str:
        """Short name of the transport kind."""

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def __aiter__(self) -> AsyncIterator[str]:
        while (message := await self.receive()) is not None:
            yield message


class TransportKind(Enum):
    """The kinds of transport a TransportConfig can describe."""

    STDIO = "stdio"
    WEBSOCKET = "websocket"
    HTTP = "http"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TransportConfig:
    """Which transport to create, with its URL or custom settings."""

    kind: TransportKind
    url: Optional[str] = None
    custom: Optional[Any] = None

    def __post_init__(self) -> None:
        if self.kind in (TransportKind.WEBSOCKET, TransportKind.HTTP) and not self.url:
            raise ValueError(f"A {self.kind.value} transport needs a URL")
        if self.kind is TransportKind.CUSTOM and self.custom is None:
            raise ValueError("A custom transport needs its configuration")


@dataclass
class TransportMessage:
    """A message with the time it was created."""

    data: str
    timestamp: datetime = field(default_factory=_now)


@dataclass
class TransportStats:
    """Message and byte counters of a transport."""

    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    connection_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None