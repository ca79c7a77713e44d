"""One-way transport that posts each message to an HTTP endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .errors import ConnectionFailedError, SendFailedError
from .transport import Transport, TransportStats

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _status(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


class HttpTransport(Transport):
    """Posts every message as its own HTTP request.

    HTTP gives no way for the peer to push messages, so ``receive``
    always returns None.
    """

    def __init__(
        self, client: httpx.AsyncClient, endpoint: str, stats: TransportStats
    ) -> None:
        self._client = client
        self.endpoint = endpoint
        self.stats = stats

    @classmethod
    async def connect(cls, endpoint: str) -> HttpTransport:
        """Check that the endpoint answers a GET, then return a transport for it."""
        client = httpx.AsyncClient()
        try:
            response = await client.get(endpoint)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            await client.aclose()
            raise ConnectionFailedError(
                f"Failed to connect to HTTP endpoint: {exc}"
            ) from exc
        if not response.is_success:
            await client.aclose()
            raise ConnectionFailedError(
                f"HTTP endpoint returned status: {_status(response)}"
            )
        return cls(client, endpoint, TransportStats(connection_time=_now()))

    async def send(self, message: str) -> None:
        logger.debug("Sending message via HTTP: %s", message)
        try:
            response = await self._client.post(
                self.endpoint,
                content=message.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as exc:
            raise SendFailedError(f"Failed to send HTTP request: {exc}") from exc
        if not response.is_success:
            raise SendFailedError(
                f"HTTP request failed with status: {_status(response)}"
            )
        self.stats.messages_sent += 1
        self.stats.bytes_sent += len(message.encode("utf-8"))
        self.stats.last_activity = _now()
        logger.debug("Message sent successfully via HTTP")

    async def receive(self) -> Optional[str]:
        logger.debug("HTTP transport receive called - nothing to receive")
        return None

    async def close(self) -> None:
        logger.debug("Closing HTTP transport")
        await self._client.aclose()

    def is_connected(self) -> bool:
        return not self._client.is_closed

    def transport_type(self) -> str:
        return "http"