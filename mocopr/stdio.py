"""Newline-delimited message transport over standard input and output."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import BinaryIO, Iterable, Optional, Union

from .errors import (
    ConnectionFailedError,
    NotReadyError,
    ReceiveFailedError,
    SendFailedError,
    TransportClosedError,
)
from .transport import Transport, TransportStats

logger = logging.getLogger(__name__)

# Messages are single lines; allow lines far longer than asyncio's 64 KiB default.
_STREAM_LIMIT = 16 * 1024 * 1024


class _ProcessChannel:
    """The pipes of a child process: we write its stdin and read its stdout."""

    read_source = "stdout"
    write_target = "stdin"

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._stdin = process.stdin
        self._stdout = process.stdout

    async def write(self, data: bytes) -> None:
        self._stdin.write(data)
        await self._stdin.drain()

    async def readline(self) -> bytes:
        return await self._stdout.readline()

    async def close(self) -> None:
        self._stdin.close()
        try:
            await self._stdin.wait_closed()
        except (OSError, RuntimeError):
            pass


class _ConsoleChannel:
    """This process's own stdin and stdout."""

    read_source = "stdin"
    write_target = "stdout"

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO) -> None:
        self._stdin = stdin
        self._stdout = stdout

    def _write_sync(self, data: bytes) -> None:
        self._stdout.write(data)
        self._stdout.flush()

    async def write(self, data: bytes) -> None:
        await asyncio.to_thread(self._write_sync, data)

    async def readline(self) -> bytes:
        return await asyncio.to_thread(self._stdin.readline)

    async def close(self) -> None:
        # The process's own streams stay open for the rest of the program.
        return None


_Channel = Union[_ProcessChannel, _ConsoleChannel]


class StdioTransport(Transport):
    """Exchanges one JSON message per line with a child process or the console.

    A transport made with no arguments has no channel yet: sending and
    receiving raise NotReadyError.
    """

    def __init__(self) -> None:
        self._channel: Optional[_Channel] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reaper: Optional[asyncio.Task] = None
        self.stats = TransportStats()

    @classmethod
    def _create(
        cls,
        channel: _Channel,
        process: Optional[asyncio.subprocess.Process],
    ) -> StdioTransport:
        transport = cls()
        transport._channel = channel
        transport._process = process
        return transport

    @classmethod
    async def spawn(cls, command: str, args: Iterable[str] = ()) -> StdioTransport:
        """Start a command with piped stdio and talk to it."""
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except (OSError, ValueError) as exc:
            raise ConnectionFailedError(
                f"Failed to spawn command '{command}': {exc}"
            ) from exc
        return cls.from_process(process)

    @classmethod
    def from_process(cls, process: asyncio.subprocess.Process) -> StdioTransport:
        """Talk to an already started process whose stdin and stdout are pipes."""
        if process.stdin is None:
            raise ConnectionFailedError("Failed to get stdin handle")
        if process.stdout is None:
            raise ConnectionFailedError("Failed to get stdout handle")
        return cls._create(_ProcessChannel(process), process)

    @classmethod
    def current_process(cls) -> StdioTransport:
        """Read this process's stdin and write its stdout."""
        return cls._create(_ConsoleChannel(sys.stdin.buffer, sys.stdout.buffer), None)

    def is_ready(self) -> bool:
        """Whether a channel is attached."""
        return self._channel is not None

    async def kill(self) -> None:
        """Kill the child process, if any, and wait for it to go."""
        process, self._process = self._process, None
        if process is None:
            return
        try:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
        except OSError as exc:
            raise ConnectionFailedError(f"Failed to kill child process: {exc}") from exc

    async def wait(self) -> int:
        """Wait for the child process to exit and return its exit code."""
        process, self._process = self._process, None
        if process is None:
            raise TransportClosedError()
        try:
            return await process.wait()
        except OSError as exc:
            raise ConnectionFailedError(f"Failed to wait for child: {exc}") from exc

    def _require_channel(self) -> _Channel:
        if self._channel is None:
            raise NotReadyError()
        return self._channel

    async def send(self, message: str) -> None:
        channel = self._require_channel()
        logger.debug("Sending message via stdio: %s", message)
        line = f"{message}\n".encode("utf-8")
        try:
            await channel.write(line)
        except (OSError, RuntimeError, ValueError) as exc:
            raise SendFailedError(
                f"Failed to write to {channel.write_target}: {exc}"
            ) from exc
        self.stats.messages_sent += 1
        self.stats.bytes_sent += len(line)

    async def receive(self) -> Optional[str]:
        channel = self._require_channel()
        try:
            raw = await channel.readline()
        except (OSError, ValueError, asyncio.LimitOverrunError) as exc:
            logger.warning("Failed to read from %s: %s", channel.read_source, exc)
            raise ReceiveFailedError(
                f"Failed to read from {channel.read_source}: {exc}"
            ) from exc
        if not raw:
            return None

        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("Failed to read from %s: %s", channel.read_source, exc)
            raise ReceiveFailedError(
                f"Failed to read from {channel.read_source}: {exc}"
            ) from exc

        self.stats.messages_received += 1
        self.stats.bytes_received += len(raw)
        logger.debug("Received message: %s", line)
        return line

    async def close(self) -> None:
        logger.debug("Closing stdio transport")
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close()
        process, self._process = self._process, None
        if process is not None:
            # Reap the child in the background so it does not linger as a zombie.
            self._reaper = asyncio.create_task(process.wait())

    def is_connected(self) -> bool:
        return self.is_ready() and self._process is not None

    def transport_type(self) -> str:
        return "stdio"