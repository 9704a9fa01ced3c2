"""Test fixtures for mpdctrl tests."""

import asyncio
from collections import deque
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import suppress

import pytest

GREETING = b"OK MPD 0.23.5\n"


class MockStreamReader:
    """Mock asyncio StreamReader returning scripted chunks."""

    def __init__(self, responses: list[bytes]) -> None:
        self._responses = deque(responses)
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        """Return the next scripted chunk, or b"" when exhausted."""
        self.reads += 1
        if not self._responses:
            return b""
        chunk = self._responses.popleft()
        if 0 < n < len(chunk):
            self._responses.appendleft(chunk[n:])
            chunk = chunk[:n]
        return chunk


class MockStreamWriter:
    """Mock asyncio StreamWriter for testing."""

    def __init__(self) -> None:
        self.data: list[bytes] = []
        self._closed = False

    def write(self, data: bytes) -> None:
        """Record written data."""
        self.data.append(data)

    async def drain(self) -> None:
        """Mock drain."""

    def close(self) -> None:
        """Mark as closed."""
        self._closed = True

    async def wait_closed(self) -> None:
        """Mock wait_closed."""

    def is_closing(self) -> bool:
        """Check if closing."""
        return self._closed


class SlowDaemon:
    """Stream double acting as both reader and writer.

    Every write queues ``reply``; every read sleeps ``delay`` before
    returning the oldest queued reply. A write arriving while a reply is
    still queued means two request/response cycles overlapped.
    """

    def __init__(self, reply: bytes = b"OK\n", delay: float = 0.01) -> None:
        self.reply = reply
        self.delay = delay
        self.log: list[tuple[str, bytes]] = []
        self.overlapped = False
        self._pending: deque[bytes] = deque([GREETING])
        self._closed = asyncio.Event()

    def write(self, data: bytes) -> None:
        """Queue the reply for a request."""
        if self._pending:
            self.overlapped = True
        self.log.append(("write", data))
        self._pending.append(self.reply)

    async def drain(self) -> None:
        """Mock drain."""

    async def read(self, n: int = -1) -> bytes:  # noqa: ARG002
        """Return the oldest queued reply after a delay, b"" once closed."""
        sleep = asyncio.ensure_future(asyncio.sleep(self.delay))
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({sleep, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleep.cancel()
            closed.cancel()
        if self._closed.is_set() or not self._pending:
            return b""
        chunk = self._pending.popleft()
        self.log.append(("read", chunk))
        return chunk

    def close(self) -> None:
        """Close both directions."""
        self._closed.set()

    async def wait_closed(self) -> None:
        """Mock wait_closed."""

    def is_closing(self) -> bool:
        """Check if closing."""
        return self._closed.is_set()


@pytest.fixture
def mock_connection():
    """Create mock connection for testing."""

    def _mock_connection(responses: list[bytes]) -> tuple[MockStreamReader, MockStreamWriter]:
        reader = MockStreamReader(responses)
        writer = MockStreamWriter()
        return reader, writer

    return _mock_connection


@pytest.fixture
def slow_daemon():
    """Create a SlowDaemon stream double."""

    def _slow_daemon(reply: bytes = b"OK\n", delay: float = 0.01) -> SlowDaemon:
        return SlowDaemon(reply, delay)

    return _slow_daemon


class FakeMpd:
    """Scripted loopback MPD daemon.

    Sends the greeting, then answers each command (a whole command list
    counts as one) from ``replies``, defaulting to ``OK``. A reply of None
    means the command is never answered.
    """

    def __init__(self, replies: dict[str, bytes | None] | None = None) -> None:
        self.replies = replies or {}
        self.received: list[str] = []
        self.writers: list[asyncio.StreamWriter] = []

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve one client connection."""
        self.writers.append(writer)
        writer.write(GREETING)
        await writer.drain()
        while True:
            line = await reader.readline()
            if not line:
                break
            command = line.decode().rstrip("\n")
            if command == "command_list_begin":
                batch = [command]
                while batch[-1] != "command_list_end":
                    line = await reader.readline()
                    if not line:
                        break
                    batch.append(line.decode().rstrip("\n"))
                command = "\n".join(batch)
            self.received.append(command)
            reply = self.replies.get(command, b"OK\n")
            if reply is None:
                continue
            writer.write(reply)
            await writer.drain()
        writer.close()


@pytest.fixture
async def fake_mpd() -> AsyncGenerator[Callable[..., Awaitable[tuple[str, int, FakeMpd]]], None]:
    """Fixture starting scripted MPD daemons on 127.0.0.1.

    Returns:
        Factory taking a replies dict and returning (host, port, daemon).
    """
    servers: list[tuple[asyncio.Server, FakeMpd]] = []

    async def _start(replies: dict[str, bytes | None] | None = None) -> tuple[str, int, FakeMpd]:
        daemon = FakeMpd(replies)
        server = await asyncio.start_server(daemon.handle, "127.0.0.1", 0)
        servers.append((server, daemon))
        port = server.sockets[0].getsockname()[1]
        return "127.0.0.1", port, daemon

    yield _start

    for server, daemon in servers:
        for writer in daemon.writers:
            writer.close()
        server.close()
        with suppress(TimeoutError):
            await asyncio.wait_for(server.wait_closed(), timeout=1.0)
