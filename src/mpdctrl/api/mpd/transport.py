"""Byte-level transport for the MPD protocol.

The transport owns the TCP stream. It exposes connect/disconnect and a
single ``send_and_receive`` cycle that writes one request and reads until
the reply is terminated. Cycles are serialized through a Gate, so one
caller's bytes are never written before the previous caller's reply has
been read in full.

A reply is complete when its last line is ``OK`` or ``ACK [...]``. Binary
replies (``albumart``) carry a ``binary: <n>`` header; for those the
terminator is only looked for after the n payload bytes, since the payload
itself may contain ``OK\\n``.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Self

from mpdctrl.api.mpd.errors import MpdConnectionError, NotConnectedError, ReceiveFailedError
from mpdctrl.core.gate import Gate

if TYPE_CHECKING:
    from mpdctrl.core.config import ConnectionSettings

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6600
CONNECT_TIMEOUT = 5.0
COMMAND_TIMEOUT = 10.0
READ_CHUNK_SIZE = 65536

GREETING_PREFIX = b"OK MPD"

# Header lines that may precede the payload of a binary reply
_MAX_BINARY_HEADER_LINES = 4
_BINARY_HEADER = b"binary: "


def _binary_payload_end(buffer: bytes | bytearray) -> int | None:
    """Return the offset just past a binary payload, or None if not binary."""
    start = 0
    for _ in range(_MAX_BINARY_HEADER_LINES):
        end = buffer.find(b"\n", start)
        if end < 0:
            return None
        line = buffer[start:end]
        if line.startswith(_BINARY_HEADER):
            try:
                length = int(line[len(_BINARY_HEADER) :])
            except ValueError:
                return None
            return end + 1 + length
        if b": " not in line:
            return None
        start = end + 1
    return None


def is_response_complete(buffer: bytes | bytearray) -> bool:
    """Return True once ``buffer`` holds a whole terminated reply.

    Args:
        buffer: Bytes accumulated for one request so far.

    Returns:
        True if the final line is ``OK`` or ``ACK [...]``.
    """
    payload_end = _binary_payload_end(buffer)
    if payload_end is not None:
        if len(buffer) < payload_end:
            return False
        buffer = buffer[payload_end:]

    if not buffer.endswith(b"\n"):
        return False
    last_line = buffer[:-1].rsplit(b"\n", 1)[-1]
    return last_line == b"OK" or last_line.startswith(b"ACK [")


class MpdTransport:
    """One TCP session to an MPD daemon.

    Attributes:
        host: MPD server hostname or IP.
        port: MPD server port (default 6600).
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
        command_timeout: float = COMMAND_TIMEOUT,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        """Initialize a disconnected transport.

        Args:
            host: MPD server hostname or IP.
            port: MPD server port.
            connect_timeout: Timeout for opening the socket and reading the greeting.
            command_timeout: Timeout for one full request/response cycle.
            read_chunk_size: Maximum bytes requested per read.
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.read_chunk_size = read_chunk_size

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._gate = Gate(1)
        self._version: str = ""

    @classmethod
    def from_settings(cls, settings: "ConnectionSettings") -> Self:
        """Create a transport from connection settings."""
        return cls(
            host=settings.host,
            port=settings.port,
            connect_timeout=settings.connect_timeout,
            command_timeout=settings.command_timeout,
            read_chunk_size=settings.read_chunk_size,
        )

    @property
    def is_connected(self) -> bool:
        """Return True if the socket is open."""
        return self._writer is not None and not self._writer.is_closing()

    @property
    def version(self) -> str:
        """Return the protocol version from the greeting."""
        return self._version

    @property
    def gate(self) -> Gate:
        """Return the gate serializing request/response cycles."""
        return self._gate

    async def connect(self) -> None:
        """Open the socket and validate the greeting.

        Raises:
            MpdConnectionError: If the socket cannot be opened, or the
                greeting is missing or does not start with ``OK MPD``.
        """
        if self._writer is not None:
            await self.disconnect()

        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
            greeting = await asyncio.wait_for(
                self._reader.read(self.read_chunk_size),
                timeout=self.connect_timeout,
            )
        except TimeoutError as e:
            await self.disconnect()
            raise MpdConnectionError(f"Connection to {self.host}:{self.port} timed out") from e
        except OSError as e:
            await self.disconnect()
            raise MpdConnectionError(f"Failed to connect to {self.host}:{self.port}: {e}") from e

        if not greeting.startswith(GREETING_PREFIX):
            await self.disconnect()
            raise MpdConnectionError(f"Invalid MPD greeting: {greeting[:64]!r}")

        self._version = greeting[len(GREETING_PREFIX) :].decode("utf-8", errors="replace").strip()
        logger.info("Connected to MPD %s at %s:%d", self._version, self.host, self.port)

    async def disconnect(self) -> None:
        """Close the socket. Safe to call when already disconnected."""
        writer = self._writer
        self._writer = None
        self._reader = None
        self._version = ""
        if writer is None:
            return
        try:
            writer.close()
            await writer.wait_closed()
        except (OSError, TimeoutError, asyncio.CancelledError) as e:
            logger.debug("Expected error during MPD disconnect: %s", e)
        except Exception as e:  # noqa: BLE001
            logger.warning("Unexpected error during MPD disconnect: %s", e)
        finally:
            logger.info("Disconnected from MPD")

    async def send_and_receive(self, payload: bytes) -> bytes:
        """Write one request and read its full terminated reply.

        Args:
            payload: Newline-terminated request bytes.

        Returns:
            The reply bytes, terminator included.

        Raises:
            NotConnectedError: If no socket is open.
            ReceiveFailedError: If the stream ended before the terminator.
            MpdConnectionError: On socket errors or timeout. The transport is
                closed, since the stream can no longer be framed. The same
                happens when the calling task is cancelled mid-cycle.
        """
        if self._writer is None or self._reader is None:
            raise NotConnectedError()

        async with self._gate:
            # Re-check: the socket may have been closed while queued
            reader, writer = self._reader, self._writer
            if writer is None or reader is None:
                raise NotConnectedError()

            try:
                return await asyncio.wait_for(
                    self._cycle(reader, writer, payload),
                    timeout=self.command_timeout,
                )
            except ReceiveFailedError:
                await self._abort(writer)
                raise
            except TimeoutError as e:
                await self._abort(writer)
                raise MpdConnectionError(
                    f"No reply from {self.host}:{self.port} within {self.command_timeout}s"
                ) from e
            except OSError as e:
                await self._abort(writer)
                raise MpdConnectionError(f"Connection to {self.host}:{self.port} failed: {e}") from e
            except asyncio.CancelledError:
                # The request may be on the wire with its reply unread
                await self._abort(writer)
                raise

    async def _cycle(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        payload: bytes,
    ) -> bytes:
        """Write ``payload`` and accumulate reads until the reply is terminated."""
        writer.write(payload)
        await writer.drain()

        response = bytearray()
        while True:
            chunk = await reader.read(self.read_chunk_size)
            if not chunk:
                raise ReceiveFailedError(
                    f"Connection to {self.host}:{self.port} closed before reply was terminated"
                )
            response.extend(chunk)
            if is_response_complete(response):
                return bytes(response)

    async def _abort(self, writer: asyncio.StreamWriter) -> None:
        """Drop the session if ``writer`` is still the current one."""
        if self._writer is writer:
            await self.disconnect()
