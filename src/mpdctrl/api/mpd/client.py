"""Async MPD client.

MpdClient is the request/response API used by the layers above the
protocol core. Every call is one gated request/response cycle on a
single MpdTransport; failures are raised, never retried.

Example:
    async with MpdClient("192.168.1.100") as client:
        status = await client.get_status()
        if status.has_song:
            queue = await client.get_queue()
            print(f"Playing: {queue[status.song].song.title}")
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Self

from mpdctrl.api.mpd import commands
from mpdctrl.api.mpd.binary import MpdBinaryFetcher
from mpdctrl.api.mpd.commands import Command
from mpdctrl.api.mpd.errors import MpdConnectionError, NotConnectedError
from mpdctrl.api.mpd.protocol import (
    check_response,
    group_records,
    parse_queue,
    parse_records,
    parse_response,
    parse_songs,
    parse_status,
    song_from_record,
    split_lines,
)
from mpdctrl.api.mpd.transport import DEFAULT_HOST, DEFAULT_PORT, MpdTransport
from mpdctrl.api.mpd.types import QueueItem, Song, Status

if TYPE_CHECKING:
    from mpdctrl.core.config import ConnectionSettings

logger = logging.getLogger(__name__)

# Type aliases for event handlers
ConnectionHandler = Callable[[], None]
RefreshHandler = Callable[[Status, list[QueueItem]], None]


class ConnectionStatus(StrEnum):
    """Connection lifecycle of an MpdClient."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Subscription:
    """Handlers registered with add_listener(); pass to remove_listener()."""

    on_connect: ConnectionHandler | None = None
    on_disconnect: ConnectionHandler | None = None
    on_refresh: RefreshHandler | None = None


class MpdClient:
    """Async MPD client.

    Attributes:
        transport: The single connection all commands go through.
        status: Connection status.
        library: Songs from the last fetch_library() call.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        transport: MpdTransport | None = None,
    ) -> None:
        """Initialize a disconnected client.

        Args:
            host: MPD server hostname or IP.
            port: MPD server port.
            transport: Use this transport instead of creating one.
        """
        self.transport = transport or MpdTransport(host, port)
        self.status = ConnectionStatus.DISCONNECTED
        self.library: list[Song] = []
        self._fetcher = MpdBinaryFetcher(self.transport)
        self._listeners: list[Subscription] = []

    @classmethod
    def from_settings(cls, settings: "ConnectionSettings") -> Self:
        """Create a client from connection settings."""
        return cls(transport=MpdTransport.from_settings(settings))

    @property
    def host(self) -> str:
        """Return server host."""
        return self.transport.host

    @property
    def port(self) -> int:
        """Return server port."""
        return self.transport.port

    @property
    def is_connected(self) -> bool:
        """Return True if connected to MPD."""
        return self.status is ConnectionStatus.CONNECTED and self.transport.is_connected

    @property
    def version(self) -> str:
        """Return MPD protocol version from initial handshake."""
        return self.transport.version

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def add_listener(
        self,
        on_connect: ConnectionHandler | None = None,
        on_disconnect: ConnectionHandler | None = None,
        on_refresh: RefreshHandler | None = None,
    ) -> Subscription:
        """Register event handlers.

        Handlers are scheduled on the running event loop after the event.

        Args:
            on_connect: Called after a successful connect().
            on_disconnect: Called after disconnect(), or when a failed cycle
                closed the connection.
            on_refresh: Called with the status and queue after refresh().

        Returns:
            Subscription to pass to remove_listener().
        """
        subscription = Subscription(on_connect, on_disconnect, on_refresh)
        self._listeners.append(subscription)
        return subscription

    def remove_listener(self, subscription: Subscription) -> None:
        """Unregister handlers added with add_listener()."""
        if subscription in self._listeners:
            self._listeners.remove(subscription)

    def _emit(self, event: str, *args: object) -> None:
        """Schedule every registered handler for ``event``."""
        handlers = [getattr(s, event) for s in self._listeners if getattr(s, event) is not None]
        if not handlers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Cannot emit %s: no event loop running", event)
            return
        for handler in handlers:
            loop.call_soon(self._run_handler, event, handler, args)

    @staticmethod
    def _run_handler(event: str, handler: Callable[..., None], args: tuple[object, ...]) -> None:
        try:
            handler(*args)
        except Exception:
            logger.warning("Handler for %s raised", event, exc_info=True)

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to MPD.

        Raises:
            MpdConnectionError: If connection fails. The client is left
                disconnected and may be connected again.
        """
        if self.is_connected:
            logger.debug("Already connected to %s:%d", self.host, self.port)
            return

        self.status = ConnectionStatus.CONNECTING
        try:
            await self.transport.connect()
        except BaseException:
            self.status = ConnectionStatus.DISCONNECTED
            raise
        self.status = ConnectionStatus.CONNECTED
        self._emit("on_connect")

    async def disconnect(self) -> None:
        """Disconnect from MPD. Safe to call when already disconnected."""
        was_connected = self.status is not ConnectionStatus.DISCONNECTED
        await self.transport.disconnect()
        self.status = ConnectionStatus.DISCONNECTED
        if was_connected:
            self._emit("on_disconnect")

    def _check_connection_lost(self) -> None:
        """Follow the transport if it dropped the session during a cycle."""
        if self.status is ConnectionStatus.CONNECTED and not self.transport.is_connected:
            logger.info("Lost connection to MPD at %s:%d", self.host, self.port)
            self.status = ConnectionStatus.DISCONNECTED
            self._emit("on_disconnect")

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Request/response
    # -------------------------------------------------------------------------

    async def execute(self, command: Command) -> list[str]:
        """Send a command and return its reply lines.

        Args:
            command: The command to run.

        Returns:
            Reply lines, terminator line included.

        Raises:
            NotConnectedError: If not connected.
            RequestMalformedError: If the command cannot be encoded.
            ResponseError: If the reply is not valid UTF-8.
            ProtocolError: If MPD answers with ACK.
            MpdConnectionError: On transport failures.
        """
        if self.status is not ConnectionStatus.CONNECTED:
            raise NotConnectedError()

        payload = command.encode()
        logger.debug("MPD command: %s", command)
        try:
            block = await self.transport.send_and_receive(payload)
        except (MpdConnectionError, asyncio.CancelledError):
            self._check_connection_lost()
            raise
        return check_response(split_lines(block))

    async def get_status(self) -> Status:
        """Get current player status."""
        lines = await self.execute(commands.Status())
        return parse_status(parse_response(lines))

    async def get_queue(self) -> list[QueueItem]:
        """Get the play queue."""
        lines = await self.execute(commands.PlaylistInfo())
        return parse_queue(lines)

    async def fetch_library(self) -> list[Song]:
        """List every song in the database.

        The result is also kept in ``library``.
        """
        lines = await self.execute(commands.Search(commands.ALL_SONGS_FILTER))
        self.library = parse_songs(lines)
        return self.library

    async def current_song(self) -> Song | None:
        """Get the song being played, or None when nothing is loaded."""
        lines = await self.execute(commands.CurrentSong())
        groups = group_records(parse_records(lines))
        if not groups or "file" not in groups[0]:
            return None
        return song_from_record(groups[0])

    async def refresh(self) -> tuple[Status, list[QueueItem]]:
        """Fetch status and queue, then notify on_refresh handlers.

        Meant to be called periodically by the layer above; the client
        never schedules it by itself.
        """
        status = await self.get_status()
        queue = await self.get_queue()
        self._emit("on_refresh", status, queue)
        return status, queue

    async def fetch_album_art(self, path: str) -> bytes:
        """Fetch the complete album art for a song URI.

        Raises:
            NotConnectedError: If not connected.
            ProtocolError: If there is no art or a chunk is malformed.
        """
        if self.status is not ConnectionStatus.CONNECTED:
            raise NotConnectedError()
        try:
            return await self._fetcher.fetch_album_art(path)
        except (MpdConnectionError, asyncio.CancelledError):
            self._check_connection_lost()
            raise

    # -------------------------------------------------------------------------
    # Playback Control
    # -------------------------------------------------------------------------

    async def play(self, position: int | None = None) -> None:
        """Start playback, at ``position`` in the queue if given."""
        await self.execute(commands.Play(position))

    async def pause(self) -> None:
        """Toggle pause."""
        await self.execute(commands.Pause())

    async def stop(self) -> None:
        """Stop playback."""
        await self.execute(commands.Stop())

    async def next(self) -> None:
        """Skip to next track."""
        await self.execute(commands.Next())

    async def previous(self) -> None:
        """Skip to previous track."""
        await self.execute(commands.Previous())

    async def set_volume(self, volume: int) -> None:
        """Set volume.

        Args:
            volume: Volume level (0-100).
        """
        await self.execute(commands.SetVolume(volume))

    async def seek(self, position: float) -> None:
        """Seek to ``position`` seconds in the current track."""
        await self.execute(commands.SeekCurrent(position))

    async def random(self, enabled: bool) -> None:
        """Enable or disable random mode."""
        await self.execute(commands.Random(enabled))

    async def repeat(self, enabled: bool) -> None:
        """Enable or disable repeat mode."""
        await self.execute(commands.Repeat(enabled))

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    async def add_to_queue(self, uri: str, position: int | None = None) -> None:
        """Add a song or directory to the queue."""
        await self.execute(commands.AddToQueue(uri, position))

    async def add_all_to_queue(self, uris: Iterable[str]) -> None:
        """Append several URIs in one atomic command list."""
        batch = commands.CommandList.of(commands.AddToQueue(uri) for uri in uris)
        if not batch.commands:
            return
        await self.execute(batch)

    async def remove_from_queue(self, start: int, end: int | None = None) -> None:
        """Remove the song at ``start``, or the range ``start`` to ``end``."""
        await self.execute(commands.Delete(start, end))

    async def clear(self) -> None:
        """Clear the queue."""
        await self.execute(commands.Clear())

    async def ping(self) -> None:
        """Ping MPD server to check connection."""
        await self.execute(commands.Ping())
