"""MPD command model.

Each command is a frozen dataclass whose ``render()`` returns the exact
wire text (without the trailing newline). ``encode()`` appends the single
terminating newline and returns the UTF-8 bytes handed to the transport.

Rendering rules:
- String arguments are wrapped in double quotes and passed through
  verbatim; embedded quotes are not escaped.
- Optional integer arguments are appended only when present.
- Boolean flags render as ``1``/``0``.
- ``CommandList`` wraps its sub-commands in ``command_list_begin`` /
  ``command_list_end`` so the daemon runs them as one atomic request.

Reference: https://mpd.readthedocs.io/en/stable/protocol.html
"""

from collections.abc import Iterable
from dataclasses import dataclass

from mpdctrl.api.mpd.errors import RequestMalformedError

# Filter matching every song in the database
ALL_SONGS_FILTER = "(base '')"


def quote(value: object) -> str:
    """Wrap a value in double quotes, without escaping."""
    return f'"{value}"'


def flag(enabled: bool) -> str:
    """Render a boolean as ``1`` or ``0``."""
    return "1" if enabled else "0"


class Command:
    """Base class for MPD commands."""

    def render(self) -> str:
        """Return the wire text for this command."""
        raise NotImplementedError

    def encode(self) -> bytes:
        """Return the newline-terminated UTF-8 payload for the transport.

        Raises:
            RequestMalformedError: If the text holds a line break the daemon
                would read as a second command, or cannot be encoded.
        """
        text = self.render()
        if "\r" in text or ("\n" in text and not isinstance(self, CommandList)):
            raise RequestMalformedError(f"Line break in command: {text!r}")
        try:
            return f"{text}\n".encode()
        except UnicodeEncodeError as e:
            raise RequestMalformedError(f"Cannot encode command {text!r}: {e}") from e

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Status(Command):
    """Query player status."""

    def render(self) -> str:
        return "status"


@dataclass(frozen=True)
class PlaylistInfo(Command):
    """List the songs in the queue."""

    def render(self) -> str:
        return "playlistinfo"


@dataclass(frozen=True)
class CurrentSong(Command):
    """Query the song being played."""

    def render(self) -> str:
        return "currentsong"


@dataclass(frozen=True)
class Ping(Command):
    """Do nothing; keeps the connection alive."""

    def render(self) -> str:
        return "ping"


@dataclass(frozen=True)
class Play(Command):
    """Start playback, optionally at a queue position."""

    position: int | None = None

    def render(self) -> str:
        if self.position is None:
            return "play"
        return f"play {self.position}"


@dataclass(frozen=True)
class Pause(Command):
    """Toggle pause."""

    def render(self) -> str:
        return "pause"


@dataclass(frozen=True)
class Stop(Command):
    """Stop playback."""

    def render(self) -> str:
        return "stop"


@dataclass(frozen=True)
class Next(Command):
    """Skip to the next song."""

    def render(self) -> str:
        return "next"


@dataclass(frozen=True)
class Previous(Command):
    """Skip to the previous song."""

    def render(self) -> str:
        return "previous"


@dataclass(frozen=True)
class Repeat(Command):
    """Set repeat mode."""

    enabled: bool

    def render(self) -> str:
        return f"repeat {flag(self.enabled)}"


@dataclass(frozen=True)
class Random(Command):
    """Set random mode."""

    enabled: bool

    def render(self) -> str:
        return f"random {flag(self.enabled)}"


@dataclass(frozen=True)
class SetVolume(Command):
    """Set the volume (0-100)."""

    volume: int

    def render(self) -> str:
        return f"setvol {quote(self.volume)}"


@dataclass(frozen=True)
class SeekCurrent(Command):
    """Seek within the current song; fractional seconds are truncated."""

    position: float

    def render(self) -> str:
        return f"seekcur {quote(int(self.position))}"


@dataclass(frozen=True)
class Search(Command):
    """Search the database with a filter expression."""

    filter: str

    def render(self) -> str:
        return f"search {quote(self.filter)}"


@dataclass(frozen=True)
class AddToQueue(Command):
    """Add a song or directory to the queue, optionally at a position."""

    uri: str
    position: int | None = None

    def render(self) -> str:
        if self.position is None:
            return f"add {quote(self.uri)}"
        return f"add {quote(self.uri)} {self.position}"


@dataclass(frozen=True)
class Delete(Command):
    """Remove a song, or the range ``start:end``, from the queue."""

    start: int
    end: int | None = None

    def render(self) -> str:
        if self.end is None:
            return f"delete {self.start}"
        return f"delete {self.start} {self.end}"


@dataclass(frozen=True)
class Clear(Command):
    """Clear the queue."""

    def render(self) -> str:
        return "clear"


@dataclass(frozen=True)
class AlbumArt(Command):
    """Request a chunk of the album art for ``uri`` starting at ``offset``."""

    uri: str
    offset: int = 0

    def render(self) -> str:
        return f"albumart {quote(self.uri)} {self.offset}"


@dataclass(frozen=True)
class CommandList(Command):
    """A batch of commands executed by the daemon as one atomic unit."""

    commands: tuple[Command, ...] = ()

    @classmethod
    def of(cls, commands: Iterable[Command]) -> "CommandList":
        """Build a command list from any iterable of commands."""
        return cls(tuple(commands))

    def render(self) -> str:
        lines = ["command_list_begin"]
        for command in self.commands:
            if isinstance(command, CommandList):
                raise RequestMalformedError("Command lists cannot be nested")
            text = command.render()
            if "\n" in text:
                raise RequestMalformedError(f"Line break in command: {text!r}")
            lines.append(text)
        lines.append("command_list_end")
        return "\n".join(lines)
