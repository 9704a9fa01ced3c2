"""MPD protocol data types.

This module defines frozen dataclasses for MPD responses. They are pure
projections of response records and hold no reference to the connection.
"""

from dataclasses import dataclass
from enum import StrEnum

# Value used for song tags the daemon did not send.
MISSING_TAG = "–"


class PlayState(StrEnum):
    """Player state reported by ``status``."""

    UNKNOWN = "unknown"
    STOP = "stop"
    PLAY = "play"
    PAUSE = "pause"

    @classmethod
    def from_string(cls, value: str) -> "PlayState":
        """Map a wire value to a state, UNKNOWN for anything unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class Song:
    """A song from the library or the queue.

    Attributes:
        artist: Artist tag.
        album: Album tag.
        title: Title tag.
        uri: Path in MPD's music directory; the song's identity.
    """

    artist: str = MISSING_TAG
    album: str = MISSING_TAG
    title: str = MISSING_TAG
    uri: str = MISSING_TAG

    @property
    def id(self) -> str:
        """Return the stable identity key."""
        return self.uri


@dataclass(frozen=True, slots=True)
class QueueItem:
    """A song in the play queue.

    Attributes:
        id: MPD song ID, stable while the song stays in the queue.
        pos: Position in the queue (0-based).
        song: The queued song.
    """

    id: int
    pos: int
    song: Song


@dataclass(frozen=True)
class Status:
    """MPD player status.

    Attributes:
        state: Player state.
        volume: Volume level (0-100); -1 when the daemon has no mixer.
        repeat: Repeat mode enabled.
        random: Random/shuffle mode enabled.
        single: Single mode (stop after current track).
        consume: Consume mode (remove tracks after playing).
        crossfade: Crossfade in seconds.
        playlist_version: Queue version, bumped on every queue change.
        playlist_length: Number of songs in the queue.
        song: Position of the current song in the queue, -1 if none. Check
            has_song before indexing the queue with it.
        song_id: ID of the current song, -1 if none.
        elapsed: Elapsed time in seconds.
        duration: Total duration of current track in seconds.
        bitrate: Current audio bitrate in kbps.
        audio: Audio format string (e.g., "44100:16:2").
        error: Error message if any.
    """

    state: PlayState = PlayState.UNKNOWN
    volume: int = 0
    repeat: bool = False
    random: bool = False
    single: bool = False
    consume: bool = False
    crossfade: int = 0
    playlist_version: int = -1
    playlist_length: int = 0
    song: int = -1
    song_id: int = -1
    elapsed: float = 0.0
    duration: float = 0.0
    bitrate: int = 0
    audio: str = ""
    error: str = ""

    @property
    def is_playing(self) -> bool:
        """Return True if currently playing."""
        return self.state is PlayState.PLAY

    @property
    def is_paused(self) -> bool:
        """Return True if paused."""
        return self.state is PlayState.PAUSE

    @property
    def is_stopped(self) -> bool:
        """Return True if stopped."""
        return self.state is PlayState.STOP

    @property
    def has_song(self) -> bool:
        """Return True if a queue position is current."""
        return self.song >= 0

    @property
    def progress(self) -> float:
        """Return playback progress as a fraction (0.0 to 1.0)."""
        if self.duration <= 0:
            return 0.0
        return min(1.0, self.elapsed / self.duration)
