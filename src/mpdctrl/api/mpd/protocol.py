"""MPD protocol parsing utilities.

MPD uses a simple line-based text protocol:
- Commands are sent as plain text lines
- Responses are key-value pairs: "key: value"
- Responses end with "OK" or "ACK [error@index] {command} message"
- Binary responses (albumart) have a special format, see binary.py

Entities are not delimited on the wire. In song listings a ``file`` key
starts a new song, so a ``file`` record arriving while a song is being
collected closes that song.

Reference: https://mpd.readthedocs.io/en/stable/protocol.html
"""

import re
from collections.abc import Iterable, Iterator
from typing import NamedTuple

from mpdctrl.api.mpd.errors import ProtocolError, ResponseError
from mpdctrl.api.mpd.types import MISSING_TAG, PlayState, QueueItem, Song, Status

# Pattern for ACK responses: ACK [error@command_listNum] {current_command} message_text
ACK_PATTERN = re.compile(r"ACK \[(\d+)@(\d+)\] \{(\w*)\} ?(.*)")

RECORD_SEPARATOR = ": "
GROUP_KEY = "file"


class Record(NamedTuple):
    """One ``Key: Value`` line of a reply."""

    key: str
    value: str


def decode_response(block: bytes) -> str:
    """Decode a reply block as UTF-8.

    Raises:
        ResponseError: If the bytes are not valid UTF-8.
    """
    try:
        return block.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ResponseError(f"Response is not valid UTF-8: {e}") from e


def split_lines(block: bytes) -> list[str]:
    """Split a reply block into lines, trimming surrounding whitespace.

    Args:
        block: Terminated reply bytes from the transport.

    Returns:
        Ordered list of text lines, terminator line included.

    Raises:
        ResponseError: If the bytes are not valid UTF-8.
    """
    text = decode_response(block).strip()
    if not text:
        return []
    return text.split("\n")


def parse_ack(line: str) -> ProtocolError:
    """Build the error for an ``ACK`` line."""
    match = ACK_PATTERN.match(line)
    if match is None:
        return ProtocolError(line)
    return ProtocolError(
        match.group(4),
        code=int(match.group(1)),
        index=int(match.group(2)),
        command=match.group(3),
    )


def check_response(lines: list[str]) -> list[str]:
    """Raise if the reply is an ACK error.

    Args:
        lines: Reply lines from split_lines.

    Returns:
        The same lines, for chaining.

    Raises:
        ProtocolError: If any line is an ``ACK`` error.
    """
    for line in lines:
        if line.startswith("ACK "):
            raise parse_ack(line)
    return lines


def parse_records(lines: Iterable[str]) -> Iterator[Record]:
    """Yield records, splitting each line on the first ``": "``.

    Lines without the separator (the OK/ACK terminator) are structural and
    are skipped.
    """
    for line in lines:
        key, sep, value = line.partition(RECORD_SEPARATOR)
        if sep:
            yield Record(key, value)


def parse_response(lines: list[str]) -> dict[str, str]:
    """Parse reply lines into a flat key-value dict.

    Later duplicates of a key overwrite earlier ones.

    Raises:
        ProtocolError: If the reply is an ACK error.
    """
    return dict(parse_records(check_response(lines)))


def group_records(records: Iterable[Record], group_key: str = GROUP_KEY) -> list[dict[str, str]]:
    """Reassemble records into one dict per entity.

    A ``group_key`` record seen while the working dict is non-empty closes
    the current entity before its value starts the next one. Whatever is
    left after the last record is the final entity.

    Args:
        records: Records in wire order.
        group_key: Key that starts a new entity.

    Returns:
        One dict per entity, in wire order.
    """
    groups: list[dict[str, str]] = []
    current: dict[str, str] = {}

    for key, value in records:
        if key == group_key and current:
            groups.append(current)
            current = {}
        current[key] = value

    if current:
        groups.append(current)
    return groups


def song_from_record(data: dict[str, str]) -> Song:
    """Project one record group onto a Song; missing tags get MISSING_TAG."""
    return Song(
        artist=data.get("Artist", MISSING_TAG),
        album=data.get("Album", MISSING_TAG),
        title=data.get("Title", MISSING_TAG),
        uri=data.get("file", MISSING_TAG),
    )


def queue_item_from_record(data: dict[str, str]) -> QueueItem | None:
    """Project one record group onto a QueueItem.

    Returns:
        The item, or None if ``Id`` or ``Pos`` is missing or not numeric.
    """
    try:
        item_id = int(data["Id"])
        pos = int(data["Pos"])
    except (KeyError, ValueError):
        return None
    return QueueItem(id=item_id, pos=pos, song=song_from_record(data))


def parse_songs(lines: list[str]) -> list[Song]:
    """Parse a song listing (``search``, ``listallinfo``) into songs."""
    groups = group_records(parse_records(check_response(lines)))
    return [song_from_record(group) for group in groups]


def parse_queue(lines: list[str]) -> list[QueueItem]:
    """Parse ``playlistinfo`` into queue items.

    Groups lacking a numeric ``Id`` or ``Pos`` are dropped.
    """
    groups = group_records(parse_records(check_response(lines)))
    items = (queue_item_from_record(group) for group in groups)
    return [item for item in items if item is not None]


def _to_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _to_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _to_bool(value: str | None) -> bool:
    return _to_int(value, 0) == 1


def parse_status(data: dict[str, str]) -> Status:
    """Parse status data into Status.

    Each field falls back to its default when missing or unparsable.

    Args:
        data: Key-value dict from parse_response.

    Returns:
        Status instance.
    """
    elapsed = _to_float(data.get("elapsed"), 0.0)
    duration = _to_float(data.get("duration"), 0.0)

    # Legacy "time" is "elapsed:duration" in whole seconds
    time_value = data.get("time", "")
    if ":" in time_value:
        elapsed_str, duration_str = time_value.split(":", 1)
        if "elapsed" not in data:
            elapsed = _to_float(elapsed_str, 0.0)
        if "duration" not in data:
            duration = _to_float(duration_str, 0.0)

    return Status(
        state=PlayState.from_string(data.get("state", data.get("status", ""))),
        volume=_to_int(data.get("volume"), 0),
        repeat=_to_bool(data.get("repeat")),
        random=_to_bool(data.get("random")),
        single=_to_bool(data.get("single")),
        consume=_to_bool(data.get("consume")),
        crossfade=_to_int(data.get("xfade"), 0),
        playlist_version=_to_int(data.get("playlist"), -1),
        playlist_length=_to_int(data.get("playlistlength"), 0),
        song=_to_int(data.get("song"), -1),
        song_id=_to_int(data.get("songid"), -1),
        elapsed=elapsed,
        duration=duration,
        bitrate=_to_int(data.get("bitrate"), 0),
        audio=data.get("audio", ""),
        error=data.get("error", ""),
    )
