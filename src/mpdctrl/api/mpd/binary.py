"""Chunked binary retrieval (album art).

MPD returns large binary payloads in chunks. Each request names a byte
offset and each reply has the form::

    size: <total bytes>
    binary: <chunk length>
    <chunk bytes>
    OK

The fetcher keeps requesting at the next offset until it has received
``size`` bytes. Any malformed frame aborts the whole fetch; partial data
is never returned.
"""

import logging
from dataclasses import dataclass, field

from mpdctrl.api.mpd.commands import AlbumArt
from mpdctrl.api.mpd.errors import ProtocolError
from mpdctrl.api.mpd.protocol import decode_response, parse_ack
from mpdctrl.api.mpd.transport import MpdTransport

logger = logging.getLogger(__name__)

SIZE_KEY = b"size"
BINARY_KEY = b"binary"
TERMINATOR = b"\nOK"


@dataclass(frozen=True)
class BinaryChunk:
    """One parsed binary reply.

    Attributes:
        size: Total size of the object being fetched.
        data: Payload bytes of this chunk.
    """

    size: int
    data: bytes


@dataclass
class BinaryFetchState:
    """Accumulator for one chunked fetch.

    Attributes:
        size: Declared total size; -1 until the first chunk arrives.
        offset: Bytes received so far, which is the next request offset.
        buffer: Concatenated payloads.
    """

    size: int = -1
    offset: int = 0
    buffer: bytearray = field(default_factory=bytearray)

    @property
    def done(self) -> bool:
        """Return True once the declared size has been received."""
        return self.size >= 0 and self.offset >= self.size

    def add(self, chunk: BinaryChunk) -> None:
        """Fold a chunk into the buffer and advance the offset.

        Raises:
            ProtocolError: If the chunk is empty while data is still missing.
        """
        self.size = chunk.size
        if not chunk.data and self.offset < self.size:
            raise ProtocolError(f"Empty chunk at offset {self.offset} of {self.size} bytes")
        self.buffer.extend(chunk.data)
        self.offset += len(chunk.data)


def _header_value(line: bytes, key: bytes) -> int:
    """Return the integer value of a ``key: value`` header line."""
    name, sep, value = line.partition(b":")
    if not sep or name != key:
        raise ProtocolError(f"Expected {key.decode()!r} header, got {line[:64]!r}")
    try:
        number = int(value.strip())
    except ValueError as e:
        raise ProtocolError(f"Invalid {key.decode()!r} header: {line[:64]!r}") from e
    if number < 0:
        raise ProtocolError(f"Negative {key.decode()!r} header: {number}")
    return number


def parse_binary_chunk(block: bytes) -> BinaryChunk:
    """Parse a ``size``/``binary``/payload/``OK`` reply.

    Args:
        block: Terminated reply bytes from the transport.

    Returns:
        The parsed chunk.

    Raises:
        ProtocolError: On an ACK reply, a missing or malformed header, a
            short payload, or a missing ``OK`` terminator.
    """
    if block.startswith(b"ACK "):
        raise parse_ack(decode_response(block).strip())

    size_end = block.find(b"\n")
    if size_end < 0:
        raise ProtocolError("Missing size header")
    size = _header_value(block[:size_end], SIZE_KEY)

    binary_end = block.find(b"\n", size_end + 1)
    if binary_end < 0:
        raise ProtocolError("Missing binary header")
    length = _header_value(block[size_end + 1 : binary_end], BINARY_KEY)

    payload_start = binary_end + 1
    payload_end = payload_start + length
    if len(block) < payload_end:
        raise ProtocolError(f"Short binary payload: expected {length} bytes")
    if not block.startswith(TERMINATOR, payload_end):
        raise ProtocolError("Missing OK terminator after binary payload")

    return BinaryChunk(size=size, data=block[payload_start:payload_end])


class MpdBinaryFetcher:
    """Drives the offset loop for chunked binary commands.

    Each chunk is one gated request/response cycle on the transport, so
    other callers' commands may run between chunks.

    Example:
        fetcher = MpdBinaryFetcher(transport)
        image = await fetcher.fetch_album_art("Artist/Album/01.flac")
    """

    def __init__(self, transport: MpdTransport) -> None:
        self._transport = transport

    async def fetch_album_art(self, path: str) -> bytes:
        """Fetch the complete album art for ``path``.

        Args:
            path: Song URI; MPD looks for cover files in its directory.

        Returns:
            The concatenated image bytes (empty if the declared size is 0).

        Raises:
            ProtocolError: If the daemon has no art (ACK) or a frame is malformed.
            MpdConnectionError: On transport failures.
        """
        state = BinaryFetchState()
        while not state.done:
            command = AlbumArt(path, state.offset)
            block = await self._transport.send_and_receive(command.encode())
            chunk = parse_binary_chunk(block)
            state.add(chunk)
            logger.debug("albumart %s: %d/%d bytes", path, state.offset, state.size)
        return bytes(state.buffer)
