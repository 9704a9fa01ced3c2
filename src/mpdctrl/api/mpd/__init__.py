"""MPD client module.

This module provides the protocol core of an async MPD client: the
transport, the command model, the response parser and the chunked
binary fetcher, plus the MpdClient API built on top of them.

Example:
    from mpdctrl.api.mpd import MpdClient

    async with MpdClient("192.168.1.100") as client:
        status = await client.get_status()
        queue = await client.get_queue()
        art = await client.fetch_album_art(queue[0].song.uri)
"""

from mpdctrl.api.mpd.binary import MpdBinaryFetcher
from mpdctrl.api.mpd.client import ConnectionStatus, MpdClient, Subscription
from mpdctrl.api.mpd.errors import (
    MpdClientError,
    MpdConnectionError,
    NotConnectedError,
    ProtocolError,
    ReceiveFailedError,
    RequestMalformedError,
    ResponseError,
)
from mpdctrl.api.mpd.transport import MpdTransport
from mpdctrl.api.mpd.types import PlayState, QueueItem, Song, Status

__all__ = [
    "ConnectionStatus",
    "MpdBinaryFetcher",
    "MpdClient",
    "MpdClientError",
    "MpdConnectionError",
    "MpdTransport",
    "NotConnectedError",
    "PlayState",
    "ProtocolError",
    "QueueItem",
    "ReceiveFailedError",
    "RequestMalformedError",
    "ResponseError",
    "Song",
    "Status",
    "Subscription",
]
