"""API clients for the MPD control protocol."""

from mpdctrl.api.mpd import MpdClient, MpdTransport

__all__ = ["MpdClient", "MpdTransport"]
