"""Connection settings.

ConnectionSettings is a plain value: the protocol core never reads or
writes settings on its own. Callers that keep settings somewhere build
one with ``from_mapping`` and pass it to ``MpdClient.from_settings``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Self

from mpdctrl.api.mpd.transport import (
    COMMAND_TIMEOUT,
    CONNECT_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    READ_CHUNK_SIZE,
)

# Accepted ranges
PORT_RANGE = (1, 65535)
CONNECT_TIMEOUT_RANGE = (0.5, 60.0)
COMMAND_TIMEOUT_RANGE = (0.5, 300.0)
READ_CHUNK_SIZE_RANGE = (1024, 1024 * 1024)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _number(data: Mapping[str, object], key: str, default: float) -> float:
    """Return ``data[key]`` as a number, or ``default`` if absent or invalid."""
    try:
        return float(data.get(key, default))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ConnectionSettings:
    """Settings used to build an MpdTransport.

    Attributes:
        host: MPD server hostname or IP.
        port: MPD server port.
        connect_timeout: Seconds to wait for the socket and greeting.
        command_timeout: Seconds to wait for one request/response cycle.
        read_chunk_size: Maximum bytes per socket read.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    connect_timeout: float = CONNECT_TIMEOUT
    command_timeout: float = COMMAND_TIMEOUT
    read_chunk_size: int = READ_CHUNK_SIZE

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> Self:
        """Build settings from loose key-value data.

        Missing or invalid values fall back to the defaults; out-of-range
        numbers are clamped.

        Args:
            data: Values keyed by field name, e.g. parsed from a config file.

        Returns:
            Validated settings.
        """
        host = str(data.get("host") or DEFAULT_HOST)
        return cls(
            host=host,
            port=int(_clamp(_number(data, "port", DEFAULT_PORT), PORT_RANGE)),
            connect_timeout=_clamp(
                _number(data, "connect_timeout", CONNECT_TIMEOUT), CONNECT_TIMEOUT_RANGE
            ),
            command_timeout=_clamp(
                _number(data, "command_timeout", COMMAND_TIMEOUT), COMMAND_TIMEOUT_RANGE
            ),
            read_chunk_size=int(
                _clamp(_number(data, "read_chunk_size", READ_CHUNK_SIZE), READ_CHUNK_SIZE_RANGE)
            ),
        )
