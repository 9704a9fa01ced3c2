"""Exceptions raised by the MPD protocol core.

Every failure inside the core surfaces as a subclass of MpdClientError so
callers can tell failures apart from empty-but-successful results:

- MpdConnectionError: connect or greeting failed, socket I/O failed.
- NotConnectedError: operation needs an open session and there is none.
- ReceiveFailedError: a read returned no data (peer closed the stream).
- RequestMalformedError: a command could not be rendered to wire bytes.
- ResponseError: reply bytes are not valid UTF-8 text.
- ProtocolError: the daemon replied with ACK, or a binary frame is malformed.
"""


class MpdClientError(Exception):
    """Base class for MPD client errors."""


class MpdConnectionError(MpdClientError):
    """Failed to connect to MPD, or the connection broke mid-cycle."""


class NotConnectedError(MpdConnectionError):
    """Operation attempted without an open connection."""

    def __init__(self, message: str = "Not connected") -> None:
        super().__init__(message)


class ReceiveFailedError(MpdConnectionError):
    """Read returned no data and no error."""


class RequestMalformedError(MpdClientError):
    """Command could not be rendered to valid wire bytes."""


class ResponseError(MpdClientError):
    """Response bytes are not valid text."""


class ProtocolError(MpdClientError):
    """MPD protocol error.

    Raised for ``ACK`` replies and for binary frames whose headers or
    terminator cannot be parsed. For ACK replies ``code``, ``index`` and
    ``command`` carry the values from ``ACK [code@index] {command} message``;
    for framing errors ``code`` is 0 and ``command`` is empty.
    """

    def __init__(self, message: str, code: int = 0, command: str = "", index: int = 0) -> None:
        self.code = code
        self.index = index
        self.command = command
        self.message = message
        if command or code:
            super().__init__(f"MPD error {code} in {command or '?'}: {message}")
        else:
            super().__init__(message)
