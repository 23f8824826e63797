"""Exception hierarchy for the Gibson client."""

from typing import Optional

from .commands import ReplyCode


class GibsonError(Exception):
    """Base class for all Gibson client errors."""


class DecodeError(GibsonError):
    """A reply frame could not be decoded into a value."""


class UnknownEncodingError(DecodeError):
    """A scalar value used an encoding tag this client does not understand."""

    def __init__(self, encoding: int):
        super().__init__(f"Unknown encoding: {encoding}")
        self.encoding = encoding


class TruncatedPayloadError(DecodeError):
    """A declared length runs past the end of the payload."""


class UnknownErrorCodeError(DecodeError):
    """The server replied with an error code that has no known message."""

    def __init__(self, code: int):
        super().__init__(f"Unknown error code: {code}")
        self.code = code


class ReplyError(GibsonError):
    """
    The server answered a request with an error reply.

    Attributes:
        code: The error reply code
        message: Human readable message for the code
        payload: Whatever payload bytes came with the reply
    """

    def __init__(self, code: int, message: str, payload: bytes = b""):
        super().__init__(message)
        self.code = code
        self.message = message
        self.payload = payload

    @property
    def is_not_found(self) -> bool:
        return self.code == ReplyCode.REPL_ERR_NOT_FOUND

    @property
    def is_locked(self) -> bool:
        return self.code == ReplyCode.REPL_ERR_LOCKED


class ProtocolViolation(GibsonError):
    """
    A reply arrived with no request waiting for it.

    Request/reply correlation is lost once this happens, so the
    connection has to be torn down.
    """


class GibsonConnectionError(GibsonError):
    """Base class for connection level failures."""


class NotConnectedError(GibsonConnectionError):
    """A request was issued while no connection is open."""

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class ConnectionClosedError(GibsonConnectionError):
    """The connection closed before the request was answered."""

    def __init__(self, message: str = "Connection closed", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
