"""
Exceptions for async_fetch.

Every failure surfaces as exactly one error kind. The kinds are flat: each
one subclasses FetchError directly and none derives from another.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of failure an exchange can report."""
    INVALID_URL = "invalid_url"
    INVALID_METHOD = "invalid_method"
    INVALID_VERSION = "invalid_version"
    INVALID_STATUS = "invalid_status"
    INVALID_INPUT = "invalid_input"
    INVALID_HEADER = "invalid_header"
    INVALID_DATA = "invalid_data"
    UNABLE_TO_CONNECT = "unable_to_connect"
    UNABLE_TO_READ = "unable_to_read"
    UNABLE_TO_WRITE = "unable_to_write"
    LIMIT_EXCEEDED = "limit_exceeded"


class FetchError(Exception):
    """Base exception for all async_fetch errors."""

    kind: Optional[ErrorKind] = None
    label = "Fetch error"

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        message = f"{self.label}: {message}"
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidUrlError(FetchError):
    """Raised when a URL cannot be parsed or uses an unsupported scheme."""
    kind = ErrorKind.INVALID_URL
    label = "Invalid URL"


class InvalidMethodError(FetchError):
    """Raised for an unrecognized request method token."""
    kind = ErrorKind.INVALID_METHOD
    label = "Invalid method"


class InvalidVersionError(FetchError):
    """Raised for an unrecognized or unsupported HTTP version."""
    kind = ErrorKind.INVALID_VERSION
    label = "Invalid version"


class InvalidStatusError(FetchError):
    """Raised for a malformed or unknown status code."""
    kind = ErrorKind.INVALID_STATUS
    label = "Invalid status"


class InvalidInputError(FetchError):
    """Raised when framing input (lengths, chunk sizes, body sources) is malformed."""
    kind = ErrorKind.INVALID_INPUT
    label = "Invalid input"


class InvalidHeaderError(FetchError):
    """Raised when a header line is malformed or not valid UTF-8."""
    kind = ErrorKind.INVALID_HEADER
    label = "Invalid header"


class InvalidDataError(FetchError):
    """Raised when a body cannot be decoded as text or JSON."""
    kind = ErrorKind.INVALID_DATA
    label = "Invalid data"


class UnableToConnectError(FetchError):
    """Raised when address resolution, connect or the TLS handshake fails."""
    kind = ErrorKind.UNABLE_TO_CONNECT
    label = "Unable to connect"


class UnableToReadError(FetchError):
    """Raised when reading from the connection or a body source fails."""
    kind = ErrorKind.UNABLE_TO_READ
    label = "Unable to read"


class UnableToWriteError(FetchError):
    """Raised when writing or flushing the connection fails."""
    kind = ErrorKind.UNABLE_TO_WRITE
    label = "Unable to write"


class LimitExceededError(FetchError):
    """Raised when a line, body or declared length exceeds its configured limit."""
    kind = ErrorKind.LIMIT_EXCEEDED
    label = "Limit exceeded"
