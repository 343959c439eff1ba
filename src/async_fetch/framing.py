"""
Body framing policy for async_fetch.

Pure decisions about how a message body is delimited on the wire. The
request engine applies them when writing, the response engine when
reading.
"""

from enum import Enum
from typing import Mapping, NamedTuple, Optional

from .exceptions import InvalidInputError, LimitExceededError
from .http_primitives import Method, Version


class FramingKind(Enum):
    """How a body's length is communicated."""
    IDENTITY = "identity"
    CONTENT_LENGTH = "content-length"
    CHUNKED = "chunked"


class Framing(NamedTuple):
    """A framing decision. ``length`` is set only for CONTENT_LENGTH."""
    kind: FramingKind
    length: Optional[int] = None

    @classmethod
    def identity(cls) -> "Framing":
        return cls(FramingKind.IDENTITY)

    @classmethod
    def content_length(cls, length: int) -> "Framing":
        return cls(FramingKind.CONTENT_LENGTH, length)

    @classmethod
    def chunked(cls) -> "Framing":
        return cls(FramingKind.CHUNKED)

    @property
    def is_empty(self) -> bool:
        return self.kind is FramingKind.CONTENT_LENGTH and self.length == 0


def read_transfer_encoding(headers: Mapping[str, str]) -> str:
    """The Transfer-Encoding header value, ``"identity"`` when absent."""
    return headers.get("Transfer-Encoding", "identity")


def is_chunked(headers: Mapping[str, str]) -> bool:
    """Whether Transfer-Encoding is ``chunked``, compared case-insensitively."""
    return read_transfer_encoding(headers).strip().lower() == "chunked"


def has_response_body(status: Optional[int]) -> bool:
    """Whether a response with this status code may carry a body."""
    if status is None:
        return True
    return not (100 <= status < 200 or status in (204, 304))


def read_content_length(headers: Mapping[str, str], limit: Optional[int] = None) -> int:
    """
    Parse the Content-Length header and check it against a limit.

    Args:
        headers: Header map containing Content-Length
        limit: Optional maximum accepted length

    Returns:
        The declared length

    Raises:
        InvalidInputError: If the header is missing or not a non-negative integer
        LimitExceededError: If the length is greater than ``limit``
    """
    value = headers.get("Content-Length")
    if value is None:
        raise InvalidInputError("missing Content-Length")
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise InvalidInputError(f"bad Content-Length {value!r}")

    length = int(value)
    if limit is not None and length > limit:
        raise LimitExceededError(f"Content-Length {length} exceeds limit of {limit} bytes")
    return length


def request_framing(
    version: Version,
    method: Method,
    headers: Mapping[str, str],
    body_limit: Optional[int] = None,
) -> Framing:
    """
    Choose the framing for a request body.

    HTTP/0.9 sends the body unframed. Otherwise a declared Content-Length
    wins, then chunked encoding for a chunked header or a body-capable
    method. Anything else sends no body.

    Raises:
        InvalidInputError: If Content-Length is malformed
        LimitExceededError: If Content-Length is greater than ``body_limit``
    """
    if version is Version.HTTP_0_9:
        return Framing.identity()
    if "Content-Length" in headers:
        return Framing.content_length(read_content_length(headers, body_limit))
    if is_chunked(headers) or method.has_body:
        return Framing.chunked()
    # bodiless methods without framing headers send no body, not an empty chunked one
    return Framing.content_length(0)


def response_framing(
    headers: Mapping[str, str],
    body_limit: Optional[int] = None,
    method: Optional[Method] = None,
    status: Optional[int] = None,
) -> Framing:
    """
    Choose the framing for a response body.

    Responses to HEAD and 1xx, 204 and 304 responses never have a body,
    whatever their headers declare. Otherwise chunked wins over
    Content-Length. A response with neither has an empty body; reading
    until the connection closes is not supported.

    Raises:
        InvalidInputError: If Content-Length is malformed
        LimitExceededError: If Content-Length is greater than ``body_limit``
    """
    if method is Method.HEAD or not has_response_body(status):
        return Framing.content_length(0)
    if is_chunked(headers):
        return Framing.chunked()
    if "Content-Length" in headers:
        return Framing.content_length(read_content_length(headers, body_limit))
    return Framing.content_length(0)
