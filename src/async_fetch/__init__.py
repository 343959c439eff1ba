"""
async_fetch - asyncio HTTP/1.x client engine

Builds a request, streams its body with the right framing over a plain
or TLS connection and parses the response head, leaving the body on the
connection until it is asked for.
"""

__version__ = "0.1.0"

from .http_primitives import Headers, Method, URLComponents, Version, parse_status, parse_url
from .request import Request
from .response import Response
from .framing import Framing, FramingKind, request_framing, response_framing
from .streams import AsyncReadable, BodyStream, create_body_stream
from .exceptions import (
    ErrorKind,
    FetchError,
    InvalidDataError,
    InvalidHeaderError,
    InvalidInputError,
    InvalidMethodError,
    InvalidStatusError,
    InvalidUrlError,
    InvalidVersionError,
    LimitExceededError,
    UnableToConnectError,
    UnableToReadError,
    UnableToWriteError,
)

__all__ = [
    "Headers",
    "Method",
    "URLComponents",
    "Version",
    "parse_status",
    "parse_url",
    "Request",
    "Response",
    "Framing",
    "FramingKind",
    "request_framing",
    "response_framing",
    "AsyncReadable",
    "BodyStream",
    "create_body_stream",
    "ErrorKind",
    "FetchError",
    "InvalidDataError",
    "InvalidHeaderError",
    "InvalidInputError",
    "InvalidMethodError",
    "InvalidStatusError",
    "InvalidUrlError",
    "InvalidVersionError",
    "LimitExceededError",
    "UnableToConnectError",
    "UnableToReadError",
    "UnableToWriteError",
]
