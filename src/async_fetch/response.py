"""
HTTP response engine for async_fetch.

A Response is produced by a successful send with its status line and
headers already parsed. The body is left on the connection until the
caller asks for it.
"""

import asyncio
import json
import logging
from http import HTTPStatus
from typing import Any, Optional, Union

import h11

from .exceptions import (
    InvalidDataError,
    InvalidHeaderError,
    UnableToReadError,
)
from .framing import FramingKind, response_framing
from .http_primitives import Headers, Method, Version, parse_status
from .streams import AsyncReadable, BodyStream
from .wire import WireReader

logger = logging.getLogger(__name__)


class Response:
    """
    HTTP response bound to the connection it was read from.

    The response owns its reader exclusively. Reading the whole body,
    calling ``aclose`` or leaving an ``async with`` block releases the
    connection.
    """

    def __init__(self, reader: Optional[AsyncReadable] = None) -> None:
        self._status = HTTPStatus.OK
        self._version = Version.HTTP_1_1
        self._reason = ""
        self._headers = Headers()
        self._chunkline_limit: Optional[int] = None
        self._body_limit: Optional[int] = None
        self._request_method: Optional[Method] = None
        self._reader = WireReader(BodyStream(b""))
        self._consumed = False
        self._closed = False
        if reader is not None:
            self.set_reader(reader)

    @classmethod
    def with_reader(cls, reader: AsyncReadable) -> "Response":
        return cls(reader)

    @property
    def status(self) -> HTTPStatus:
        return self._status

    @property
    def version(self) -> Version:
        return self._version

    @property
    def reason(self) -> str:
        """Reason phrase as received, empty for responses built locally."""
        return self._reason

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def reader(self) -> AsyncReadable:
        """The live stream the body is read from."""
        return self._reader.stream

    @property
    def chunkline_limit(self) -> Optional[int]:
        return self._chunkline_limit

    @property
    def body_limit(self) -> Optional[int]:
        return self._body_limit

    @property
    def request_method(self) -> Optional[Method]:
        """Method of the request this answers, when known."""
        return self._request_method

    @property
    def is_closed(self) -> bool:
        return self._closed

    def header(self, name: str) -> Optional[str]:
        return self._headers.get(name)

    def has_status(self, value: Union[HTTPStatus, int]) -> bool:
        return self._status == value

    def has_version(self, value: Version) -> bool:
        return self._version is value

    def has_headers(self) -> bool:
        return len(self._headers) > 0

    def has_header(self, name: str) -> bool:
        return name in self._headers

    def has_chunkline_limit(self) -> bool:
        return self._chunkline_limit is not None

    def has_body_limit(self) -> bool:
        return self._body_limit is not None

    def set_status(self, value: Union[HTTPStatus, int]) -> None:
        self._status = parse_status(value)

    def set_status_str(self, value: str) -> None:
        self._status = parse_status(value)

    def set_version(self, value: Version) -> None:
        self._version = value

    def set_version_str(self, value: str) -> None:
        self._version = Version.from_str(value)

    def set_reason(self, value: str) -> None:
        self._reason = value

    def set_header(self, name: str, value: Any) -> None:
        self._headers[name] = str(value)

    def set_reader(self, reader: AsyncReadable) -> None:
        if not isinstance(reader, WireReader):
            reader = WireReader(reader)
        self._reader = reader
        self._consumed = False
        self._closed = False

    def set_request_method(self, value: Method) -> None:
        self._request_method = value

    def set_chunkline_limit(self, length: int) -> None:
        self._chunkline_limit = length

    def set_body_limit(self, length: int) -> None:
        self._body_limit = length

    def remove_header(self, name: str) -> None:
        self._headers.pop(name, None)

    def clear_headers(self) -> None:
        self._headers.clear()

    def validate_head(self) -> None:
        """
        Check the status line and headers against HTTP/1.1 grammar.

        Raises:
            InvalidHeaderError: If a header is illegal, Content-Length
                values conflict or Transfer-Encoding is not chunked
        """
        event_type = h11.InformationalResponse if self._status < 200 else h11.Response
        try:
            event_type(
                status_code=int(self._status),
                headers=self._headers.to_list(),
                http_version=self._version.number.encode(),
                reason=self._reason.encode("utf-8"),
            )
        except h11.LocalProtocolError as e:
            raise InvalidHeaderError(str(e), cause=e) from e

    def to_proto_string(self) -> str:
        if self._version is Version.HTTP_0_9:
            return ""
        output = f"{self._version} {self._status.value} {self._status.phrase}\r\n"
        for name, value in self._headers.items():
            output += f"{name}: {value}\r\n"
        return output + "\r\n"

    def __str__(self) -> str:
        return self.to_proto_string()

    def __repr__(self) -> str:
        return f"<Response [{self._status.value} {self._version}]>"

    async def recv(self) -> bytes:
        """
        Read the whole body.

        The body is framed by Transfer-Encoding: chunked, else by
        Content-Length, else it is empty. It is always empty for a HEAD
        request and for 1xx, 204 and 304 responses. Once the body has been read
        the connection is closed and further calls return b"".

        Raises:
            LimitExceededError: If the body or a chunk-size line is too large
            UnableToReadError: If the connection fails or closes early
            InvalidInputError: If the framing is malformed
        """
        if self._consumed:
            return b""
        if self._closed:
            raise UnableToReadError("response was closed before its body was read")

        try:
            framing = response_framing(
                self._headers,
                self._body_limit,
                method=self._request_method,
                status=int(self._status),
            )
            if framing.kind is FramingKind.CHUNKED:
                data = await self._reader.read_chunked(self._chunkline_limit, self._body_limit)
            else:
                data = await self._reader.read_exact(framing.length)
        except Exception as e:
            logger.error(f"Reading response body failed: {e}")
            await self.aclose()
            raise
        except asyncio.CancelledError:
            await self.aclose()
            raise

        logger.debug(f"Read {len(data)} body bytes ({framing.kind.value})")
        self._consumed = True
        await self.aclose()
        return data

    async def recv_text(self) -> str:
        """Read the body and decode it as UTF-8."""
        data = await self.recv()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidDataError("body is not valid UTF-8", cause=e) from e

    async def recv_json(self) -> Any:
        """Read the body and decode it as JSON. An empty body decodes to {}."""
        text = await self.recv_text()
        if not text:
            return {}
        try:
            return json.loads(text)
        except ValueError as e:
            raise InvalidDataError(f"body is not valid JSON: {e}", cause=e) from e

    async def aclose(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._reader.stream, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Response":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
