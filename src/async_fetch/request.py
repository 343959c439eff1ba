"""
HTTP request engine for async_fetch.

A Request is configured by the caller, then sent over a fresh
connection. Sending resolves the headers that framing depends on,
writes the head and the framed body, and returns a Response whose
status line and headers have been read but whose body has not.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Union

import h11

from .exceptions import (
    InvalidHeaderError,
    InvalidInputError,
    InvalidStatusError,
    InvalidUrlError,
    InvalidVersionError,
    UnableToConnectError,
)
from .framing import Framing, FramingKind, request_framing
from .http_primitives import Headers, Method, URLComponents, Version
from .network.backend import NetworkBackend
from .network.stream import NetworkStream
from .network.tcp import AsyncioNetworkBackend
from .response import Response
from .streams import AsyncReadable, BodySource, create_body_stream
from .wire import WireReader, WireWriter

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")


class Request:
    """
    HTTP/1.x request.

    A request may be sent any number of times, one send at a time. Each
    send opens its own connection and hands it to the returned Response.
    """

    DEFAULT_URL = "http://localhost"
    DEFAULT_CHUNK_SIZE = 1024
    DEFAULT_HEAD_LINE_LIMIT = 65536

    def __init__(
        self,
        url: Union[str, URLComponents] = DEFAULT_URL,
        *,
        backend: Optional[NetworkBackend] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize a request.

        Args:
            url: Absolute URL, as text or already parsed
            backend: Transport adapter; defaults to the asyncio backend
            timeout: Timeout in seconds for connecting and the TLS handshake

        Raises:
            InvalidUrlError: If ``url`` is not a valid absolute URL
        """
        self._url = URLComponents.from_url(url) if isinstance(url, str) else url
        self._method = Method.GET
        self._version = Version.HTTP_1_1
        self._headers = Headers()
        self._relay: Optional[str] = None
        self._body_limit: Optional[int] = None
        self._timeout = timeout
        self._backend = backend or AsyncioNetworkBackend()
        self._sending = False

    @classmethod
    def parse_url(cls, url: str, **kwargs: Any) -> "Request":
        """Create a request for ``url``, raising InvalidUrlError if it does not parse."""
        return cls(URLComponents.from_url(url), **kwargs)

    @property
    def url(self) -> URLComponents:
        return self._url

    @property
    def scheme(self) -> str:
        return self._url.scheme

    @property
    def host(self) -> str:
        return self._url.host or "localhost"

    @property
    def port(self) -> int:
        return self._url.port_or_default

    @property
    def host_with_port(self) -> str:
        return self._url.host_with_port

    @property
    def socket_address(self) -> str:
        """The address actually connected to: the relay if set, else the URL's."""
        return self._relay if self._relay is not None else self.host_with_port

    @property
    def uri(self) -> str:
        return self._url.uri

    @property
    def method(self) -> Method:
        return self._method

    @property
    def version(self) -> Version:
        return self._version

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def relay(self) -> Optional[str]:
        return self._relay

    @property
    def body_limit(self) -> Optional[int]:
        return self._body_limit

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @property
    def backend(self) -> NetworkBackend:
        return self._backend

    def header(self, name: str) -> Optional[str]:
        return self._headers.get(name)

    def has_method(self, value: Method) -> bool:
        return self._method is value

    def has_version(self, value: Version) -> bool:
        return self._version is value

    def has_header(self, name: str) -> bool:
        return name in self._headers

    def has_body_limit(self) -> bool:
        return self._body_limit is not None

    def set_url(self, value: Union[str, URLComponents]) -> None:
        self._url = URLComponents.from_url(value) if isinstance(value, str) else value

    def set_method(self, value: Union[Method, str]) -> None:
        self._method = value if isinstance(value, Method) else Method.from_str(value)

    def set_version(self, value: Union[Version, str]) -> None:
        self._version = value if isinstance(value, Version) else Version.from_str(value)

    def set_header(self, name: str, value: Any) -> None:
        self._headers[name] = str(value)

    def set_relay(self, value: str) -> None:
        self._relay = value

    def set_body_limit(self, length: int) -> None:
        if length < 0:
            raise InvalidInputError(f"body limit must be non-negative, got {length}")
        self._body_limit = length

    def set_timeout(self, seconds: Optional[float]) -> None:
        self._timeout = seconds

    def remove_header(self, name: str) -> None:
        self._headers.pop(name, None)

    def remove_relay(self) -> None:
        self._relay = None

    def clear_headers(self) -> None:
        self._headers.clear()

    def to_proto_string(self) -> str:
        """The request line and header block exactly as sent."""
        if self._version is Version.HTTP_0_9:
            return f"GET {self.uri}\r\n"

        output = f"{self._method} {self.uri} {self._version}\r\n"
        for name, value in self._headers.items():
            output += f"{name}: {value}\r\n"
        return output + "\r\n"

    def __str__(self) -> str:
        return self.to_proto_string()

    def __repr__(self) -> str:
        return f"<Request [{self._method} {self.scheme}://{self.host_with_port}{self.uri}]>"

    async def send(self) -> Response:
        """Send the request with an empty body."""
        return await self.send_with_body(b"")

    async def send_with_body(self, body: BodySource) -> Response:
        """
        Send the request, streaming ``body`` as its payload.

        Args:
            body: Body source, read forward-only and at most once

        Returns:
            The response, with the body still unread

        Raises:
            InvalidUrlError: If the scheme is not http or https
            LimitExceededError: If Content-Length exceeds the body limit
            UnableToConnectError: If resolving, connecting or TLS fails
            UnableToWriteError, UnableToReadError: On I/O failure
            InvalidHeaderError, InvalidStatusError, InvalidVersionError:
                If the request or response head is malformed
        """
        if self._sending:
            raise InvalidInputError("request is already being sent")
        self._sending = True
        try:
            self._update_host_header()
            self._update_body_headers()
            return await self._send(create_body_stream(body))
        finally:
            self._sending = False

    async def send_bytes(self, body: bytes) -> Response:
        """Send ``body`` with a matching Content-Length."""
        self.remove_header("Transfer-Encoding")
        self.set_header("Content-Length", len(body))
        return await self.send_with_body(body)

    async def send_text(self, body: str) -> Response:
        """Send ``body`` UTF-8 encoded with a matching Content-Length."""
        return await self.send_bytes(body.encode("utf-8"))

    async def send_json(self, value: Any) -> Response:
        """Send ``value`` serialized as JSON."""
        if not self.has_header("Content-Type"):
            self.set_header("Content-Type", "application/json")
        return await self.send_text(json.dumps(value))

    def _update_host_header(self) -> None:
        if self._version >= Version.HTTP_1_1 and not self.has_header("Host"):
            self.set_header("Host", self.host_with_port)

    def _update_body_headers(self) -> None:
        # Content-Length frames the body, so a chunked header left by an
        # earlier send must not go out with it
        if self.has_header("Content-Length"):
            self.remove_header("Transfer-Encoding")
        elif self._method.has_body:
            self.set_header("Transfer-Encoding", "chunked")

    async def _send(self, body: AsyncReadable) -> Response:
        if self.scheme not in SUPPORTED_SCHEMES:
            raise InvalidUrlError(f"unsupported scheme {self.scheme!r}")

        framing = request_framing(self._version, self._method, self._headers, self._body_limit)
        head = self._encode_head()

        stream = await self._connect()
        try:
            writer = WireWriter(stream)
            await writer.write_bytes(head)
            await writer.flush()
            logger.debug(f"Sent {self._method} {self.uri} {self._version} head ({len(head)} bytes)")
            await self._write_body(writer, body, framing)
            return await self._build_response(stream)
        except Exception as e:
            logger.error(f"{self._method} {self.uri} failed: {e}")
            await stream.aclose()
            raise
        except asyncio.CancelledError:
            await stream.aclose()
            raise

    def _encode_head(self) -> bytes:
        if self._version is not Version.HTTP_0_9:
            self._validate_head()
        return self.to_proto_string().encode("utf-8")

    def _validate_head(self) -> None:
        method = self._method.value.encode()
        target = self.uri.encode("utf-8")
        try:
            h11.Request(method=method, target=target, headers=[], http_version=b"1.0")
        except h11.LocalProtocolError as e:
            raise InvalidUrlError(f"illegal request target {self.uri!r}", cause=e) from e
        try:
            h11.Request(
                method=method,
                target=target,
                headers=self._headers.to_list(),
                http_version=self._version.number.encode(),
            )
        except h11.LocalProtocolError as e:
            raise InvalidHeaderError(str(e), cause=e) from e

    async def _connect(self) -> NetworkStream:
        target = self.socket_address
        try:
            address = await self._backend.resolve_address(target)
        except (OSError, ValueError) as e:
            raise UnableToConnectError(f"cannot resolve {target}: {e}", cause=e) from e

        try:
            stream = await self._backend.connect_tcp(address, timeout=self._timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise UnableToConnectError(f"cannot connect to {address}: {e}", cause=e) from e
        logger.debug(f"Connected to {address} for {self.scheme}://{self.host_with_port}")

        if self.scheme == "https":
            try:
                stream = await self._backend.start_tls(stream, self.host, timeout=self._timeout)
            except (OSError, asyncio.TimeoutError) as e:
                await stream.aclose()
                raise UnableToConnectError(f"TLS handshake with {self.host} failed: {e}", cause=e) from e
            logger.debug(f"TLS established with {self.host}")

        return stream

    async def _write_body(self, writer: WireWriter, body: AsyncReadable, framing: Framing) -> None:
        if framing.kind is FramingKind.IDENTITY:
            sent = await writer.write_all(body, self._body_limit)
        elif framing.kind is FramingKind.CONTENT_LENGTH:
            sent = await writer.write_exact(body, framing.length)
        else:
            sent = await writer.write_chunked(body, self.DEFAULT_CHUNK_SIZE, self._body_limit)
        await writer.flush()
        logger.debug(f"Sent {sent} body bytes ({framing.kind.value})")

    async def _build_response(self, stream: NetworkStream) -> Response:
        reader = WireReader(stream)
        response = Response(reader)
        response.set_request_method(
            Method.GET if self._version is Version.HTTP_0_9 else self._method
        )

        version, status, reason = await reader.read_start_line(self.DEFAULT_HEAD_LINE_LIMIT)
        response.set_version_str(_decode(version, InvalidVersionError))
        response.set_status_str(_decode(status, InvalidStatusError))
        response.set_reason(_decode(reason, InvalidStatusError))

        while True:
            name, value = await reader.read_header_line(self.DEFAULT_HEAD_LINE_LIMIT)
            if not name:
                break
            response.set_header(
                _decode(name, InvalidHeaderError),
                _decode(value, InvalidHeaderError),
            )
        response.validate_head()

        logger.debug(
            f"{self._method} {self.uri} -> {response.status.value} "
            f"({len(response.headers)} headers)"
        )
        return response


def _decode(value: bytes, error: type) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise error(f"{value!r} is not valid UTF-8", cause=e) from e
