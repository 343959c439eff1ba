"""
HTTP primitives for async_fetch.

This module defines the small value types shared by the request and
response engines: methods, protocol versions, status parsing, the
header map and the parsed URL.
"""

import functools
from collections.abc import MutableMapping
from enum import Enum
from http import HTTPStatus
from typing import Dict, Iterator, NamedTuple, Optional, Tuple, Union
from urllib.parse import quote, urlsplit

from .exceptions import (
    InvalidMethodError,
    InvalidStatusError,
    InvalidUrlError,
    InvalidVersionError,
)


DEFAULT_PORTS = {"http": 80, "https": 443}

# left unescaped when percent-encoding the request target
_TARGET_SAFE = "!$%&'()*+,/:;=?@[]~"


class Method(Enum):
    """HTTP request methods."""
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"

    @classmethod
    def from_str(cls, value: str) -> "Method":
        """Parse a method token. Tokens are case-sensitive."""
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidMethodError(f"{value!r}", cause=e) from e

    @property
    def has_body(self) -> bool:
        """Whether requests with this method carry a body."""
        return self in (Method.POST, Method.PUT, Method.PATCH)

    def __str__(self) -> str:
        return self.value


@functools.total_ordering
class Version(Enum):
    """HTTP protocol versions, ordered oldest first."""
    HTTP_0_9 = "HTTP/0.9"
    HTTP_1_0 = "HTTP/1.0"
    HTTP_1_1 = "HTTP/1.1"

    @classmethod
    def from_str(cls, value: str) -> "Version":
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidVersionError(f"{value!r}", cause=e) from e

    @property
    def number(self) -> str:
        """The bare version number, e.g. ``"1.1"``."""
        return self.value.split("/", 1)[1]

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return _VERSION_ORDER.index(self) < _VERSION_ORDER.index(other)

    def __str__(self) -> str:
        return self.value


_VERSION_ORDER = [Version.HTTP_0_9, Version.HTTP_1_0, Version.HTTP_1_1]


def parse_status(value: Union[str, bytes, int]) -> HTTPStatus:
    """
    Parse a status code into an HTTPStatus.

    Args:
        value: Three-digit code as text, bytes or int

    Returns:
        The matching HTTPStatus

    Raises:
        InvalidStatusError: If the code is malformed or not registered
    """
    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError as e:
            raise InvalidStatusError(f"{value!r}", cause=e) from e
    if isinstance(value, str):
        if len(value) != 3 or not value.isdigit():
            raise InvalidStatusError(f"{value!r}")
        value = int(value)
    try:
        return HTTPStatus(value)
    except ValueError as e:
        raise InvalidStatusError(f"{value!r}", cause=e) from e


class Headers(MutableMapping):
    """
    Header map.

    Names keep the case they were last written with and are matched
    case-insensitively. Setting an existing name replaces its value in
    place, so transmission order is insertion order.
    """

    def __init__(self, items=None) -> None:
        self._items: Dict[str, Tuple[str, str]] = {}
        if items:
            self.update(items)

    def __getitem__(self, name: str) -> str:
        return self._items[name.lower()][1]

    def __setitem__(self, name: str, value: str) -> None:
        self._items[name.lower()] = (name, value)

    def __delitem__(self, name: str) -> None:
        del self._items[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({list(self.items())!r})"

    def copy(self) -> "Headers":
        return Headers(self.items())

    def to_list(self) -> list:
        """Headers as ``(name, value)`` byte pairs, in transmission order."""
        return [(name.encode(), value.encode()) for name, value in self.items()]


class URLComponents(NamedTuple):
    """Immutable representation of a parsed absolute URL."""
    scheme: str
    host: str
    port: Optional[int]
    path: str
    query: str
    fragment: str

    @classmethod
    def from_url(cls, url: str) -> "URLComponents":
        """
        Parse an absolute URL.

        Raises:
            InvalidUrlError: If the URL has no scheme, an http(s) URL has
                no host, or the port is out of range
        """
        try:
            parsed = urlsplit(url)
            port = parsed.port
        except (ValueError, TypeError) as e:
            raise InvalidUrlError(f"{url!r}", cause=e) from e

        if not parsed.scheme:
            raise InvalidUrlError(f"{url!r} is not absolute")
        scheme = parsed.scheme.lower()
        host = parsed.hostname or ""
        if scheme in DEFAULT_PORTS and not host:
            raise InvalidUrlError(f"{url!r} has no host")

        path = parsed.path
        if not path and scheme in DEFAULT_PORTS:
            path = "/"

        return cls(
            scheme=scheme,
            host=host,
            port=port,
            path=quote(path, safe=_TARGET_SAFE),
            query=quote(parsed.query, safe=_TARGET_SAFE),
            fragment=quote(parsed.fragment, safe=_TARGET_SAFE),
        )

    @property
    def port_or_default(self) -> int:
        """Explicit port, else the scheme's well-known port, else 80."""
        if self.port is not None:
            return self.port
        return DEFAULT_PORTS.get(self.scheme, 80)

    @property
    def host_with_port(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port_or_default}"

    @property
    def uri(self) -> str:
        """Path, query and fragment as sent on the request line."""
        uri = self.path
        if self.query:
            uri += "?" + self.query
        if self.fragment:
            uri += "#" + self.fragment
        return uri


def parse_url(url: str) -> URLComponents:
    """Parse ``url`` as an absolute URL, raising InvalidUrlError on failure."""
    return URLComponents.from_url(url)
