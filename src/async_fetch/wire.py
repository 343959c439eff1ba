"""
Wire codec for async_fetch.

WireReader and WireWriter move HTTP/1.x framing units (lines, exact
length bodies, chunked bodies) between the engines and a stream. Every
failure is reported as one of the package's error kinds.
"""

import logging
import string
from typing import Optional, Tuple

from .exceptions import (
    FetchError,
    InvalidHeaderError,
    InvalidInputError,
    InvalidStatusError,
    LimitExceededError,
    UnableToReadError,
    UnableToWriteError,
)
from .network.stream import NetworkStream
from .streams import AsyncReadable

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(string.hexdigits.encode())


class WireReader:
    """
    Buffered reader over a live stream.

    Bytes read past the end of the response head stay in the buffer and
    are served first when the body is read.
    """

    DEFAULT_READ_SIZE = 65536

    def __init__(self, stream: AsyncReadable, read_size: Optional[int] = None) -> None:
        self._stream = stream
        self._read_size = read_size or self.DEFAULT_READ_SIZE
        self._buffer = bytearray()
        self._eof = False

    @property
    def stream(self) -> AsyncReadable:
        return self._stream

    @property
    def buffered(self) -> int:
        """Number of bytes received but not yet consumed."""
        return len(self._buffer)

    async def _fill(self) -> bool:
        if self._eof:
            return False
        try:
            data = await self._stream.read(self._read_size)
        except (OSError, RuntimeError) as e:
            raise UnableToReadError(str(e) or type(e).__name__, cause=e) from e
        if not data:
            self._eof = True
            return False
        self._buffer += data
        return True

    async def read_line(self, limit: Optional[int] = None) -> bytes:
        """
        Read one line and strip its CRLF (or bare LF) terminator.

        Args:
            limit: Maximum line length in bytes, terminator excluded

        Raises:
            LimitExceededError: If the line is longer than ``limit``
            UnableToReadError: If the stream ends before the line does
        """
        start = 0
        while True:
            index = self._buffer.find(b"\n", start)
            if index != -1:
                line = bytes(self._buffer[:index])
                del self._buffer[:index + 1]
                if line.endswith(b"\r"):
                    line = line[:-1]
                if limit is not None and len(line) > limit:
                    raise LimitExceededError(f"line longer than {limit} bytes")
                return line

            if limit is not None and len(self._buffer) > limit + 1:
                raise LimitExceededError(f"line longer than {limit} bytes")
            start = len(self._buffer)
            if not await self._fill():
                raise UnableToReadError("connection closed before end of line")

    async def read_start_line(self, limit: Optional[int] = None) -> Tuple[bytes, bytes, bytes]:
        """Read a status line as (version, status, reason)."""
        line = await self.read_line(limit)
        parts = line.split(b" ", 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise InvalidStatusError(f"malformed status line {line!r}")
        reason = parts[2] if len(parts) == 3 else b""
        return parts[0], parts[1], reason

    async def read_header_line(self, limit: Optional[int] = None) -> Tuple[bytes, bytes]:
        """
        Read one header line as (name, value).

        An empty name marks the end of the header block.
        """
        line = await self.read_line(limit)
        if not line:
            return b"", b""
        if line[:1] in (b" ", b"\t"):
            raise InvalidHeaderError("obsolete line folding is not supported")

        name, sep, value = line.partition(b":")
        if not sep or not name or name != name.strip():
            raise InvalidHeaderError(f"malformed header line {line!r}")
        return name, value.strip(b" \t")

    async def read_exact(self, length: int) -> bytes:
        """Read exactly ``length`` bytes."""
        while len(self._buffer) < length:
            if not await self._fill():
                raise UnableToReadError(
                    f"connection closed after {len(self._buffer)} of {length} bytes"
                )
        data = bytes(self._buffer[:length])
        del self._buffer[:length]
        return data

    async def read_chunked(
        self,
        line_limit: Optional[int] = None,
        body_limit: Optional[int] = None,
    ) -> bytes:
        """
        Decode a chunked body.

        Chunk extensions are ignored. Trailer fields after the last chunk
        are consumed and discarded.

        Args:
            line_limit: Maximum length of a chunk-size or trailer line
            body_limit: Maximum total body size

        Raises:
            InvalidInputError: On a malformed size line or chunk terminator
            LimitExceededError: If a limit is exceeded
        """
        body = bytearray()
        while True:
            line = await self.read_line(line_limit)
            size_text = line.split(b";", 1)[0].strip(b" \t")
            if not size_text or not all(c in _HEX_DIGITS for c in size_text):
                raise InvalidInputError(f"malformed chunk size line {line!r}")
            size = int(size_text, 16)
            if size == 0:
                break

            if body_limit is not None and len(body) + size > body_limit:
                raise LimitExceededError(f"chunked body larger than {body_limit} bytes")
            body += await self.read_exact(size)

            if await self.read_line(line_limit) != b"":
                raise InvalidInputError("chunk not followed by a line terminator")

        while await self.read_line(line_limit):
            pass

        return bytes(body)


class WireWriter:
    """Writer that frames request bodies onto a stream."""

    DEFAULT_READ_SIZE = 65536

    def __init__(self, stream: NetworkStream) -> None:
        self._stream = stream
        self._bytes_written = 0

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write_bytes(self, data: bytes) -> None:
        try:
            await self._stream.write(data)
        except (OSError, RuntimeError) as e:
            raise UnableToWriteError(str(e) or type(e).__name__, cause=e) from e
        self._bytes_written += len(data)

    async def flush(self) -> None:
        try:
            await self._stream.flush()
        except (OSError, RuntimeError) as e:
            raise UnableToWriteError(f"flush failed: {e}", cause=e) from e

    async def _read_source(self, source: AsyncReadable, max_bytes: int) -> bytes:
        try:
            return await source.read(max_bytes)
        except FetchError:
            raise
        except Exception as e:
            raise UnableToReadError(f"body source failed: {e}", cause=e) from e

    async def write_all(self, source: AsyncReadable, limit: Optional[int] = None) -> int:
        """Write the source unframed until it is exhausted."""
        total = 0
        while True:
            chunk = await self._read_source(source, self.DEFAULT_READ_SIZE)
            if not chunk:
                return total
            total += len(chunk)
            if limit is not None and total > limit:
                raise LimitExceededError(f"body larger than {limit} bytes")
            await self.write_bytes(chunk)

    async def write_exact(self, source: AsyncReadable, length: int) -> int:
        """Write exactly ``length`` bytes from the source."""
        remaining = length
        while remaining > 0:
            chunk = await self._read_source(source, min(remaining, self.DEFAULT_READ_SIZE))
            if not chunk:
                raise InvalidInputError(
                    f"body source ended after {length - remaining} of {length} bytes"
                )
            chunk = chunk[:remaining]
            await self.write_bytes(chunk)
            remaining -= len(chunk)
        return length

    async def write_chunked(
        self,
        source: AsyncReadable,
        max_chunk: int,
        limit: Optional[int] = None,
    ) -> int:
        """Write the source with chunked framing, ``max_chunk`` bytes per chunk."""
        total = 0
        while True:
            chunk = await self._read_source(source, max_chunk)
            if not chunk:
                break
            total += len(chunk)
            if limit is not None and total > limit:
                raise LimitExceededError(f"body larger than {limit} bytes")
            await self.write_bytes(b"%x\r\n%b\r\n" % (len(chunk), chunk))
        await self.write_bytes(b"0\r\n\r\n")
        return total
