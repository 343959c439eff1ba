"""
Streaming primitives for async_fetch.

Request bodies are pulled from a source on demand as the wire writer
frames them, so a body is never buffered whole unless the caller hands
over a buffer in the first place.
"""

import asyncio
import inspect
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Iterable,
    Iterator,
    Optional,
    Union,
)

from typing_extensions import Protocol, runtime_checkable

from .exceptions import InvalidInputError


@runtime_checkable
class AsyncReadable(Protocol):
    """
    Capability shared by network streams and body sources.

    ``read`` returns at most ``max_bytes`` bytes, and ``b""`` once the
    source is exhausted.
    """

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        ...


BodySource = Union[bytes, bytearray, str, Iterable[bytes], AsyncIterable[bytes], Any]


class BodyStream:
    """
    Forward-only adapter from any supported body source to AsyncReadable.

    Accepted sources are bytes, str (UTF-8 encoded), iterables and async
    iterables of bytes, sync file-like objects and objects with an
    awaitable ``read``. Iterator chunks larger than the requested size are
    split and the surplus is kept for the next read.
    """

    def __init__(self, data: BodySource) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = data
        self._pending = b""
        self._exhausted = False
        self._bytes_read = 0
        self._sync_iter: Optional[Iterator[bytes]] = None
        self._async_iter: Optional[AsyncIterator[bytes]] = None
        self._reader: Any = None

        if isinstance(data, (bytes, bytearray, memoryview)):
            self._pending = bytes(data)
            self._exhausted = True
        elif hasattr(data, "read"):
            self._reader = data
        elif hasattr(data, "__aiter__"):
            self._async_iter = data.__aiter__()
        elif hasattr(data, "__iter__"):
            self._sync_iter = iter(data)
        else:
            raise InvalidInputError(f"unsupported body source {type(data).__name__}")

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """Read up to ``max_bytes`` bytes, or everything left if None."""
        if max_bytes is None:
            chunks = []
            while True:
                chunk = await self.read(65536)
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)

        while not self._pending and not self._exhausted:
            chunk = await self._next_chunk(max_bytes)
            if chunk is None:
                self._exhausted = True
            else:
                self._pending = bytes(chunk)

        result = self._pending[:max_bytes]
        self._pending = self._pending[max_bytes:]
        self._bytes_read += len(result)
        return result

    async def _next_chunk(self, max_bytes: int) -> Optional[bytes]:
        if self._reader is not None:
            chunk = self._reader.read(max_bytes)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            return chunk or None

        if self._async_iter is not None:
            try:
                return await self._async_iter.__anext__()
            except StopAsyncIteration:
                return None

        try:
            chunk = next(self._sync_iter)
        except StopIteration:
            return None
        # let other tasks run between chunks of a long generator
        await asyncio.sleep(0)
        return chunk

    @property
    def bytes_read(self) -> int:
        """Number of bytes handed out so far."""
        return self._bytes_read

    @property
    def exhausted(self) -> bool:
        return self._exhausted and not self._pending


def create_body_stream(data: BodySource) -> AsyncReadable:
    """
    Factory for body streams.

    Objects that already expose an awaitable ``read`` are returned
    unchanged; everything else is wrapped in a BodyStream.

    Args:
        data: The body source

    Returns:
        An AsyncReadable over the source
    """
    if isinstance(data, BodyStream):
        return data
    read = getattr(data, "read", None)
    if read is not None and inspect.iscoroutinefunction(read):
        return data
    return BodyStream(data)
