"""
asyncio network backend for async_fetch.

Plain connections are asyncio streams; TLS connections are the same
streams upgraded in place with StreamWriter.start_tls and exposed
through a separate TLSNetworkStream variant.
"""

import asyncio
import logging
import socket
import ssl
from typing import Any, Optional

from .backend import Address, NetworkBackend
from .stream import NetworkStream
from .utils import create_ssl_context, parse_address

logger = logging.getLogger(__name__)


class TCPNetworkStream(NetworkStream):
    """Plain TCP stream over an asyncio reader/writer pair."""

    DEFAULT_READ_SIZE = 65536

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        return await self._reader.read(max_bytes or self.DEFAULT_READ_SIZE)

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._writer.write(data)

    async def flush(self) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        await self._writer.drain()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing stream: {e}")

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._writer.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def writer(self) -> asyncio.StreamWriter:
        return self._writer


class TLSNetworkStream(NetworkStream):
    """TLS stream wrapping a TCP stream whose transport has been upgraded."""

    def __init__(self, stream: TCPNetworkStream, hostname: str) -> None:
        self._stream = stream
        self._hostname = hostname

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        return await self._stream.read(max_bytes)

    async def write(self, data: bytes) -> None:
        await self._stream.write(data)

    async def flush(self) -> None:
        await self._stream.flush()

    async def aclose(self) -> None:
        await self._stream.aclose()

    def get_extra_info(self, name: str) -> Optional[Any]:
        if name == "server_hostname":
            return self._hostname
        return self._stream.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self._stream.is_closed

    @property
    def is_tls(self) -> bool:
        return True


class AsyncioNetworkBackend(NetworkBackend):
    """
    Network backend built on asyncio streams.

    Certificate validation uses the SSL context given at construction,
    by default one that verifies the chain and the hostname.
    """

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None) -> None:
        self._ssl_context = ssl_context

    @property
    def ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = create_ssl_context()
        return self._ssl_context

    async def resolve_address(self, address: str) -> Address:
        host, port = parse_address(address)
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        if not infos:
            raise OSError(f"No addresses found for {address}")
        sockaddr = infos[0][4]
        logger.debug(f"Resolved {address} to {sockaddr[0]}:{sockaddr[1]}")
        return Address(sockaddr[0], sockaddr[1])

    async def connect_tcp(
        self,
        address: Address,
        timeout: Optional[float] = None,
    ) -> TCPNetworkStream:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(address.host, address.port),
            timeout=timeout,
        )
        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.debug(f"Connected to {address}")
        return TCPNetworkStream(reader, writer)

    async def start_tls(
        self,
        stream: NetworkStream,
        hostname: str,
        timeout: Optional[float] = None,
    ) -> TLSNetworkStream:
        if not isinstance(stream, TCPNetworkStream):
            raise TypeError(f"Cannot upgrade {type(stream).__name__} to TLS")
        await asyncio.wait_for(
            stream.writer.start_tls(self.ssl_context, server_hostname=hostname),
            timeout=timeout,
        )
        logger.debug(f"TLS established with {hostname}")
        return TLSNetworkStream(stream, hostname)
