"""
Mock network implementations for testing.

This module provides mock implementations of NetworkStream and NetworkBackend
that can be used for unit testing without requiring actual network connections.
"""

from typing import Any, Dict, List, Optional

from .backend import Address, NetworkBackend
from .stream import NetworkStream
from .utils import parse_address


class MockNetworkStream(NetworkStream):
    """
    Mock network stream for testing.

    Reads are served from a preloaded byte string and writes are
    collected for inspection. Individual operations can be made to fail
    to exercise error paths.
    """

    def __init__(self, data: bytes = b"", read_size: Optional[int] = None):
        """
        Initialize the mock stream.

        Args:
            data: Data to be available for reading.
            read_size: Cap on bytes returned per read, to simulate a
                      peer that delivers data in small segments.
        """
        self._data = data
        self._position = 0
        self._read_size = read_size
        self._closed = False
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self._flushed = 0
        self.fail_read = False
        self.fail_write = False
        self.fail_flush = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        if self.fail_read:
            raise ConnectionResetError("Connection reset by peer")

        if self._position >= len(self._data):
            return b""

        end = len(self._data)
        if max_bytes is not None:
            end = min(end, self._position + max_bytes)
        if self._read_size is not None:
            end = min(end, self._position + self._read_size)

        result = self._data[self._position:end]
        self._position = end
        return result

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        if self.fail_write:
            raise BrokenPipeError("Broken pipe")
        self._write_buffer.append(bytes(data))

    async def flush(self) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        if self.fail_flush:
            raise BrokenPipeError("Broken pipe")
        self._flushed = len(self._write_buffer)

    async def aclose(self) -> None:
        self._closed = True

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def written_data(self) -> bytes:
        """All data that was written to the stream."""
        return b"".join(self._write_buffer)

    @property
    def flushed_data(self) -> bytes:
        """Data written before the most recent flush."""
        return b"".join(self._write_buffer[:self._flushed])

    @property
    def remaining_data(self) -> bytes:
        """Data not yet consumed by reads."""
        return self._data[self._position:]

    def set_extra_info(self, name: str, value: Any) -> None:
        self._extra_info[name] = value

    def add_data(self, data: bytes) -> None:
        """Append data to be available for reading."""
        self._data += data


class MockNetworkBackend(NetworkBackend):
    """
    Mock network backend for testing.

    Every connect creates a fresh MockNetworkStream preloaded with the
    configured response bytes. Resolved addresses, connections and TLS
    upgrades are recorded in order.
    """

    def __init__(self, response: bytes = b"", read_size: Optional[int] = None):
        """
        Initialize the mock backend.

        Args:
            response: Bytes each new connection will yield when read.
            read_size: Per-read cap passed to each new stream.
        """
        self.response = response
        self.read_size = read_size
        self.resolved: List[str] = []
        self.connections: List[MockNetworkStream] = []
        self.tls_hostnames: List[str] = []
        self.fail_resolve = False
        self.fail_connect = False
        self.fail_tls = False

    async def resolve_address(self, address: str) -> Address:
        self.resolved.append(address)
        if self.fail_resolve:
            raise OSError(f"Name or service not known: {address}")
        host, port = parse_address(address)
        return Address(host, port)

    async def connect_tcp(
        self,
        address: Address,
        timeout: Optional[float] = None,
    ) -> MockNetworkStream:
        if self.fail_connect:
            raise ConnectionRefusedError(f"Connection refused: {address}")

        stream = MockNetworkStream(self.response, read_size=self.read_size)
        stream.set_extra_info("peername", (address.host, address.port))
        stream.set_extra_info("sockname", ("127.0.0.1", 12345))
        self.connections.append(stream)
        return stream

    async def start_tls(
        self,
        stream: NetworkStream,
        hostname: str,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        self.tls_hostnames.append(hostname)
        if self.fail_tls:
            raise OSError(f"certificate verify failed for {hostname}")
        stream.set_extra_info("ssl_object", True)
        stream.set_extra_info("server_hostname", hostname)
        return stream

    @property
    def last_connection(self) -> Optional[MockNetworkStream]:
        """The most recently opened stream, if any."""
        return self.connections[-1] if self.connections else None

    def reset(self) -> None:
        """Forget all recorded activity."""
        self.resolved.clear()
        self.connections.clear()
        self.tls_hostnames.clear()
