"""
Network stream interface for async_fetch.

This module defines the NetworkStream interface that the plain TCP and
the TLS stream variants implement. The request and response engines only
ever talk to a connection through it.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    Interface for network streams with async I/O operations.

    A stream is exclusively owned by one exchange at a time: the request
    engine writes to it, then hands it to the response it produces.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the stream.

        Args:
            max_bytes: Maximum number of bytes to read. If None, an
                      implementation-defined amount is read.

        Returns:
            The data read from the stream, or b"" at end of stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Queue data for writing.

        Args:
            data: The data to write to the stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass

    @abstractmethod
    async def flush(self) -> None:
        """
        Wait until queued data has been handed to the transport.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """
        Close the stream and cleanup resources.

        Closing an already closed stream is a no-op.
        """
        pass

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Get extra information about the stream.

        Args:
            name: The name of the information to retrieve. Common values include:
                 - "peername": The remote endpoint address
                 - "sockname": The local endpoint address
                 - "ssl_object": The SSL object for TLS streams

        Returns:
            The requested information or None if not available.
        """
        pass

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """Check if the stream is closed."""
        pass

    @property
    def is_tls(self) -> bool:
        """Check if the stream is TLS encrypted."""
        return self.get_extra_info("ssl_object") is not None
