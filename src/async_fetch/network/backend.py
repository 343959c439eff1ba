"""
Network backend interface for async_fetch.

This module defines the NetworkBackend interface: the transport adapter
the request engine uses to resolve an address, open a stream and
upgrade it to TLS.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

from .stream import NetworkStream


class Address(NamedTuple):
    """A resolved socket address."""
    host: str
    port: int

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"


class NetworkBackend(ABC):
    """
    Interface for network backend implementations.

    Implementations report failures with the builtin exceptions they
    naturally raise (OSError, ssl.SSLError, asyncio.TimeoutError,
    ValueError); the request engine maps them onto its own error kinds.
    """

    @abstractmethod
    async def resolve_address(self, address: str) -> Address:
        """
        Resolve a ``host:port`` string to a socket address.

        Args:
            address: Target as ``host:port``; IPv6 hosts in brackets.

        Returns:
            The resolved Address.

        Raises:
            ValueError: If the address text is malformed.
            OSError: If name resolution fails.
        """
        pass

    @abstractmethod
    async def connect_tcp(
        self,
        address: Address,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Connect to a TCP endpoint.

        Args:
            address: The resolved address to connect to.
            timeout: Optional timeout in seconds for the connection.

        Returns:
            A NetworkStream representing the TCP connection.

        Raises:
            OSError: If the connection fails.
            asyncio.TimeoutError: If the connection times out.
        """
        pass

    @abstractmethod
    async def start_tls(
        self,
        stream: NetworkStream,
        hostname: str,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Upgrade an open stream to TLS.

        Args:
            stream: The existing plain NetworkStream to upgrade.
            hostname: The hostname for SNI and certificate verification.
            timeout: Optional timeout in seconds for the TLS handshake.

        Returns:
            A NetworkStream representing the TLS connection.

        Raises:
            OSError: If the TLS handshake fails (ssl.SSLError included).
            asyncio.TimeoutError: If the TLS handshake times out.
        """
        pass
