"""
Network backend components for async_fetch.

This module provides the transport adapter: the NetworkStream and
NetworkBackend interfaces, the asyncio implementation and an in-memory
mock for tests.
"""

from .backend import Address, NetworkBackend
from .stream import NetworkStream
from .tcp import AsyncioNetworkBackend, TCPNetworkStream, TLSNetworkStream
from .mock import MockNetworkBackend, MockNetworkStream
from .utils import create_ssl_context, parse_address, validate_port

__all__ = [
    "Address",
    "NetworkBackend",
    "NetworkStream",
    "AsyncioNetworkBackend",
    "TCPNetworkStream",
    "TLSNetworkStream",
    "MockNetworkBackend",
    "MockNetworkStream",
    "create_ssl_context",
    "parse_address",
    "validate_port",
]
