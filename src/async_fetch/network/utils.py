"""
Network utilities for async_fetch.

This module provides helpers for address parsing and SSL context setup.
"""

import ssl
from typing import Optional, Tuple, Union


def create_ssl_context(
    verify_mode: int = ssl.CERT_REQUIRED,
    check_hostname: bool = True,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
) -> ssl.SSLContext:
    """
    Create an SSL context for client connections.

    Args:
        verify_mode: SSL verification mode
        check_hostname: Whether to verify hostname
        cert_file: Path to certificate file (for client auth)
        key_file: Path to private key file (for client auth)

    Returns:
        Configured SSL context

    Raises:
        ssl.SSLError: If SSL context creation fails
    """
    context = ssl.create_default_context()
    context.check_hostname = check_hostname
    context.verify_mode = verify_mode

    # HTTP/1.x only
    context.set_alpn_protocols(["http/1.1"])

    context.options |= ssl.OP_NO_COMPRESSION
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    if cert_file and key_file:
        context.load_cert_chain(cert_file, key_file)

    return context


def validate_port(port: Union[int, str]) -> int:
    """
    Validate and convert port to integer.

    Args:
        port: Port number (int or string)

    Returns:
        Port as integer

    Raises:
        ValueError: If port is invalid
    """
    try:
        port_int = int(port)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid port: {port}")

    if not (1 <= port_int <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port_int}")

    return port_int


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` string.

    IPv6 literals must be bracketed, as in ``[::1]:8080``.

    Args:
        address: Address text

    Returns:
        Tuple of (host, port) with brackets removed from the host

    Raises:
        ValueError: If the address is malformed
    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        if end == -1 or address[end + 1:end + 2] != ":":
            raise ValueError(f"Invalid address: {address}")
        host, port = address[1:end], address[end + 2:]
    else:
        host, sep, port = address.rpartition(":")
        if not sep or ":" in host:
            raise ValueError(f"Invalid address: {address}")

    if not host:
        raise ValueError(f"No host in address: {address}")

    return host, validate_port(port)
