"""
Pytest configuration for async_fetch tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import pytest
from typing import List, Tuple

from async_fetch.network.mock import MockNetworkBackend


def build_response(
    status_line: bytes = b"HTTP/1.1 200 OK",
    headers: List[Tuple[bytes, bytes]] = (),
    body: bytes = b"",
) -> bytes:
    """Assemble raw response bytes."""
    head = status_line + b"\r\n"
    for name, value in headers:
        head += name + b": " + value + b"\r\n"
    return head + b"\r\n" + body


class MockAsyncStream:
    """Async iterable over a fixed list of chunks."""

    def __init__(self, data: List[bytes]) -> None:
        self.data = data
        self.index = 0

    def __aiter__(self) -> "MockAsyncStream":
        return self

    async def __anext__(self) -> bytes:
        if self.index >= len(self.data):
            raise StopAsyncIteration
        result = self.data[self.index]
        self.index += 1
        return result


@pytest.fixture
def make_response():
    """Factory for raw response bytes."""
    return build_response


@pytest.fixture
def mock_stream():
    """Create a mock async stream for testing."""
    def _create_stream(data: List[bytes]) -> MockAsyncStream:
        return MockAsyncStream(data)
    return _create_stream


@pytest.fixture
def ok_backend():
    """Backend whose connections answer 200 with a five byte body."""
    return MockNetworkBackend(
        build_response(headers=[(b"Content-Length", b"5")], body=b"hello")
    )


@pytest.fixture
def chunked_backend():
    """Backend whose connections answer with a chunked body."""
    return MockNetworkBackend(
        build_response(
            headers=[(b"Transfer-Encoding", b"chunked")],
            body=b"5\r\nhello\r\n0\r\n\r\n",
        )
    )


@pytest.fixture
def sample_headers():
    """Sample headers for testing."""
    return [
        ("Content-Type", "application/json"),
        ("Authorization", "Bearer token123"),
        ("User-Agent", "async_fetch/0.1.0"),
        ("Accept", "*/*"),
    ]


@pytest.fixture
def sample_stream_data():
    """Sample stream data for testing."""
    return [
        b"Hello",
        b", ",
        b"World",
        b"!",
    ]
