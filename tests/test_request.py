"""
Tests for the request engine.

Requests are sent over MockNetworkBackend, so every byte written to the
connection can be checked exactly.
"""

import asyncio
import io
import json
import logging
from http import HTTPStatus

import pytest

from async_fetch import Method, Request, Version
from async_fetch.exceptions import (
    InvalidHeaderError,
    InvalidInputError,
    InvalidMethodError,
    InvalidStatusError,
    InvalidUrlError,
    InvalidVersionError,
    LimitExceededError,
    UnableToConnectError,
    UnableToReadError,
    UnableToWriteError,
)
from async_fetch.network.mock import MockNetworkBackend


class FlakyBackend(MockNetworkBackend):
    """Backend whose streams fail on the chosen operation."""

    def __init__(self, response: bytes = b"", **failures):
        super().__init__(response)
        self.failures = failures

    async def connect_tcp(self, address, timeout=None):
        stream = await super().connect_tcp(address, timeout)
        for name, value in self.failures.items():
            setattr(stream, name, value)
        return stream


class SlowBackend(MockNetworkBackend):
    """Backend that holds every connect until released."""

    def __init__(self, response: bytes = b""):
        super().__init__(response)
        self.release = asyncio.Event()

    async def connect_tcp(self, address, timeout=None):
        await self.release.wait()
        return await super().connect_tcp(address, timeout)


def split_request(data: bytes):
    head, _, body = data.partition(b"\r\n\r\n")
    return head.split(b"\r\n"), body


class TestRequestConfiguration:
    """Test building and mutating requests."""

    def test_defaults(self):
        request = Request()
        assert request.url.host == "localhost"
        assert request.method is Method.GET
        assert request.version is Version.HTTP_1_1
        assert len(request.headers) == 0
        assert request.relay is None
        assert request.body_limit is None
        assert not request.has_body_limit()

    def test_parse_url(self):
        request = Request.parse_url("https://example.com:8443/a/b?c=d#e")
        assert request.scheme == "https"
        assert request.host == "example.com"
        assert request.port == 8443
        assert request.uri == "/a/b?c=d#e"

    def test_parse_url_invalid(self):
        with pytest.raises(InvalidUrlError):
            Request.parse_url("not a url")

    def test_set_url_is_atomic(self):
        request = Request.parse_url("http://example.com/keep")
        with pytest.raises(InvalidUrlError):
            request.set_url("http://example.com:notaport/")
        assert request.uri == "/keep"
        assert request.host == "example.com"

    def test_set_method(self):
        request = Request()
        request.set_method(Method.PUT)
        assert request.has_method(Method.PUT)
        request.set_method("DELETE")
        assert request.method is Method.DELETE

    def test_set_method_invalid_keeps_previous(self):
        request = Request()
        request.set_method("POST")
        with pytest.raises(InvalidMethodError):
            request.set_method("BREW")
        assert request.method is Method.POST

    def test_set_version(self):
        request = Request()
        request.set_version("HTTP/1.0")
        assert request.has_version(Version.HTTP_1_0)
        with pytest.raises(InvalidVersionError):
            request.set_version("HTTP/3")
        assert request.version is Version.HTTP_1_0

    def test_headers(self):
        request = Request()
        request.set_header("Accept", "*/*")
        request.set_header("Content-Length", 12)
        assert request.header("accept") == "*/*"
        assert request.header("Content-Length") == "12"
        request.remove_header("ACCEPT")
        assert not request.has_header("Accept")
        request.remove_header("Missing")
        request.clear_headers()
        assert len(request.headers) == 0

    def test_relay(self):
        request = Request.parse_url("http://example.com/")
        assert request.socket_address == "example.com:80"
        request.set_relay("10.0.0.1:3128")
        assert request.relay == "10.0.0.1:3128"
        assert request.socket_address == "10.0.0.1:3128"
        request.remove_relay()
        assert request.socket_address == "example.com:80"

    def test_body_limit(self):
        request = Request()
        request.set_body_limit(100)
        assert request.body_limit == 100
        with pytest.raises(InvalidInputError):
            request.set_body_limit(-1)

    def test_timeout(self):
        request = Request(timeout=2.5)
        assert request.timeout == 2.5
        request.set_timeout(None)
        assert request.timeout is None


class TestRequestSerialization:
    """Test the request line and header block."""

    @pytest.mark.parametrize("url, target", [
        ("http://example.com", "/"),
        ("http://example.com/users/1", "/users/1"),
        ("http://example.com/search?q=http&page=2", "/search?q=http&page=2"),
        ("https://example.com/doc?v=1#section-2", "/doc?v=1#section-2"),
        ("http://example.com/#top", "/#top"),
    ])
    def test_start_line_keeps_path_query_fragment(self, url, target):
        request = Request.parse_url(url)
        assert request.to_proto_string() == f"GET {target} HTTP/1.1\r\n\r\n"

    def test_headers_in_map_order(self):
        request = Request.parse_url("http://example.com/items")
        request.set_method(Method.POST)
        request.set_header("Content-Type", "text/plain")
        request.set_header("Content-Length", "3")
        assert str(request) == (
            "POST /items HTTP/1.1\r\n"
            "Content-Type: text/plain\r\n"
            "Content-Length: 3\r\n"
            "\r\n"
        )

    def test_http09_never_sends_headers(self):
        request = Request.parse_url("http://example.com/legacy?x=1")
        request.set_version(Version.HTTP_0_9)
        request.set_method(Method.POST)
        for index in range(5):
            request.set_header(f"X-Header-{index}", "value")
        assert request.to_proto_string() == "GET /legacy?x=1\r\n"


class TestRequestSend:
    """Test sending over the mock backend."""

    @pytest.mark.asyncio
    async def test_get(self, ok_backend):
        request = Request.parse_url("http://example.com/users/1", backend=ok_backend)
        response = await request.send()

        stream = ok_backend.last_connection
        assert stream.written_data == (
            b"GET /users/1 HTTP/1.1\r\n"
            b"Host: example.com:80\r\n"
            b"\r\n"
        )
        assert ok_backend.resolved == ["example.com:80"]
        assert response.status is HTTPStatus.OK
        assert response.version is Version.HTTP_1_1
        assert response.header("content-length") == "5"
        assert not stream.is_closed
        assert await response.recv() == b"hello"

    @pytest.mark.asyncio
    async def test_head_exchange(self, make_response):
        backend = MockNetworkBackend(make_response(headers=[(b"Content-Length", b"5")]))
        request = Request.parse_url("http://example.com/file", backend=backend)
        request.set_method(Method.HEAD)
        response = await request.send()

        assert backend.last_connection.written_data.startswith(b"HEAD /file HTTP/1.1\r\n")
        assert response.request_method is Method.HEAD
        assert response.header("Content-Length") == "5"
        assert await response.recv() == b""
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_line", [b"HTTP/1.1 204 No Content", b"HTTP/1.1 304 Not Modified"])
    async def test_bodiless_status_exchange(self, make_response, status_line):
        backend = MockNetworkBackend(
            make_response(status_line=status_line, headers=[(b"Content-Length", b"5")])
        )
        response = await Request.parse_url("http://example.com/", backend=backend).send()
        assert await response.recv() == b""

    @pytest.mark.asyncio
    async def test_explicit_host_is_kept(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_header("Host", "virtual.example.com")
        await request.send()
        lines, _ = split_request(ok_backend.last_connection.written_data)
        assert lines[1:] == [b"Host: virtual.example.com"]

    @pytest.mark.asyncio
    async def test_http10_has_no_host(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_version(Version.HTTP_1_0)
        await request.send()
        assert ok_backend.last_connection.written_data == b"GET / HTTP/1.0\r\n\r\n"

    @pytest.mark.asyncio
    async def test_ipv6_host(self, ok_backend):
        request = Request.parse_url("http://[::1]:8080/", backend=ok_backend)
        await request.send()
        assert ok_backend.resolved == ["[::1]:8080"]
        assert request.header("Host") == "[::1]:8080"

    @pytest.mark.asyncio
    async def test_relay_is_connected_to(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_relay("10.0.0.1:3128")
        await request.send()
        assert ok_backend.resolved == ["10.0.0.1:3128"]
        assert request.header("Host") == "example.com:80"

    @pytest.mark.asyncio
    async def test_https_upgrades_against_url_host(self, ok_backend):
        request = Request.parse_url("https://secure.example.com/", backend=ok_backend)
        request.set_relay("10.0.0.1:3128")
        response = await request.send()
        assert ok_backend.resolved == ["10.0.0.1:3128"]
        assert ok_backend.tls_hostnames == ["secure.example.com"]
        assert request.header("Host") == "secure.example.com:443"
        assert response.reader.is_tls

    @pytest.mark.asyncio
    async def test_plain_http_skips_tls(self, ok_backend):
        await Request.parse_url("http://example.com/", backend=ok_backend).send()
        assert ok_backend.tls_hostnames == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["ftp://example.com/file", "file://localhost/etc/hosts"])
    async def test_unsupported_scheme_never_connects(self, ok_backend, url):
        request = Request.parse_url(url, backend=ok_backend)
        with pytest.raises(InvalidUrlError):
            await request.send()
        assert ok_backend.resolved == []
        assert ok_backend.connections == []

    @pytest.mark.asyncio
    async def test_sequential_sends_use_fresh_connections(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        first = await request.send()
        second = await request.send()
        assert len(ok_backend.connections) == 2
        assert await first.recv() == b"hello"
        assert await second.recv() == b"hello"

    @pytest.mark.asyncio
    async def test_concurrent_send_is_rejected(self, make_response):
        backend = SlowBackend(make_response(headers=[(b"Content-Length", b"0")]))
        request = Request.parse_url("http://example.com/", backend=backend)

        task = asyncio.create_task(request.send())
        await asyncio.sleep(0)
        with pytest.raises(InvalidInputError):
            await request.send()

        backend.release.set()
        response = await task
        assert response.status is HTTPStatus.OK
        assert len(backend.connections) == 1


class TestRequestBody:
    """Test body framing on send."""

    @pytest.mark.asyncio
    async def test_body_method_gets_chunked(self, ok_backend):
        request = Request.parse_url("http://example.com/users", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send_with_body(b"hello")

        assert request.header("Transfer-Encoding") == "chunked"
        assert ok_backend.last_connection.written_data == (
            b"POST /users HTTP/1.1\r\n"
            b"Host: example.com:80\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"5\r\nhello\r\n"
            b"0\r\n\r\n"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", [Method.POST, Method.PUT, Method.PATCH])
    async def test_send_without_body_on_body_method(self, ok_backend, method):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(method)
        await request.send()
        lines, body = split_request(ok_backend.last_connection.written_data)
        assert b"Transfer-Encoding: chunked" in lines
        assert body == b"0\r\n\r\n"

    @pytest.mark.asyncio
    async def test_chunks_are_at_most_1024_bytes(self, ok_backend):
        request = Request.parse_url("http://example.com/upload", backend=ok_backend)
        request.set_method(Method.PUT)
        await request.send_with_body(io.BytesIO(b"a" * 3000))

        _, body = split_request(ok_backend.last_connection.written_data)
        assert body == (
            b"400\r\n" + b"a" * 1024 + b"\r\n"
            b"400\r\n" + b"a" * 1024 + b"\r\n"
            b"3b8\r\n" + b"a" * 952 + b"\r\n"
            b"0\r\n\r\n"
        )

    @pytest.mark.asyncio
    async def test_get_without_length_sends_no_body(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        await request.send_with_body(b"ignored")
        _, body = split_request(ok_backend.last_connection.written_data)
        assert body == b""

    @pytest.mark.asyncio
    async def test_send_bytes_round_trip(self, ok_backend):
        payload = bytes(range(256)) * 3
        request = Request.parse_url("http://example.com/blob", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send_bytes(payload)

        lines, body = split_request(ok_backend.last_connection.written_data)
        assert lines[0] == b"POST /blob HTTP/1.1"
        assert b"Content-Length: 768" in lines
        assert not any(line.startswith(b"Transfer-Encoding") for line in lines)
        assert body == payload

    @pytest.mark.asyncio
    async def test_resend_with_length_drops_chunked(self, ok_backend):
        request = Request.parse_url("http://example.com/x", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send()
        assert request.header("Transfer-Encoding") == "chunked"

        await request.send_bytes(b"hello")
        assert not request.has_header("Transfer-Encoding")
        assert ok_backend.last_connection.written_data == (
            b"POST /x HTTP/1.1\r\n"
            b"Host: example.com:80\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n"
            b"hello"
        )

    @pytest.mark.asyncio
    async def test_explicit_length_wins_over_chunked_header(self, ok_backend):
        request = Request.parse_url("http://example.com/x", backend=ok_backend)
        request.set_method(Method.PUT)
        request.set_header("Transfer-Encoding", "chunked")
        request.set_header("Content-Length", "5")
        await request.send_with_body(b"hello")

        lines, body = split_request(ok_backend.last_connection.written_data)
        assert not any(line.startswith(b"Transfer-Encoding") for line in lines)
        assert b"Content-Length: 5" in lines
        assert body == b"hello"

    @pytest.mark.asyncio
    async def test_send_text_counts_bytes(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send_text("héllo")
        lines, body = split_request(ok_backend.last_connection.written_data)
        assert b"Content-Length: 6" in lines
        assert body == "héllo".encode("utf-8")

    @pytest.mark.asyncio
    async def test_send_json(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send_json({"name": "test"})
        lines, body = split_request(ok_backend.last_connection.written_data)
        assert b"Content-Type: application/json" in lines
        assert json.loads(body) == {"name": "test"}

    @pytest.mark.asyncio
    async def test_stream_source(self, ok_backend, mock_stream):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        request.set_header("Content-Length", "10")
        await request.send_with_body(mock_stream([b"01234", b"56789", b"extra"]))
        _, body = split_request(ok_backend.last_connection.written_data)
        assert body == b"0123456789"

    @pytest.mark.asyncio
    async def test_short_source_fails(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        request.set_header("Content-Length", "10")
        with pytest.raises(InvalidInputError):
            await request.send_with_body(b"short")
        assert ok_backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_limit_below_content_length_fails_before_writing(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        request.set_body_limit(4)
        with pytest.raises(LimitExceededError):
            await request.send_bytes(b"hello")
        assert ok_backend.connections == []

    @pytest.mark.asyncio
    async def test_limit_equal_to_content_length_is_allowed(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        request.set_body_limit(5)
        await request.send_bytes(b"hello")
        assert ok_backend.last_connection.written_data.endswith(b"\r\n\r\nhello")

    @pytest.mark.asyncio
    async def test_chunked_limit(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        request.set_body_limit(10)
        with pytest.raises(LimitExceededError):
            await request.send_with_body(b"x" * 20)
        assert ok_backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_invalid_content_length(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_header("Content-Length", "ten")
        with pytest.raises(InvalidInputError):
            await request.send()
        assert ok_backend.connections == []

    @pytest.mark.asyncio
    async def test_http09_writes_body_unframed(self, ok_backend):
        request = Request.parse_url("http://example.com/legacy", backend=ok_backend)
        request.set_version(Version.HTTP_0_9)
        request.set_method(Method.POST)
        request.set_header("Content-Length", "1")
        await request.send_with_body([b"abc", b"def"])
        assert ok_backend.last_connection.written_data == b"GET /legacy\r\nabcdef"

    @pytest.mark.asyncio
    async def test_body_is_flushed(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_method(Method.POST)
        await request.send_bytes(b"hello")
        stream = ok_backend.last_connection
        assert stream.flushed_data == stream.written_data


class TestRequestErrors:
    """Test failure mapping and connection release."""

    @pytest.mark.asyncio
    async def test_illegal_header_value(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_header("X-Injected", "a\r\nEvil: yes")
        with pytest.raises(InvalidHeaderError):
            await request.send()
        assert ok_backend.connections == []

    @pytest.mark.asyncio
    async def test_illegal_header_name(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_header("Bad Name", "value")
        with pytest.raises(InvalidHeaderError):
            await request.send()

    @pytest.mark.asyncio
    async def test_resolve_failure(self, ok_backend):
        ok_backend.fail_resolve = True
        with pytest.raises(UnableToConnectError):
            await Request.parse_url("http://example.com/", backend=ok_backend).send()

    @pytest.mark.asyncio
    async def test_malformed_relay(self, ok_backend):
        request = Request.parse_url("http://example.com/", backend=ok_backend)
        request.set_relay("no-port-here")
        with pytest.raises(UnableToConnectError):
            await request.send()

    @pytest.mark.asyncio
    async def test_connect_failure(self, ok_backend):
        ok_backend.fail_connect = True
        with pytest.raises(UnableToConnectError):
            await Request.parse_url("http://example.com/", backend=ok_backend).send()

    @pytest.mark.asyncio
    async def test_tls_failure_closes_stream(self, ok_backend):
        ok_backend.fail_tls = True
        with pytest.raises(UnableToConnectError):
            await Request.parse_url("https://example.com/", backend=ok_backend).send()
        assert ok_backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_write_failure_closes_stream(self, make_response):
        backend = FlakyBackend(make_response(), fail_write=True)
        with pytest.raises(UnableToWriteError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, make_response, caplog):
        backend = FlakyBackend(make_response(), fail_write=True)
        caplog.set_level(logging.ERROR, logger="async_fetch.request")
        with pytest.raises(UnableToWriteError):
            await Request.parse_url("http://example.com/path", backend=backend).send()
        assert "GET /path failed" in caplog.text

    @pytest.mark.asyncio
    async def test_flush_failure(self, make_response):
        backend = FlakyBackend(make_response(), fail_flush=True)
        with pytest.raises(UnableToWriteError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_read_failure(self, make_response):
        backend = FlakyBackend(make_response(), fail_read=True)
        with pytest.raises(UnableToReadError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_connection_closed_before_response(self):
        backend = MockNetworkBackend(b"")
        with pytest.raises(UnableToReadError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_non_utf8_header(self, make_response):
        backend = MockNetworkBackend(make_response(headers=[(b"X-Bad", b"\xff\xfe")]))
        with pytest.raises(InvalidHeaderError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_unsupported_transfer_encoding(self, make_response):
        backend = MockNetworkBackend(make_response(headers=[(b"Transfer-Encoding", b"gzip")]))
        with pytest.raises(InvalidHeaderError):
            await Request.parse_url("http://example.com/", backend=backend).send()

    @pytest.mark.asyncio
    async def test_invalid_status(self, make_response):
        backend = MockNetworkBackend(make_response(status_line=b"HTTP/1.1 2x0 OK"))
        with pytest.raises(InvalidStatusError):
            await Request.parse_url("http://example.com/", backend=backend).send()

    @pytest.mark.asyncio
    async def test_truncated_status_line(self, make_response):
        backend = MockNetworkBackend(make_response(status_line=b"HTTP/1.1"))
        with pytest.raises(InvalidStatusError):
            await Request.parse_url("http://example.com/", backend=backend).send()
        assert backend.last_connection.is_closed

    @pytest.mark.asyncio
    async def test_invalid_version(self, make_response):
        backend = MockNetworkBackend(make_response(status_line=b"HTTP/2 200 OK"))
        with pytest.raises(InvalidVersionError):
            await Request.parse_url("http://example.com/", backend=backend).send()
