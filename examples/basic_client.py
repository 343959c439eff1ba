"""
Basic HTTP/1.x client example using async_fetch.

This example sends a few requests to httpbin.org: a plain GET, a JSON
POST, a chunked upload streamed from a generator and a GET over TLS.
"""

import asyncio
import logging

from async_fetch import FetchError, Method, Request, Version

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def simple_get_request():
    """Demonstrate a simple GET request."""
    logger.info("Making simple GET request...")

    request = Request.parse_url("http://httpbin.org/get?source=async_fetch", timeout=10)
    request.set_header("Accept", "application/json")
    logger.info(f"Request head:\n{request}")

    async with await request.send() as response:
        logger.info(f"Response status: {response.status.value} {response.reason}")
        body = await response.recv_json()
        logger.info(f"Server saw args: {body.get('args')}")


async def post_json_request():
    """Demonstrate a POST request with a JSON body."""
    logger.info("Making POST request with body...")

    request = Request.parse_url("http://httpbin.org/post", timeout=10)
    request.set_method(Method.POST)
    response = await request.send_json({"message": "Hello, World!"})

    body = await response.recv_json()
    if body.get("json") == {"message": "Hello, World!"}:
        logger.info("Our data was received by the server")


async def chunked_upload():
    """Demonstrate streaming a body of unknown length."""
    logger.info("Streaming a chunked upload...")

    async def generate_lines():
        for index in range(5):
            yield f"line {index}\n".encode("utf-8")
            await asyncio.sleep(0.01)

    request = Request.parse_url("http://httpbin.org/put", timeout=10)
    request.set_method(Method.PUT)
    request.set_header("Content-Type", "text/plain")
    request.set_body_limit(1024)
    response = await request.send_with_body(generate_lines())

    logger.info(f"Request went out with Transfer-Encoding: {request.header('Transfer-Encoding')}")
    body = await response.recv_json()
    logger.info(f"Server received {len(body.get('data', ''))} bytes")


async def tls_request():
    """Demonstrate an HTTPS request with a response body limit."""
    logger.info("Making HTTPS request...")

    request = Request.parse_url("https://httpbin.org/bytes/2048", timeout=10)
    request.set_version(Version.HTTP_1_1)
    response = await request.send()
    response.set_body_limit(4096)

    data = await response.recv()
    logger.info(f"Read {len(data)} bytes over TLS")


async def main():
    """Run all examples."""
    logger.info("Starting async_fetch examples...")

    try:
        await simple_get_request()
        await post_json_request()
        await chunked_upload()
        await tls_request()
    except FetchError as e:
        logger.error(f"Example failed ({e.kind.name}): {e}")
        raise

    logger.info("All examples completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
