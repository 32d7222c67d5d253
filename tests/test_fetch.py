"""Tests for the HTTP fetch helpers and their error mapping."""

import httpx
import pytest

from vidflow.common.errors import (
    ClientError,
    ErrorCode,
    FetchTimeoutError,
    NetworkError,
    ServerError,
)
from vidflow.utils.fetch import fetch_text, open_stream

from helpers import FakeOrigin

URL = "https://cdn.example.com/v1/index.m3u8"


@pytest.mark.asyncio
async def test_fetch_text(http_client: httpx.AsyncClient, origin: FakeOrigin):
    origin.add_text(URL, "#EXTM3U\n")

    assert await fetch_text(http_client, URL) == "#EXTM3U\n"


@pytest.mark.asyncio
async def test_server_error_is_retryable(http_client: httpx.AsyncClient, origin: FakeOrigin):
    origin.add_status(URL, 502)

    with pytest.raises(ServerError) as exc_info:
        _ = await fetch_text(http_client, URL)

    assert exc_info.value.should_retry is True
    assert exc_info.value.context == {"url": URL, "status_code": 502}


@pytest.mark.asyncio
async def test_client_error_is_not_retryable(http_client: httpx.AsyncClient, origin: FakeOrigin):
    origin.add_status(URL, 403)

    with pytest.raises(ClientError) as exc_info:
        _ = await fetch_text(http_client, URL)

    assert exc_info.value.should_retry is False
    assert exc_info.value.error_code == ErrorCode.CLIENT_ERROR


@pytest.mark.asyncio
async def test_timeout_is_distinguished(http_client: httpx.AsyncClient, origin: FakeOrigin):
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    origin.add(URL, timeout)

    with pytest.raises(FetchTimeoutError) as exc_info:
        _ = await fetch_text(http_client, URL)

    assert exc_info.value.error_code == ErrorCode.NETWORK_TIMEOUT
    assert exc_info.value.should_retry is True


@pytest.mark.asyncio
async def test_connection_failure_is_network_error(
    http_client: httpx.AsyncClient, origin: FakeOrigin
):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    origin.add(URL, refuse)

    with pytest.raises(NetworkError):
        _ = await fetch_text(http_client, URL)


@pytest.mark.asyncio
async def test_open_stream_checks_status_before_yielding(
    http_client: httpx.AsyncClient, origin: FakeOrigin
):
    origin.add_status(URL, 404)

    with pytest.raises(ClientError):
        async with open_stream(http_client, URL):
            pytest.fail("a failed response must not be yielded")


@pytest.mark.asyncio
async def test_open_stream_yields_body(http_client: httpx.AsyncClient, origin: FakeOrigin):
    origin.add_bytes(URL, b"0123456789")

    async with open_stream(http_client, URL) as response:
        body = b"".join([chunk async for chunk in response.aiter_bytes()])

    assert body == b"0123456789"
