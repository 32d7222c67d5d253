"""HTTP fetch helpers that map transport failures onto vidflow errors.

- 5xx responses   -> ServerError (retryable)
- 4xx responses   -> ClientError (not retryable)
- timeouts        -> FetchTimeoutError (retryable)
- other transport -> NetworkError (retryable)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from ..common.errors import ClientError, FetchTimeoutError, NetworkError, ServerError

DEFAULT_TIMEOUT_SECONDS: float = 15.0


def _check_status(response: httpx.Response, url: str) -> None:
    if response.status_code >= 500:
        raise ServerError(
            f"Server error: {response.reason_phrase}",
            context={"url": url, "status_code": response.status_code},
            source="utils/fetch",
        )
    if response.status_code >= 400:
        raise ClientError(
            f"Client error: {response.reason_phrase}",
            context={"url": url, "status_code": response.status_code},
            source="utils/fetch",
        )


def _translate(exc: httpx.HTTPError, url: str) -> Exception:
    if isinstance(exc, httpx.TimeoutException):
        error: Exception = FetchTimeoutError(
            "Request timed out", context={"url": url}, source="utils/fetch"
        )
    else:
        error = NetworkError(
            "Network error while fetching", context={"url": url}, source="utils/fetch"
        )
    error.__cause__ = exc
    return error


@asynccontextmanager
async def open_stream(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> AsyncIterator[httpx.Response]:
    """Open a streamed GET request whose body has not been read yet.

    The status is checked before the response is yielded, so callers only ever
    see successful responses. Errors raised while the caller iterates the body
    are translated as well.
    """
    try:
        async with client.stream("GET", url, timeout=timeout, follow_redirects=True) as response:
            _check_status(response, url)
            yield response
    except httpx.HTTPError as exc:
        raise _translate(exc, url) from exc


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """GET ``url`` and return the decoded body."""
    try:
        response = await client.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise _translate(exc, url) from exc

    _check_status(response, url)
    return response.text
