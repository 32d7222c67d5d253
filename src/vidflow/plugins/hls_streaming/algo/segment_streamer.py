"""SegmentStreamer - batched fetch-and-upload of HLS segments.

Segments are piped from the HTTP response straight into object storage, so a
segment is never held in memory as a whole. Batches of ``concurrency_limit``
segments run concurrently and batches run one after another; the first failure
cancels the rest of its batch and no later batch is started.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from typing import Final

import httpx
from loguru import logger

from ....common.errors import (
    ErrorCode,
    FetchError,
    SegmentFetchError,
    SegmentTooLargeError,
    StorageUploadError,
    VidflowError,
)
from ....common.object_storage import ObjectStorage, SavedObject
from ....utils.fetch import DEFAULT_TIMEOUT_SECONDS, open_stream
from .playlist_parser import segment_basename

SEGMENT_CONTENT_TYPE: Final[str] = "video/MP2T"
MANIFEST_CONTENT_TYPE: Final[str] = "application/vnd.apple.mpegurl"
DEFAULT_CONCURRENCY_LIMIT: Final[int] = 5


class SegmentStreamer:
    def __init__(
        self,
        client: httpx.AsyncClient,
        storage: ObjectStorage,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        max_segment_size_bytes: int | None = None,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self._client: httpx.AsyncClient = client
        self._storage: ObjectStorage = storage
        self._timeout: float = timeout
        self._concurrency_limit: int = concurrency_limit
        self._max_segment_size_bytes: int | None = max_segment_size_bytes

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    async def stream_manifest(self, content: str, storage_path: str) -> SavedObject:
        data = content.encode("utf-8")

        async def chunks() -> AsyncIterator[bytes]:
            yield data

        try:
            saved = await self._storage.upload_stream(
                storage_path, chunks(), content_type=MANIFEST_CONTENT_TYPE
            )
        except Exception as exc:
            raise StorageUploadError(
                "Failed to upload manifest",
                context={"storage_path": storage_path},
                source="hls_streaming/segment_streamer.stream_manifest",
            ) from exc

        logger.bind(storage_path=storage_path).info("Manifest uploaded")
        return saved

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def stream_all(
        self,
        segment_urls: Iterable[str],
        base_storage_path: str,
        concurrency_limit: int | None = None,
        max_segment_size_bytes: int | None = None,
    ) -> list[SavedObject]:
        """Stream every segment to ``{base_storage_path}/{basename}``.

        Returns:
            Saved objects in the order of ``segment_urls``

        Raises:
            VidflowError: the first segment failure; remaining work is abandoned
        """
        limit = self._concurrency_limit if concurrency_limit is None else concurrency_limit
        if limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        max_size = (
            self._max_segment_size_bytes
            if max_segment_size_bytes is None
            else max_segment_size_bytes
        )

        urls = list(segment_urls)
        saved: list[SavedObject] = []

        for start in range(0, len(urls), limit):
            batch = urls[start : start + limit]
            tasks = [
                asyncio.create_task(self.stream_segment(url, base_storage_path, max_size))
                for url in batch
            ]
            try:
                saved.extend(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    _ = task.cancel()
                _ = await asyncio.gather(*tasks, return_exceptions=True)
                raise

            logger.bind(storage_path=base_storage_path).debug(
                f"Segment batch done: {start + len(batch)}/{len(urls)}"
            )

        logger.bind(storage_path=base_storage_path).info(f"Streamed {len(saved)} segments")
        return saved

    async def stream_segment(
        self,
        url: str,
        base_storage_path: str,
        max_segment_size_bytes: int | None = None,
    ) -> SavedObject:
        path = f"{base_storage_path}/{segment_basename(url)}"
        context = {"url": url, "storage_path": path}

        try:
            async with open_stream(self._client, url, timeout=self._timeout) as response:
                self._check_declared_size(response, url, max_segment_size_bytes)
                body = self._body(response, url, max_segment_size_bytes)
                try:
                    return await self._storage.upload_stream(
                        path, body, content_type=SEGMENT_CONTENT_TYPE
                    )
                except asyncio.CancelledError:
                    await self._cleanup(path, None)
                    raise
                except Exception as upload_exc:
                    await self._cleanup(path, upload_exc)
                    if isinstance(upload_exc, VidflowError):
                        raise
                    raise StorageUploadError(
                        "Failed to upload segment",
                        context=context,
                        source="hls_streaming/segment_streamer.stream_segment",
                    ) from upload_exc
        except FetchError as exc:
            raise SegmentFetchError.wrap(
                exc,
                "Failed to fetch segment",
                error_code=exc.error_code,
                context=context,
                source="hls_streaming/segment_streamer.stream_segment",
            ) from exc

    @staticmethod
    def _check_declared_size(response: httpx.Response, url: str, max_size: int | None) -> None:
        if max_size is None:
            return
        declared = response.headers.get("Content-Length")
        if declared is not None and declared.isdigit() and int(declared) > max_size:
            raise SegmentTooLargeError(
                "Segment exceeds maximum size",
                context={"url": url, "content_length": int(declared), "max_size": max_size},
                source="hls_streaming/segment_streamer",
            )

    @staticmethod
    async def _body(
        response: httpx.Response, url: str, max_size: int | None
    ) -> AsyncIterator[bytes]:
        received = 0
        try:
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if max_size is not None and received > max_size:
                    raise SegmentTooLargeError(
                        "Segment exceeds maximum size",
                        context={"url": url, "received": received, "max_size": max_size},
                        source="hls_streaming/segment_streamer",
                    )
                yield chunk
        except httpx.HTTPError as exc:
            raise SegmentFetchError(
                "Segment stream interrupted",
                error_code=(
                    ErrorCode.NETWORK_TIMEOUT
                    if isinstance(exc, httpx.TimeoutException)
                    else ErrorCode.NETWORK_ERROR
                ),
                should_retry=True,
                context={"url": url, "received": received},
                source="hls_streaming/segment_streamer",
            ) from exc

        if received == 0:
            raise SegmentFetchError(
                "Empty segment response",
                error_code=ErrorCode.EMPTY_RESPONSE,
                context={"url": url},
                source="hls_streaming/segment_streamer",
            )

    async def _cleanup(self, path: str, error: BaseException | None) -> None:
        try:
            await self._storage.delete(path)
        except Exception as delete_exc:
            logger.bind(
                storage_path=path,
                error=str(error) if error is not None else "cancelled",
                cleanup_error=str(delete_exc),
            ).error("Failed to delete partial segment upload")
