"""ObjectStorage backed by a Google Cloud Storage bucket.

The google-cloud-storage client is synchronous; every blocking call is pushed to
a worker thread so the event loop keeps streaming other segments.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable
from os import PathLike
from pathlib import Path
from typing import Final

from typing_extensions import override
from google.api_core.exceptions import NotFound
from google.cloud import storage
from loguru import logger

from .object_storage import ObjectStorage, SavedObject

PUBLIC_BASE_URL: Final[str] = "https://storage.googleapis.com"


class GCSObjectStorage(ObjectStorage):
    _CHUNK_SIZE: Final[int] = 8 * 1024 * 1024  # multiple of 256 KB, required for resumable uploads

    def __init__(self, bucket_name: str, client: storage.Client | None = None):
        self._client: storage.Client = client or storage.Client()
        self._bucket_name: str = bucket_name
        self._bucket: storage.Bucket = self._client.bucket(bucket_name)

    @override
    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterable[bytes],
        *,
        content_type: str | None = None,
    ) -> SavedObject:
        blob = self._bucket.blob(path)
        writer = await asyncio.to_thread(blob.open, "wb", content_type=content_type)

        size = 0
        try:
            async for chunk in chunks:
                _ = await asyncio.to_thread(writer.write, chunk)
                size += len(chunk)
        finally:
            # closing finalizes the upload; on error the object may be partial
            await asyncio.to_thread(writer.close)

        return SavedObject(path=path, size=size, content_type=content_type)

    @override
    async def upload_file(
        self,
        path: str,
        local_path: str | PathLike[str],
        *,
        content_type: str | None = None,
        resumable: bool = False,
    ) -> SavedObject:
        src = Path(local_path)
        blob = self._bucket.blob(path, chunk_size=self._CHUNK_SIZE if resumable else None)
        await asyncio.to_thread(blob.upload_from_filename, str(src), content_type=content_type)
        return SavedObject(path=path, size=src.stat().st_size, content_type=content_type)

    @override
    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._bucket.blob(path).delete)
        except NotFound:
            logger.bind(path=path, bucket=self._bucket_name).debug("Object already absent")

    @override
    def public_url(self, path: str) -> str:
        return f"{PUBLIC_BASE_URL}/{self._bucket_name}/{path.lstrip('/')}"
