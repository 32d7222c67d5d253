"""ThumbnailExtractor - download a clip, grab one frame, upload it."""

import asyncio
import shutil
import tempfile
import time
from pathlib import Path
from typing import ClassVar

import aiofiles
import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict

from ...common.errors import ThumbnailError
from ...common.object_storage import ObjectStorage
from ...utils.fetch import DEFAULT_TIMEOUT_SECONDS, open_stream
from .algo.video_frame import frame_timestamp, video_frame

THUMBNAIL_CONTENT_TYPE = "image/jpeg"
SEGMENT_INPUT_NAME = "input.ts"
VIDEO_INPUT_NAME = "input_video_file"


class ThumbnailOutcome(BaseModel):
    """Either the storage path of the thumbnail or the error that prevented it."""

    path: str | None = None
    error: ThumbnailError | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(arbitrary_types_allowed=True)

    @property
    def ok(self) -> bool:
        return self.path is not None


class ThumbnailExtractor:
    def __init__(
        self,
        client: httpx.AsyncClient,
        storage: ObjectStorage,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        scratch_root: str | Path | None = None,
    ):
        self._client: httpx.AsyncClient = client
        self._storage: ObjectStorage = storage
        self._timeout: float = timeout
        self._scratch_root: str | None = str(scratch_root) if scratch_root is not None else None

    async def extract(
        self,
        source_url: str,
        duration_seconds: float,
        storage_path: str,
        is_segment_input: bool = False,
    ) -> str:
        """Produce and upload a preview frame.

        Returns:
            Storage path ``{storage_path}/thumbnail--<ms>.jpg``

        Raises:
            ThumbnailError: download, ffmpeg or upload failed
        """
        scratch = Path(tempfile.mkdtemp(prefix="vidflow-thumb-", dir=self._scratch_root))
        input_path = scratch / (SEGMENT_INPUT_NAME if is_segment_input else VIDEO_INPUT_NAME)
        filename = f"thumbnail--{int(time.time() * 1000)}.jpg"
        output_path = scratch / filename
        object_path = f"{storage_path}/{filename}"

        try:
            await self._download(source_url, input_path)
            _ = await asyncio.to_thread(
                video_frame,
                input_path=input_path,
                output_path=output_path,
                timestamp_seconds=frame_timestamp(duration_seconds),
            )
            _ = await self._storage.upload_file(
                object_path, output_path, content_type=THUMBNAIL_CONTENT_TYPE
            )
        except Exception as exc:
            raise ThumbnailError.wrap(
                exc,
                "Failed to generate thumbnail",
                context={"source_url": source_url, "storage_path": storage_path},
                source="media_thumbnail/extractor.extract",
            ) from exc
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        logger.bind(source_url=source_url, storage_path=object_path).info("Thumbnail uploaded")
        return object_path

    async def try_extract(
        self,
        source_url: str,
        duration_seconds: float,
        storage_path: str,
        is_segment_input: bool = False,
    ) -> ThumbnailOutcome:
        """Like extract(), but a failure comes back as a value instead of an exception."""
        try:
            path = await self.extract(source_url, duration_seconds, storage_path, is_segment_input)
        except ThumbnailError as exc:
            return ThumbnailOutcome(error=exc)
        return ThumbnailOutcome(path=path)

    async def _download(self, url: str, destination: Path) -> None:
        async with open_stream(self._client, url, timeout=self._timeout) as response:
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.aiter_bytes():
                    _ = await f.write(chunk)
