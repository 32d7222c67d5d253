from __future__ import annotations

import shutil
from collections.abc import AsyncIterable
from os import PathLike
from pathlib import Path
from typing import Final

from typing_extensions import override
import aiofiles
import aiofiles.os

from .object_storage import ObjectStorage, SavedObject


class LocalObjectStorage(ObjectStorage):
    """
    Local filesystem implementation of ObjectStorage.

    Layout:
        base_dir/
            <path>

    Used in development and tests in place of the GCS bucket.
    """

    _CHUNK_SIZE: Final[int] = 1024 * 1024  # 1 MB

    def __init__(self, base_dir: str | PathLike[str], base_url: str | None = None):
        self._base_dir: Path = Path(base_dir).expanduser().resolve()
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._base_url: str = (base_url or self._base_dir.as_uri()).rstrip("/")

    def _safe_path(self, path: str) -> Path:
        """Resolve a bucket-relative path, rejecting traversal."""
        resolved = (self._base_dir / path).resolve()
        if self._base_dir not in resolved.parents:
            raise ValueError("Invalid object path (path traversal detected)")
        return resolved

    def resolve_path(self, path: str) -> Path:
        return self._safe_path(path)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    @override
    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterable[bytes],
        *,
        content_type: str | None = None,
    ) -> SavedObject:
        dst = self._safe_path(path)
        dst.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        async with aiofiles.open(dst, "wb") as f:
            async for chunk in chunks:
                _ = await f.write(chunk)
                size += len(chunk)

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
        src = Path(local_path).expanduser().resolve()
        if not src.is_file():
            raise FileNotFoundError(src)

        dst = self._safe_path(path)
        dst.parent.mkdir(parents=True, exist_ok=True)
        _ = shutil.copyfile(src, dst)
        return SavedObject(path=path, size=dst.stat().st_size, content_type=content_type)

    @override
    async def delete(self, path: str) -> None:
        dst = self._safe_path(path)
        if await aiofiles.os.path.exists(dst):
            await aiofiles.os.remove(dst)

    # ------------------------------------------------------------------
    # Resolving
    # ------------------------------------------------------------------

    @override
    def public_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"
