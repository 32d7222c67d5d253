"""
ObjectStorage Protocol - interface for the bucket that receives HLS output.

Design goals:
- Callers address objects only by bucket-relative path
- Bodies are streamed, never buffered whole
- Files produced by ffmpeg can be uploaded straight from disk
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from os import PathLike
from typing import ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class SavedObject(BaseModel):
    """Metadata of an uploaded object."""

    path: str = Field(
        ...,
        description="Object path relative to the bucket root",
    )
    size: int = Field(
        ...,
        ge=0,
        description="Object size in bytes",
    )
    content_type: str | None = Field(
        None,
        description="MIME type the object was stored with",
    )

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Storage Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ObjectStorage(Protocol):
    """
    Protocol for the output bucket.

    Implementations own:
    - bucket / root directory
    - upload mechanics (resumable, chunked)
    - public url layout
    """

    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterable[bytes],
        *,
        content_type: str | None = None,
    ) -> SavedObject:
        """
        Write an object from an async byte stream.

        Must raise if the object could not be written completely. A partial
        object may remain; callers are expected to delete it.
        """
        ...

    async def upload_file(
        self,
        path: str,
        local_path: str | PathLike[str],
        *,
        content_type: str | None = None,
        resumable: bool = False,
    ) -> SavedObject:
        """Upload a file from the local filesystem."""
        ...

    async def delete(self, path: str) -> None:
        """Delete an object. Missing objects are not an error."""
        ...

    def public_url(self, path: str) -> str:
        """Public URL under which the object is served."""
        ...
