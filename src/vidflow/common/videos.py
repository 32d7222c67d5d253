"""Queries against the ``videos`` table used by the maintenance handlers."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from .database import SessionFactory
from .errors import DatabaseError, ErrorCode, VideoNotFoundError
from .models import VideoRow
from .task_store import TaskStore


class VideoSnapshot(BaseModel):
    id: str
    user_id: str
    source: str
    status: str
    thumbnail_url: str | None = None
    duration: float | None = None
    s_id: str | None = None


class VideoUpdate(BaseModel):
    """Columns of the video row a handler may change. ``None`` means unchanged."""

    source: str | None = None
    status: str | None = None
    thumbnail_url: str | None = None
    duration: float | None = Field(default=None, ge=0)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


def video_storage_path(user_id: str, video_id: str) -> str:
    return f"videos/{user_id}/{video_id}"


async def get_video(
    session_factory: SessionFactory,
    video_id: str,
    *,
    error_code: ErrorCode = ErrorCode.VIDEO_NOT_FOUND,
) -> VideoSnapshot:
    """Load a video or raise VideoNotFoundError carrying ``error_code``."""
    try:
        async with session_factory() as session:
            row = (
                await session.execute(select(VideoRow).where(VideoRow.id == video_id))
            ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise DatabaseError(
            "Failed to load video",
            context={"video_id": video_id},
            source="common/videos.get_video",
        ) from exc

    if row is None:
        raise VideoNotFoundError(
            "Video not found",
            error_code=error_code,
            context={"video_id": video_id},
            source="common/videos.get_video",
        )
    return VideoSnapshot(
        id=row.id,
        user_id=row.user_id,
        source=row.source,
        status=row.status,
        thumbnail_url=row.thumbnail_url,
        duration=row.duration,
        s_id=row.s_id,
    )


async def update_video_and_complete(
    session_factory: SessionFactory,
    store: TaskStore,
    video_id: str,
    task_id: str,
    updates: VideoUpdate,
) -> None:
    """Apply ``updates`` and complete the task in one transaction."""
    values = updates.model_dump(exclude_none=True)
    try:
        async with session_factory() as session, session.begin():
            if values:
                result = await session.execute(
                    update(VideoRow).where(VideoRow.id == video_id).values(**values)
                )
                if not result.rowcount:
                    raise VideoNotFoundError(
                        "Video not found",
                        context={"video_id": video_id, "task_id": task_id},
                        source="common/videos.update_video_and_complete",
                    )
            await store.complete(task_id, session=session)
    except SQLAlchemyError as exc:
        raise DatabaseError(
            "Failed to update video",
            context={"video_id": video_id, "task_id": task_id},
            source="common/videos.update_video_and_complete",
        ) from exc
