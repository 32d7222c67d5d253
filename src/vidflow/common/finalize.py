"""VideoFinalizer - completes a task and publishes the video in one transaction."""

import secrets
import string

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .database import SessionFactory
from .errors import DatabaseError, VideoNotFoundError
from .models import NotificationRow, VideoRow
from .task_store import TaskStore
from .videos import VideoUpdate

SHORT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
SHORT_ID_LENGTH = 11


def generate_short_id(length: int = SHORT_ID_LENGTH) -> str:
    return "".join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(length))


class NotificationInput(BaseModel):
    type: str = "video-ready"
    user_id: str


class VideoFinalizer:
    def __init__(self, session_factory: SessionFactory, store: TaskStore):
        self._sessions: SessionFactory = session_factory
        self.store: TaskStore = store

    async def finish_video_process(
        self,
        task_id: str,
        notification: NotificationInput,
        video_id: str,
        video_updates: VideoUpdate,
    ) -> None:
        """Mark the task completed, update the video and notify its owner.

        A video that becomes ``ready`` without a short id gets one assigned.

        Raises:
            VideoNotFoundError: the video row does not exist (nothing is written)
            DatabaseError: any persistence failure (nothing is written)
        """
        log = logger.bind(task_id=task_id, video_id=video_id)
        try:
            async with self._sessions() as session, session.begin():
                video = (
                    await session.execute(
                        select(VideoRow).where(VideoRow.id == video_id).with_for_update()
                    )
                ).scalar_one_or_none()
                if video is None:
                    raise VideoNotFoundError(
                        "Video not found",
                        context={"video_id": video_id, "task_id": task_id},
                        source="common/finalize.finish_video_process",
                    )

                for column, value in video_updates.model_dump(exclude_none=True).items():
                    setattr(video, column, value)
                if video.status == "ready" and not video.s_id:
                    video.s_id = generate_short_id()

                await self.store.complete(task_id, session=session)

                session.add(
                    NotificationRow(
                        user_id=notification.user_id,
                        type=notification.type,
                        entity_id=video_id,
                        entity_type="video",
                    )
                )
        except SQLAlchemyError as exc:
            raise DatabaseError(
                "Failed to finalize video",
                context={"video_id": video_id, "task_id": task_id},
                source="common/finalize.finish_video_process",
            ) from exc

        log.info("Video finalized")
