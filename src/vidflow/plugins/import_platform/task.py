"""Import-platform task: publish a platform-hosted video under its own URL."""

from typing_extensions import override

from loguru import logger

from ...common.errors import ImportPlatformError
from ...common.finalize import NotificationInput
from ...common.schema_task import TaskType
from ...common.task_handler import TaskHandler, TaskServices
from ...common.videos import VideoUpdate
from .schema import ImportPlatformOutput, ImportPlatformParams


class ImportPlatformTask(TaskHandler[ImportPlatformParams, ImportPlatformOutput]):
    """Handler for ``import_platform`` tasks.

    Nothing is copied: the platform keeps serving the media, so the video is
    marked ready with the submitted URL as its source.
    """

    schema: type[ImportPlatformParams] = ImportPlatformParams

    @property
    @override
    def task_type(self) -> str:
        return TaskType.import_platform.value

    @override
    async def run(
        self,
        task_id: str,
        params: ImportPlatformParams,
        services: TaskServices,
    ) -> ImportPlatformOutput:
        event_id = params.metadata.id if params.metadata else None
        logger.bind(task_id=task_id, video_id=params.id, event_id=event_id).info(
            "Start importing video from platform"
        )

        try:
            await services.finalizer.finish_video_process(
                task_id=task_id,
                notification=NotificationInput(type="video-ready", user_id=params.user_id),
                video_id=params.id,
                video_updates=VideoUpdate(
                    source=params.video_url,
                    status="ready",
                    thumbnail_url="",
                ),
            )
        except Exception as exc:
            raise ImportPlatformError.wrap(
                exc,
                "Import from platform failed",
                context={
                    "task_id": task_id,
                    "video_id": params.id,
                    "video_url": params.video_url,
                    "event_id": event_id,
                },
                source="import_platform/task.run",
            ) from exc

        return ImportPlatformOutput(playable_video_url=params.video_url)
