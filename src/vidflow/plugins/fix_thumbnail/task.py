"""Fix-thumbnail task: regenerate a video's thumbnail from its first segment."""

from typing_extensions import override

from loguru import logger
from pydantic import Field

from ...common.errors import EmptyContentError, ErrorCode, VidflowError
from ...common.schema_task import TaskType
from ...common.task_handler import TaskHandler, TaskOutput, TaskParams, TaskServices
from ...common.videos import VideoUpdate, get_video, update_video_and_complete, video_storage_path
from ..hls_streaming.algo.playlist_parser import parse
from ..media_thumbnail.extractor import ThumbnailExtractor


class FixThumbnailParams(TaskParams):
    id: str = Field(description="Video id")


class FixThumbnailOutput(TaskOutput):
    task_id: str
    thumbnail_url: str


class FixThumbnailTask(TaskHandler[FixThumbnailParams, FixThumbnailOutput]):
    schema: type[FixThumbnailParams] = FixThumbnailParams

    @property
    @override
    def task_type(self) -> str:
        return TaskType.fix_thumbnail.value

    @override
    async def run(
        self,
        task_id: str,
        params: FixThumbnailParams,
        services: TaskServices,
    ) -> FixThumbnailOutput:
        log = logger.bind(task_id=task_id, video_id=params.id)
        log.info("Start fixing thumbnail")

        settings = services.settings
        video = await get_video(
            services.session_factory, params.id, error_code=ErrorCode.FIX_THUMBNAIL_ERROR
        )
        parsed = await parse(
            services.http_client,
            video.source,
            settings.compiled_exclude_patterns(),
            timeout=settings.request_timeout_seconds,
        )
        if not parsed.segments.included:
            raise EmptyContentError(
                "Empty HLS content",
                context={"video_id": params.id, "source": video.source},
                source="fix_thumbnail/task.run",
            )

        first = parsed.segments.included[0]
        extractor = ThumbnailExtractor(
            services.http_client,
            services.storage,
            timeout=settings.request_timeout_seconds,
        )
        # unlike stream_hls, a missing thumbnail is the failure of this task
        path = await extractor.extract(
            first.url,
            first.duration,
            video_storage_path(video.user_id, video.id),
            is_segment_input=True,
        )
        thumbnail_url = services.storage.public_url(path)

        try:
            await update_video_and_complete(
                services.session_factory,
                services.store,
                params.id,
                task_id,
                VideoUpdate(thumbnail_url=thumbnail_url),
            )
        except VidflowError as exc:
            raise VidflowError.wrap(
                exc,
                "Generate thumbnail failed",
                error_code=ErrorCode.FIX_THUMBNAIL_ERROR,
                should_retry=True,
                context={"video_id": params.id, "task_id": task_id},
                source="fix_thumbnail/task.run",
            ) from exc

        log.bind(thumbnail_url=thumbnail_url).info("Thumbnail fixed")
        return FixThumbnailOutput(task_id=task_id, thumbnail_url=thumbnail_url)
