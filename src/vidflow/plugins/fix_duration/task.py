"""Fix-duration task: recompute a video's duration from its published manifest."""

from typing_extensions import override

from loguru import logger
from pydantic import Field

from ...common.errors import ErrorCode, VidflowError
from ...common.schema_task import TaskType
from ...common.task_handler import TaskHandler, TaskOutput, TaskParams, TaskServices
from ...common.videos import VideoUpdate, get_video, update_video_and_complete
from ..hls_streaming.algo.playlist_parser import parse


class FixDurationParams(TaskParams):
    id: str = Field(description="Video id")


class FixDurationOutput(TaskOutput):
    task_id: str
    duration: int


class FixDurationTask(TaskHandler[FixDurationParams, FixDurationOutput]):
    schema: type[FixDurationParams] = FixDurationParams

    @property
    @override
    def task_type(self) -> str:
        return TaskType.fix_duration.value

    @override
    async def run(
        self,
        task_id: str,
        params: FixDurationParams,
        services: TaskServices,
    ) -> FixDurationOutput:
        logger.bind(task_id=task_id, video_id=params.id).info("Start fixing duration")
        try:
            video = await get_video(
                services.session_factory, params.id, error_code=ErrorCode.FIX_DURATION_ERROR
            )
            parsed = await parse(
                services.http_client,
                video.source,
                services.settings.compiled_exclude_patterns(),
                timeout=services.settings.request_timeout_seconds,
            )
            await update_video_and_complete(
                services.session_factory,
                services.store,
                params.id,
                task_id,
                VideoUpdate(duration=parsed.total_duration_seconds),
            )
        except VidflowError as exc:
            if exc.error_code == ErrorCode.FIX_DURATION_ERROR:
                raise
            raise VidflowError.wrap(
                exc,
                "Fix duration failed",
                error_code=ErrorCode.FIX_DURATION_ERROR,
                context={"video_id": params.id, "task_id": task_id},
                source="fix_duration/task.run",
            ) from exc

        return FixDurationOutput(task_id=task_id, duration=parsed.total_duration_seconds)
