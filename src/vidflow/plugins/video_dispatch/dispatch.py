"""Gateway side: pick the queue and handler for a video and dispatch the task."""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...common.config import Settings
from ...common.database import SessionFactory
from ...common.dispatcher import TaskDispatcher
from ...common.errors import ConfigurationError, DatabaseError
from ...common.models import VideoRow
from ...common.schema_task import DispatchRequest, TaskEntityType, TaskType
from .media_source import URL_PATTERNS, classify_media_url
from .schema import DispatchResult, TaskTarget, VideoEvent

HLS_HANDLER = "/videos/stream-hls-handler"
CONVERT_HANDLER = "/videos/convert-handler"
PLATFORM_IMPORT_HANDLER = "/videos/import-platform-handler"
FIX_DURATION_HANDLER = "/videos/fix-duration"
FIX_THUMBNAIL_HANDLER = "/videos/fix-thumbnail"


def _require(value: str | None, name: str) -> str:
    if not value:
        raise ConfigurationError(
            f"Missing required environment variables: {name}",
            context={"missing": [name]},
            source="video_dispatch/dispatch",
        )
    return value


def build_task_target(
    file_type: str | None,
    platform: str | None,
    settings: Settings,
) -> TaskTarget | None:
    """Route a video to its handler. Returns None for an unsupported source."""
    if file_type == "hls":
        io_url = _require(settings.io_service_url, "IO_SERVICE_URL")
        return TaskTarget(
            queue=settings.stream_video_queue,
            audience=io_url,
            url=f"{io_url}{HLS_HANDLER}",
            task_type=TaskType.stream_hls,
        )

    if file_type == "video":
        compute_url = _require(settings.compute_service_url, "COMPUTE_SERVICE_URL")
        return TaskTarget(
            queue=settings.convert_video_queue,
            audience=compute_url,
            url=f"{compute_url}{CONVERT_HANDLER}",
            task_type=TaskType.convert,
        )

    if platform is not None and platform in URL_PATTERNS:
        io_url = _require(settings.io_service_url, "IO_SERVICE_URL")
        return TaskTarget(
            queue=settings.stream_video_queue,
            audience=io_url,
            url=f"{io_url}{PLATFORM_IMPORT_HANDLER}",
            task_type=TaskType.import_platform,
        )

    return None


async def dispatch_video_event(
    event: VideoEvent,
    dispatcher: TaskDispatcher,
    settings: Settings,
) -> DispatchResult:
    data = event.data
    log = logger.bind(event_id=event.metadata.id, video_id=data.id)

    if data.skip_process:
        log.info("Skip process")
        return DispatchResult(success=True, message="ok")

    source = classify_media_url(data.video_url)
    target = build_task_target(source.file_type, source.platform, settings)
    if target is None:
        log.bind(video_url=data.video_url).error("Invalid source")
        return DispatchResult(success=False, message="Invalid source")

    handle = await dispatcher.dispatch(
        DispatchRequest(
            queue_name=target.queue,
            audience_url=target.audience,
            target_url=target.url,
            entity_type=TaskEntityType.video,
            entity_id=data.id,
            task_type=target.task_type,
            payload={
                "id": data.id,
                "user_id": data.user_id,
                "video_url": data.video_url,
                "keep_original_source": data.keep_original_source,
                "metadata": event.metadata.model_dump(),
            },
        )
    )
    if handle is None:
        return DispatchResult(success=True, message="already completed")

    log.bind(task_name=handle.name).info("Video task created successfully")
    return DispatchResult(success=True, message="ok", task_name=handle.name, dispatched=1)


async def dispatch_video_repairs(
    task_type: TaskType,
    session_factory: SessionFactory,
    dispatcher: TaskDispatcher,
    settings: Settings,
) -> DispatchResult:
    """Queue a fix task for every ready video missing a duration or thumbnail."""
    if task_type == TaskType.fix_duration:
        missing = VideoRow.duration.is_(None)
        handler = FIX_DURATION_HANDLER
    elif task_type == TaskType.fix_thumbnail:
        missing = VideoRow.thumbnail_url.is_(None)
        handler = FIX_THUMBNAIL_HANDLER
    else:
        raise ValueError(f"Not a repair task type: {task_type.value}")

    io_url = _require(settings.io_service_url, "IO_SERVICE_URL")

    try:
        async with session_factory() as session:
            video_ids = list(
                (
                    await session.execute(
                        select(VideoRow.id).where(VideoRow.status == "ready", missing)
                    )
                ).scalars()
            )
    except SQLAlchemyError as exc:
        raise DatabaseError(
            "Failed to list videos to repair",
            context={"task_type": task_type.value},
            source="video_dispatch/dispatch.dispatch_video_repairs",
        ) from exc

    dispatched = 0
    for video_id in video_ids:
        handle = await dispatcher.dispatch(
            DispatchRequest(
                queue_name=settings.stream_video_queue,
                audience_url=io_url,
                target_url=f"{io_url}{handler}",
                entity_type=TaskEntityType.video,
                entity_id=video_id,
                task_type=task_type,
                payload={"id": video_id},
            )
        )
        if handle is not None:
            dispatched += 1

    logger.bind(task_type=task_type.value).info(
        f"Queued {dispatched} repair tasks for {len(video_ids)} videos"
    )
    return DispatchResult(success=True, message="ok", dispatched=dispatched)
