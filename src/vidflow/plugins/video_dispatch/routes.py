"""FastAPI routes of the gateway: video events in, queued tasks out."""

from fastapi import APIRouter

from ...common.dispatcher import TaskDispatcher
from ...common.errors import ConfigurationError
from ...common.schema_task import TaskType
from ...worker import Worker
from .dispatch import dispatch_video_event, dispatch_video_repairs
from .schema import DispatchResult, VideoEventBody


def create_router(worker: Worker, dispatcher: TaskDispatcher | None = None) -> APIRouter:
    """Create router with injected dependencies."""
    router = APIRouter()
    services = worker.services

    def require_dispatcher() -> TaskDispatcher:
        if dispatcher is None:
            raise ConfigurationError(
                "Task dispatcher is not configured",
                source="video_dispatch/routes",
            )
        return dispatcher

    @router.post("/videos/stream-to-storage")
    async def stream_to_storage(body: VideoEventBody) -> DispatchResult:
        """Route a submitted video to its processing queue."""
        return await dispatch_video_event(body.event, require_dispatcher(), services.settings)

    @router.post("/videos/fix-videos-duration")
    async def fix_videos_duration() -> DispatchResult:
        return await dispatch_video_repairs(
            TaskType.fix_duration, services.session_factory, require_dispatcher(), services.settings
        )

    @router.post("/videos/fix-videos-thumbnail")
    async def fix_videos_thumbnail() -> DispatchResult:
        return await dispatch_video_repairs(
            TaskType.fix_thumbnail, services.session_factory, require_dispatcher(), services.settings
        )

    _ = (stream_to_storage, fix_videos_duration, fix_videos_thumbnail)
    return router
