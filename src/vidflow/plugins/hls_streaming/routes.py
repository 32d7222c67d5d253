"""FastAPI routes for the HLS stream-to-storage handler."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header

from ...common.dispatcher import TASK_ID_HEADER, TaskDispatcher
from ...common.schema_task import TaskType
from ...worker import Worker
from .schema import StreamHLSOutput, StreamHLSParams


def create_router(worker: Worker, dispatcher: TaskDispatcher | None = None) -> APIRouter:
    """Create router with injected dependencies."""
    router = APIRouter()

    @router.post("/videos/stream-hls-handler")
    async def stream_hls_handler(
        params: StreamHLSParams,
        task_id: Annotated[UUID, Header(alias=TASK_ID_HEADER)],
    ) -> StreamHLSOutput:
        """Copy an HLS stream to storage and publish the video."""
        output = await worker.execute(TaskType.stream_hls.value, str(task_id), params.model_dump())
        return StreamHLSOutput.model_validate(output.model_dump())

    _ = stream_hls_handler
    return router
