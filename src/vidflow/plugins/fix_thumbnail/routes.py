"""FastAPI routes for the fix-thumbnail handler."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header

from ...common.dispatcher import TASK_ID_HEADER, TaskDispatcher
from ...common.schema_task import TaskType
from ...worker import Worker
from .task import FixThumbnailOutput, FixThumbnailParams


def create_router(worker: Worker, dispatcher: TaskDispatcher | None = None) -> APIRouter:
    router = APIRouter()

    @router.post("/videos/fix-thumbnail")
    async def fix_thumbnail_handler(
        params: FixThumbnailParams,
        task_id: Annotated[UUID, Header(alias=TASK_ID_HEADER)],
    ) -> FixThumbnailOutput:
        output = await worker.execute(TaskType.fix_thumbnail.value, str(task_id), params.model_dump())
        return FixThumbnailOutput.model_validate(output.model_dump())

    _ = fix_thumbnail_handler
    return router
