"""FastAPI routes for the fix-duration handler."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header

from ...common.dispatcher import TASK_ID_HEADER, TaskDispatcher
from ...common.schema_task import TaskType
from ...worker import Worker
from .task import FixDurationOutput, FixDurationParams


def create_router(worker: Worker, dispatcher: TaskDispatcher | None = None) -> APIRouter:
    router = APIRouter()

    @router.post("/videos/fix-duration")
    async def fix_duration_handler(
        params: FixDurationParams,
        task_id: Annotated[UUID, Header(alias=TASK_ID_HEADER)],
    ) -> FixDurationOutput:
        output = await worker.execute(TaskType.fix_duration.value, str(task_id), params.model_dump())
        return FixDurationOutput.model_validate(output.model_dump())

    _ = fix_duration_handler
    return router
