"""FastAPI routes for the import-platform handler."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header

from ...common.dispatcher import TASK_ID_HEADER, TaskDispatcher
from ...common.schema_task import TaskType
from ...worker import Worker
from .schema import ImportPlatformOutput, ImportPlatformParams


def create_router(worker: Worker, dispatcher: TaskDispatcher | None = None) -> APIRouter:
    """Create router with injected dependencies."""
    router = APIRouter()

    @router.post("/videos/import-platform-handler")
    async def import_platform_handler(
        params: ImportPlatformParams,
        task_id: Annotated[UUID, Header(alias=TASK_ID_HEADER)],
    ) -> ImportPlatformOutput:
        """Publish a platform-hosted video under its original URL."""
        output = await worker.execute(
            TaskType.import_platform.value, str(task_id), params.model_dump()
        )
        return ImportPlatformOutput.model_validate(output.model_dump())

    _ = import_platform_handler
    return router
