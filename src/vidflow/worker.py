"""Worker runtime - runs queue-delivered tasks against their handlers."""

from importlib.metadata import entry_points
from typing import cast

from loguru import logger

from .common.errors import ConfigurationError, DatabaseError, VidflowError
from .common.schema_task import TaskStatus
from .common.task_handler import TaskHandler, TaskOutput, TaskParams, TaskServices

TaskRegistry = dict[str, TaskHandler[TaskParams, TaskOutput]]


def get_task_registry() -> TaskRegistry:
    """Dynamically load all task handlers from entry points.

    Discovers handlers from [project.entry-points."vidflow.tasks"]
    in pyproject.toml.

    Returns:
        Dict mapping task_type -> TaskHandler instance

    Raises:
        RuntimeError: If a plugin fails to load (missing dependency, etc.)
    """
    registry: TaskRegistry = {}
    eps = entry_points(group="vidflow.tasks")

    for ep in eps:
        try:
            handler_class = cast(type[TaskHandler[TaskParams, TaskOutput]], ep.load())
            handler = handler_class()
            registry[handler.task_type] = handler
        except Exception as e:
            # Plugin dependency missing = exception (fail fast)
            raise RuntimeError(f"Failed to load task '{ep.name}': {e}") from e

    return registry


class Worker:
    """Worker runtime that executes tasks pushed by the queue.

    Responsibilities:
    - Maintains task registry (auto-discovered from entry points)
    - Validates payloads and dispatches to the matching TaskHandler
    - Marks tasks failed when the error is not worth a redelivery

    Example:
        worker = Worker(services)
        output = await worker.execute("stream_hls", task_id, payload)
    """

    def __init__(
        self,
        services: TaskServices,
        task_registry: TaskRegistry | None = None,
    ):
        self.services: TaskServices = services
        self.task_registry: TaskRegistry = (
            task_registry if task_registry is not None else get_task_registry()
        )

    def get_supported_task_types(self) -> list[str]:
        return list(self.task_registry.keys())

    async def execute(self, task_type: str, task_id: str, payload: object) -> TaskOutput:
        """Run one task.

        Raises:
            ConfigurationError: no handler is registered for ``task_type``
            VidflowError: the handler failed; non-retryable failures are
                recorded as ``failed`` before being re-raised
        """
        handler = self.task_registry.get(task_type)
        if handler is None:
            raise ConfigurationError(
                f"No handler registered for task type '{task_type}'",
                context={"task_type": task_type, "task_id": task_id},
                source="worker.execute",
            )

        log = logger.bind(task_id=task_id, task_type=task_type)
        log.info("Task started")

        try:
            output = await handler.execute(task_id, payload, self.services)
        except VidflowError as exc:
            details = {
                **exc.flattened_context(),
                "error_code": exc.error_code.value,
                "severity": exc.severity.value,
                "should_retry": exc.should_retry,
            }
            log.bind(**details).error(f"Task failed: {exc.message}")
            if not exc.should_retry:
                await self._mark_failed(task_id)
            raise

        log.info("Task completed")
        return output

    async def _mark_failed(self, task_id: str) -> None:
        try:
            rows = await self.services.store.set_status(task_id, TaskStatus.failed)
        except DatabaseError as exc:
            # the handler error is the one reported to the caller
            logger.bind(task_id=task_id, cleanup_error=str(exc)).error(
                "Failed to mark task as failed"
            )
            return
        if not rows:
            logger.bind(task_id=task_id).warning("No task row to mark as failed")
