"""TaskDispatcher - idempotent, transactional submission of queue tasks."""

import base64
import json
import time

from loguru import logger

from .config import Settings
from .database import SessionFactory
from .errors import ConfigurationError, DispatchError
from .queue_client import QueueClient
from .schema_task import (
    CloudTaskSpec,
    DispatchRequest,
    HttpTaskRequest,
    OidcToken,
    QueueTaskHandle,
    TaskDefaults,
    TaskStatus,
)
from .task_store import TaskStore

TASK_ID_HEADER = "X-Task-ID"


def encode_payload(payload: object) -> str:
    """base64(JSON(payload)) with compact separators."""
    try:
        raw = json.dumps(payload, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise DispatchError(
            "Invalid payload: Failed to serialize to JSON",
            should_retry=False,
            source="common/dispatcher.encode_payload",
        ) from exc
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


class TaskDispatcher:
    """Creates a task row and the matching queue task in one unit of work.

    Either the row ends up ``in_progress`` and the queue accepted the task, or
    the transaction is rolled back and nothing is visible. A task whose row is
    already completed is never submitted again.
    """

    def __init__(
        self,
        queue: QueueClient,
        store: TaskStore,
        session_factory: SessionFactory,
        settings: Settings,
    ):
        self.queue: QueueClient = queue
        self.store: TaskStore = store
        self._sessions: SessionFactory = session_factory
        self.settings: Settings = settings

    def _validate(self, request: DispatchRequest) -> None:
        self.settings.validate_queue()

        missing = [
            name
            for name, value in (
                ("target_url", request.target_url),
                ("queue_name", request.queue_name),
                ("audience_url", request.audience_url),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing {', '.join(missing)}",
                context={"entity_id": request.entity_id, "task_type": request.task_type.value},
                source="common/dispatcher.dispatch",
            )

    def build_task(
        self,
        request: DispatchRequest,
        parent: str,
        task_id: str,
        tracking_id: str | None = None,
    ) -> CloudTaskSpec:
        """Describe the queue task.

        The task is named after ``task_id``. The ``X-Task-ID`` header carries
        ``tracking_id`` when given: the id of the task row the handler must
        complete, which differs from ``task_id`` when the entity's row was
        created for another task type.
        """
        headers = {"Content-Type": "application/json", **request.extra_headers}
        headers[TASK_ID_HEADER] = tracking_id or task_id

        schedule_time: int | None = None
        if request.delay_seconds:
            schedule_time = int(time.time() + request.delay_seconds)

        return CloudTaskSpec(
            name=f"{parent}/tasks/{task_id}",
            http_request=HttpTaskRequest(
                url=request.target_url,
                http_method="POST",
                headers=headers,
                body=encode_payload(request.payload) if request.payload is not None else None,
                oidc_token=OidcToken(
                    service_account_email=self.settings.cloud_task_service_account or "",
                    audience=request.audience_url,
                ),
            ),
            dispatch_deadline_seconds=self.settings.dispatch_deadline_seconds,
            schedule_time_seconds=schedule_time,
        )

    async def dispatch(self, request: DispatchRequest) -> QueueTaskHandle | None:
        """Dispatch one logical unit of work.

        Returns:
            The queue's task handle, or None when the task was already completed

        Raises:
            ConfigurationError: queue settings or required params are missing
            DispatchError: queue submission or status update failed (rolled back)
        """
        self._validate(request)

        task_id = request.task_id
        log = logger.bind(
            task_id=task_id,
            queue=request.queue_name,
            url=request.target_url,
            entity_id=request.entity_id,
            entity_type=request.entity_type.value,
            task_type=request.task_type.value,
        )

        defaults = TaskDefaults(
            task_id=task_id,
            type=request.task_type.value,
            metadata=request.payload or {},
            status=TaskStatus.pending,
            completed=False,
        )

        try:
            async with self._sessions() as session, session.begin():
                task = await self.store.find_or_create_by_entity(
                    request.entity_id,
                    request.entity_type.value,
                    defaults,
                    session=session,
                )
                if task.completed:
                    log.info("Task already completed, skipping dispatch")
                    return None

                if task.task_id != task_id:
                    log.warning(
                        f"Entity already tracked by task {task.task_id} ({task.type}), "
                        "handler will report to that row"
                    )

                parent = self.queue.queue_path(
                    self.settings.project_id or "",
                    self.settings.location,
                    request.queue_name,
                )
                cloud_task = self.build_task(request, parent, task_id, tracking_id=task.task_id)
                handle = await self.queue.create_task(parent, cloud_task)

                _ = await self.store.set_status(task.task_id, TaskStatus.in_progress, session=session)
        except Exception as exc:
            log.bind(error=str(exc)).error("Dispatch failed, transaction rolled back")
            if isinstance(exc, DispatchError):
                raise
            raise DispatchError.wrap(
                exc,
                "Failed to dispatch task",
                context={
                    "task_id": task_id,
                    "queue": request.queue_name,
                    "url": request.target_url,
                    "entity_id": request.entity_id,
                    "entity_type": request.entity_type.value,
                },
                source="common/dispatcher.dispatch",
            ) from exc

        log.bind(task_name=handle.name).info("Task dispatched")
        return handle
