"""QueueClient Protocol and the Google Cloud Tasks implementation."""

import base64
from typing import Any, Protocol, runtime_checkable

from typing_extensions import override
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import tasks_v2
from google.protobuf import duration_pb2, timestamp_pb2
from loguru import logger

from .errors import DispatchError
from .schema_task import CloudTaskSpec, QueueTaskHandle


@runtime_checkable
class QueueClient(Protocol):
    """Interface of the external task queue.

    Implementations are constructed once per process and injected into the
    dispatcher.
    """

    def queue_path(self, project_id: str, location: str, queue_name: str) -> str: ...

    async def create_task(self, parent: str, task: CloudTaskSpec) -> QueueTaskHandle:
        """Submit a task. Must raise if the queue did not accept it."""
        ...


class CloudTasksQueue(QueueClient):
    """QueueClient backed by ``google.cloud.tasks_v2.CloudTasksAsyncClient``."""

    def __init__(self, client: tasks_v2.CloudTasksAsyncClient | None = None):
        self._client: tasks_v2.CloudTasksAsyncClient = client or tasks_v2.CloudTasksAsyncClient()

    @override
    def queue_path(self, project_id: str, location: str, queue_name: str) -> str:
        return tasks_v2.CloudTasksAsyncClient.queue_path(project_id, location, queue_name)

    @staticmethod
    def to_proto(task: CloudTaskSpec) -> tasks_v2.Task:
        http_request: dict[str, Any] = {
            "url": task.http_request.url,
            "http_method": tasks_v2.HttpMethod[task.http_request.http_method],
            "headers": task.http_request.headers,
            "oidc_token": {
                "service_account_email": task.http_request.oidc_token.service_account_email,
                "audience": task.http_request.oidc_token.audience,
            },
        }
        if task.http_request.body is not None:
            # the proto field is raw bytes; the client library encodes it on the wire
            http_request["body"] = base64.b64decode(task.http_request.body)

        proto = tasks_v2.Task(
            name=task.name,
            http_request=tasks_v2.HttpRequest(**http_request),
            dispatch_deadline=duration_pb2.Duration(seconds=task.dispatch_deadline_seconds),
        )
        if task.schedule_time_seconds is not None:
            proto.schedule_time = timestamp_pb2.Timestamp(seconds=task.schedule_time_seconds)
        return proto

    @override
    async def create_task(self, parent: str, task: CloudTaskSpec) -> QueueTaskHandle:
        try:
            response = await self._client.create_task(
                request={"parent": parent, "task": self.to_proto(task)}
            )
        except AlreadyExists:
            # Same deterministic name was submitted before; report the existing task.
            logger.bind(task_name=task.name).info("Cloud task already exists")
            try:
                response = await self._client.get_task(request={"name": task.name})
            except NotFound as exc:
                # the task ran and was deleted; its name stays reserved for a while
                raise DispatchError(
                    "Task name was used by a finished task",
                    should_retry=False,
                    context={"task_name": task.name},
                    source="common/queue_client.create_task",
                ) from exc

        schedule_seconds: int | None = None
        if response.schedule_time:
            schedule_seconds = int(response.schedule_time.timestamp())
        return QueueTaskHandle(name=response.name, schedule_time_seconds=schedule_seconds)
