import json
import uuid
from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue

TaskPayload = dict[str, JsonValue]

TASK_ID_NAMESPACE: uuid.UUID = uuid.UUID("abd32375-5036-44a1-bc75-c7bb33051b99")


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class TaskType(str, Enum):
    convert = "convert"
    import_platform = "import_platform"
    stream_hls = "stream_hls"
    fix_duration = "fix_duration"
    fix_thumbnail = "fix_thumbnail"
    share = "share"
    crawl = "crawl"


class TaskEntityType(str, Enum):
    video = "video"
    crawl_video = "crawl_video"


def compute_task_id(
    entity_type: TaskEntityType | str,
    entity_id: str,
    task_type: TaskType | str,
) -> str:
    """Derive the task id for one logical unit of work.

    The fields are hashed as an ordered JSON array so the id never depends on
    mapping key order.
    """
    entity_type = entity_type.value if isinstance(entity_type, TaskEntityType) else entity_type
    task_type = task_type.value if isinstance(task_type, TaskType) else task_type
    name = json.dumps([entity_type, entity_id, task_type], separators=(",", ":"))
    return str(uuid.uuid5(TASK_ID_NAMESPACE, name))


class TaskRecord(BaseModel):
    """Persisted task representation (DB / wire format)."""

    task_id: str
    entity_type: str
    entity_id: str
    type: str
    metadata: TaskPayload = Field(default_factory=dict)
    status: TaskStatus = TaskStatus.pending
    completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


class TaskDefaults(BaseModel):
    """Column values used when find-or-create has to insert."""

    task_id: str
    type: str
    metadata: TaskPayload = Field(default_factory=dict)
    status: TaskStatus = TaskStatus.pending
    completed: bool = False

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


class DispatchRequest(BaseModel):
    """Everything needed to enqueue one task for a handler."""

    queue_name: str
    audience_url: str
    target_url: str
    entity_type: TaskEntityType
    entity_id: str
    task_type: TaskType
    payload: TaskPayload | None = None
    delay_seconds: float | None = Field(default=None, ge=0)
    extra_headers: dict[str, str] = Field(default_factory=dict)

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    @property
    def task_id(self) -> str:
        return compute_task_id(self.entity_type, self.entity_id, self.task_type)


class OidcToken(BaseModel):
    service_account_email: str
    audience: str


class HttpTaskRequest(BaseModel):
    url: str
    http_method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = Field(default=None, description="base64 encoded JSON payload")
    oidc_token: OidcToken


class CloudTaskSpec(BaseModel):
    """Queue task descriptor handed to the QueueClient."""

    name: str
    http_request: HttpTaskRequest
    dispatch_deadline_seconds: int = 1800
    schedule_time_seconds: int | None = None


class QueueTaskHandle(BaseModel):
    """What the queue reports back about a created task."""

    name: str
    schedule_time_seconds: int | None = None
