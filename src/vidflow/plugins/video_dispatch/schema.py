"""Schema definitions for the gateway video events."""

from pydantic import BaseModel, Field

from ...common.schema_task import TaskType
from ..hls_streaming.schema import EventMetadata


class VideoEventData(BaseModel):
    id: str
    user_id: str
    video_url: str
    skip_process: bool = False
    keep_original_source: bool = False


class VideoEvent(BaseModel):
    """A row-change event for a newly submitted video."""

    data: VideoEventData
    metadata: EventMetadata = Field(default_factory=EventMetadata)


class VideoEventBody(BaseModel):
    event: VideoEvent


class TaskTarget(BaseModel):
    """Where a task for a video should be queued and delivered."""

    queue: str
    audience: str
    url: str
    task_type: TaskType


class DispatchResult(BaseModel):
    success: bool
    message: str
    task_name: str | None = None
    dispatched: int = 0
