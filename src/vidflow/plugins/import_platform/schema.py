"""Schema definitions for the import-platform handler."""

from pydantic import Field

from ...common.task_handler import TaskOutput, TaskParams
from ..hls_streaming.schema import EventMetadata


class ImportPlatformParams(TaskParams):
    """Payload delivered by the queue to the import-platform handler."""

    id: str = Field(description="Video id")
    user_id: str = Field(description="Owner of the video")
    video_url: str = Field(description="Platform URL the video is played from")
    metadata: EventMetadata | None = None


class ImportPlatformOutput(TaskOutput):
    playable_video_url: str
