"""Schema definitions for the HLS stream-to-storage handler."""

from pydantic import BaseModel, Field

from ...common.task_handler import TaskOutput, TaskParams


class EventMetadata(BaseModel):
    """Trace identifiers of the event that caused the task."""

    id: str | None = None
    span_id: str | None = None
    trace_id: str | None = None


class StreamHLSParams(TaskParams):
    """Payload delivered by the queue to the stream-hls handler."""

    id: str = Field(description="Video id")
    user_id: str = Field(description="Owner of the video")
    video_url: str = Field(description="URL of the source M3U8 media playlist")
    keep_original_source: bool = Field(
        default=False,
        description="Publish the source URL as-is instead of copying the stream",
    )
    metadata: EventMetadata | None = None


class StreamHLSOutput(TaskOutput):
    playable_video_url: str = Field(description="Public URL of the published playlist")
    duration: int | None = Field(default=None, description="Total duration in whole seconds")
    thumbnail_url: str | None = None
    segments_uploaded: int = 0
    segments_excluded: int = 0
