"""Gateway plugin: route video events to their processing queue."""

from .dispatch import build_task_target, dispatch_video_event, dispatch_video_repairs
from .media_source import MediaSource, classify_media_url

__all__ = [
    "build_task_target",
    "classify_media_url",
    "dispatch_video_event",
    "dispatch_video_repairs",
    "MediaSource",
]
