"""HLS stream-to-storage plugin."""

from .schema import EventMetadata, StreamHLSOutput, StreamHLSParams
from .task import StreamHLSTask

__all__ = [
    "StreamHLSTask",
    "StreamHLSParams",
    "StreamHLSOutput",
    "EventMetadata",
]
