from .task import FixThumbnailOutput, FixThumbnailParams, FixThumbnailTask

__all__ = ["FixThumbnailTask", "FixThumbnailParams", "FixThumbnailOutput"]
