"""Preview-frame extraction for videos and HLS segments."""

from .extractor import ThumbnailExtractor, ThumbnailOutcome

__all__ = ["ThumbnailExtractor", "ThumbnailOutcome"]
