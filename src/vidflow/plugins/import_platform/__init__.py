"""Import of videos hosted on a known platform."""

from .schema import ImportPlatformOutput, ImportPlatformParams
from .task import ImportPlatformTask

__all__ = ["ImportPlatformTask", "ImportPlatformParams", "ImportPlatformOutput"]
