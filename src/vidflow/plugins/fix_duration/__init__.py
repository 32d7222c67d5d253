from .task import FixDurationOutput, FixDurationParams, FixDurationTask

__all__ = ["FixDurationTask", "FixDurationParams", "FixDurationOutput"]
