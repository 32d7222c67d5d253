"""vidflow - idempotent task dispatch and HLS stream-to-storage processing."""

from .common.config import Settings
from .common.dispatcher import TaskDispatcher
from .common.errors import ErrorCode, ErrorSeverity, VidflowError
from .common.object_storage import ObjectStorage, SavedObject
from .common.queue_client import QueueClient
from .common.schema_task import (
    DispatchRequest,
    TaskEntityType,
    TaskRecord,
    TaskStatus,
    TaskType,
    compute_task_id,
)
from .common.task_handler import TaskHandler, TaskServices
from .common.task_store import TaskStore
from .worker import Worker

__version__ = "0.1.0"

__all__ = [
    "DispatchRequest",
    "ErrorCode",
    "ErrorSeverity",
    "ObjectStorage",
    "QueueClient",
    "SavedObject",
    "Settings",
    "TaskDispatcher",
    "TaskEntityType",
    "TaskHandler",
    "TaskRecord",
    "TaskServices",
    "TaskStatus",
    "TaskStore",
    "TaskType",
    "VidflowError",
    "Worker",
    "__version__",
    "compute_task_id",
]
