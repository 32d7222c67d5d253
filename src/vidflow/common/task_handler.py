"""TaskHandler - abstract base class for queue-delivered tasks."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import Settings
from .database import SessionFactory
from .errors import PayloadValidationError
from .finalize import VideoFinalizer
from .object_storage import ObjectStorage
from .task_store import TaskStore


class TaskParams(BaseModel):
    pass


class TaskOutput(BaseModel):
    pass


P = TypeVar("P", bound=TaskParams)
Q = TypeVar("Q", bound=TaskOutput)


class TaskServices:
    """Process-wide collaborators handed to every handler run."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        storage: ObjectStorage,
        http_client: httpx.AsyncClient,
        store: TaskStore | None = None,
        finalizer: VideoFinalizer | None = None,
    ):
        self.settings: Settings = settings
        self.session_factory: SessionFactory = session_factory
        self.storage: ObjectStorage = storage
        self.http_client: httpx.AsyncClient = http_client
        self.store: TaskStore = store or TaskStore(session_factory)
        self.finalizer: VideoFinalizer = finalizer or VideoFinalizer(session_factory, self.store)


class TaskHandler(ABC, Generic[P, Q]):
    """
    Stateless, template-method based task handler.

    - The payload is validated once against ``schema``
    - run() owns side effects and task completion
    - Q is what the HTTP route returns
    """

    schema: type[P]

    @property
    @abstractmethod
    def task_type(self) -> str: ...

    @abstractmethod
    async def run(self, task_id: str, params: P, services: TaskServices) -> Q:
        """
        Execute task.

        - Must complete the task record on success
        - Raises VidflowError on failure
        """
        ...

    def parse(self, payload: object) -> P:
        try:
            return self.schema.model_validate(payload)
        except ValidationError as exc:
            raise PayloadValidationError(
                f"Invalid {self.task_type} payload",
                context={"task_type": self.task_type, "errors": exc.error_count()},
                source=f"{self.task_type}.parse",
            ) from exc

    async def execute(self, task_id: str, payload: object, services: TaskServices) -> Q:
        params = self.parse(payload)
        return await self.run(task_id, params, services)
