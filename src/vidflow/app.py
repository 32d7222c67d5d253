"""Application module - FastAPI app and dynamic route aggregation."""

from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from importlib.metadata import entry_points
from typing import cast

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from .common.config import Settings
from .common.database import bootstrap_schema, create_engine, create_session_factory
from .common.dispatcher import TaskDispatcher
from .common.errors import VidflowError
from .common.gcs_storage import GCSObjectStorage
from .common.local_storage import LocalObjectStorage
from .common.object_storage import ObjectStorage
from .common.queue_client import CloudTasksQueue
from .common.task_handler import TaskServices
from .utils.log import configure_logging
from .worker import Worker

# Type alias for route factory functions loaded from entry points
RouteFactory = Callable[[Worker, TaskDispatcher | None], APIRouter]


def create_master_router(
    worker: Worker,
    dispatcher: TaskDispatcher | None = None,
    route_factories: Iterable[RouteFactory] | None = None,
) -> APIRouter:
    """Aggregate all plugin routes.

    Discovers routes from [project.entry-points."vidflow.routes"]
    in pyproject.toml unless ``route_factories`` is given.

    Raises:
        RuntimeError: If a plugin fails to load (missing dependency, etc.)
    """
    master = APIRouter()

    if route_factories is not None:
        for create_router in route_factories:
            master.include_router(create_router(worker, dispatcher))
        return master

    for ep in entry_points(group="vidflow.routes"):
        try:
            create_router = cast(RouteFactory, ep.load())
            master.include_router(create_router(worker, dispatcher))
        except Exception as e:
            # Plugin dependency missing = exception (fail fast)
            raise RuntimeError(f"Failed to load plugin '{ep.name}': {e}") from e

    return master


def get_available_plugins() -> list[str]:
    return [ep.name for ep in entry_points(group="vidflow.routes")]


async def vidflow_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a VidflowError.

    Retryable errors answer 500 so the queue redelivers the task; everything
    else answers 200 so the queue drops it.
    """
    error = cast(VidflowError, exc)
    logger.bind(
        path=request.url.path,
        error_code=error.error_code.value,
        severity=error.severity.value,
        should_retry=error.should_retry,
    ).error(f"Request failed: {error.message}")

    status_code = 500 if error.should_retry else 200
    return JSONResponse(status_code=status_code, content={"success": False, **error.to_response()})


def create_app(
    worker: Worker,
    dispatcher: TaskDispatcher | None = None,
    route_factories: Iterable[RouteFactory] | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    app = FastAPI(title="vidflow", lifespan=lifespan)
    app.add_exception_handler(VidflowError, vidflow_error_handler)
    app.include_router(create_master_router(worker, dispatcher, route_factories))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    _ = health
    return app


def create_storage(settings: Settings) -> ObjectStorage:
    settings.validate_storage()
    if settings.local_storage_dir:
        return LocalObjectStorage(settings.local_storage_dir)
    return GCSObjectStorage(cast(str, settings.storage_bucket))


def create_service_app(settings: Settings | None = None) -> FastAPI:
    """Wire the production services from the environment.

    Example:
        uvicorn vidflow.app:create_service_app --factory
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, serialize=settings.log_json)

    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    http_client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    services = TaskServices(
        settings=settings,
        session_factory=session_factory,
        storage=create_storage(settings),
        http_client=http_client,
    )
    worker = Worker(services)

    dispatcher: TaskDispatcher | None = None
    if settings.project_id:
        dispatcher = TaskDispatcher(CloudTasksQueue(), services.store, session_factory, settings)
    else:
        logger.warning("GCP_PROJECT_ID not set, task dispatch routes are disabled")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await bootstrap_schema(engine)
        logger.bind(task_types=worker.get_supported_task_types()).info("vidflow started")
        try:
            yield
        finally:
            await http_client.aclose()
            await engine.dispose()

    return create_app(worker, dispatcher, lifespan=lifespan)
