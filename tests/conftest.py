"""Test configuration and fixtures for vidflow.

This module provides:
- Pytest configuration (markers, dependency checks)
- Database fixtures (file-backed SQLite per test, schema created)
- Fakes for the task queue and HTTP origin
- Local object storage standing in for the bucket
"""

import shutil
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from helpers import PUBLIC_BASE_URL, FakeOrigin, FakeQueue
from sqlalchemy.ext.asyncio import AsyncEngine

from vidflow.common.config import Settings
from vidflow.common.database import (
    SessionFactory,
    bootstrap_schema,
    create_engine,
    create_session_factory,
)
from vidflow.common.dispatcher import TaskDispatcher
from vidflow.common.local_storage import LocalObjectStorage
from vidflow.common.task_handler import TaskServices
from vidflow.common.task_store import TaskStore

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: requires FFmpeg to be installed",
    )


def pytest_runtest_setup(item):
    """Check dependencies before running tests - FAIL if missing (not skip)."""
    if item.get_closest_marker("requires_ffmpeg") and not shutil.which("ffmpeg"):
        pytest.fail(
            "FFmpeg not installed. "
            "Install: brew install ffmpeg (macOS) or apt-get install ffmpeg (Linux)\n"
            "Or exclude with: pytest -m 'not requires_ffmpeg'",
            pytrace=False,
        )


# ============================================================================
# Settings / Database
# ============================================================================


SETTINGS_ENV_VARS = (
    "DATABASE_URL",
    "GCP_PROJECT_ID",
    "GCP_LOCATION",
    "CLOUD_TASKS_SERVICE_ACCOUNT",
    "STREAM_VIDEO_QUEUE",
    "CONVERT_VIDEO_QUEUE",
    "DISPATCH_DEADLINE_SECONDS",
    "IO_SERVICE_URL",
    "COMPUTE_SERVICE_URL",
    "GCP_STORAGE_BUCKET",
    "LOCAL_STORAGE_DIR",
    "REQUEST_TIMEOUT_SECONDS",
    "SEGMENT_CONCURRENCY",
    "MAX_SEGMENT_SIZE_BYTES",
    "HLS_EXCLUDE_PATTERNS",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings read the environment; keep the host's variables out of tests."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'vidflow-test.db'}",
        project_id="test-project",
        location="asia-southeast1",
        cloud_task_service_account="tasks@test-project.iam.gserviceaccount.com",
        io_service_url="https://io.example.com",
        compute_service_url="https://compute.example.com",
        local_storage_dir=str(tmp_path / "bucket"),
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings.database_url)
    await bootstrap_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> SessionFactory:
    return create_session_factory(engine)


@pytest.fixture
def task_store(session_factory: SessionFactory) -> TaskStore:
    return TaskStore(session_factory)


# ============================================================================
# Queue / Dispatcher
# ============================================================================


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def dispatcher(
    fake_queue: FakeQueue,
    task_store: TaskStore,
    session_factory: SessionFactory,
    settings: Settings,
) -> TaskDispatcher:
    return TaskDispatcher(fake_queue, task_store, session_factory, settings)


# ============================================================================
# Storage / HTTP
# ============================================================================


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "bucket", base_url=PUBLIC_BASE_URL)


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest_asyncio.fixture
async def http_client(origin: FakeOrigin) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(origin)) as client:
        yield client


@pytest.fixture
def services(
    settings: Settings,
    session_factory: SessionFactory,
    storage: LocalObjectStorage,
    http_client: httpx.AsyncClient,
    task_store: TaskStore,
) -> TaskServices:
    return TaskServices(
        settings=settings,
        session_factory=session_factory,
        storage=storage,
        http_client=http_client,
        store=task_store,
    )
