"""Fakes and helpers shared by the test modules."""

import subprocess
from collections.abc import AsyncIterable, Awaitable, Callable
from os import PathLike
from pathlib import Path
from typing_extensions import override

import httpx

from vidflow.common.database import SessionFactory
from vidflow.common.models import VideoRow
from vidflow.common.object_storage import ObjectStorage, SavedObject
from vidflow.common.queue_client import QueueClient
from vidflow.common.schema_task import CloudTaskSpec, QueueTaskHandle

PUBLIC_BASE_URL = "https://storage.test/bucket"

# ============================================================================
# Task queue
# ============================================================================


class FakeQueue(QueueClient):
    """In-memory QueueClient that records every submitted task."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, CloudTaskSpec]] = []
        self.fail_with: Exception | None = None

    @override
    def queue_path(self, project_id: str, location: str, queue_name: str) -> str:
        return f"projects/{project_id}/locations/{location}/queues/{queue_name}"

    @override
    async def create_task(self, parent: str, task: CloudTaskSpec) -> QueueTaskHandle:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((parent, task))
        return QueueTaskHandle(name=task.name, schedule_time_seconds=task.schedule_time_seconds)


# ============================================================================
# HTTP origin
# ============================================================================

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


class FakeOrigin:
    """Routes requests by URL to canned responses and records what was fetched.

    Unknown URLs answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requested: list[str] = []

    def add(self, url: str, handler: Handler) -> None:
        self.routes[url] = handler

    def add_status(self, url: str, status_code: int) -> None:
        self.routes[url] = lambda _request: httpx.Response(status_code)

    def add_bytes(self, url: str, content: bytes) -> None:
        self.routes[url] = lambda _request: httpx.Response(200, content=content)

    def add_text(self, url: str, text: str) -> None:
        self.routes[url] = lambda _request: httpx.Response(200, text=text)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        handler = self.routes.get(url)
        if handler is None:
            return httpx.Response(404)
        response = handler(request)
        if isinstance(response, httpx.Response):
            return response
        return await response


# ============================================================================
# Object storage
# ============================================================================


class RecordingStorage(ObjectStorage):
    """Delegates to another storage and records the order of calls."""

    def __init__(self, inner: ObjectStorage, events: list[str] | None = None):
        self.inner: ObjectStorage = inner
        self.events: list[str] = events if events is not None else []

    @override
    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterable[bytes],
        *,
        content_type: str | None = None,
    ) -> SavedObject:
        self.events.append(f"upload:{path}")
        saved = await self.inner.upload_stream(path, chunks, content_type=content_type)
        self.events.append(f"saved:{path}")
        return saved

    @override
    async def upload_file(
        self,
        path: str,
        local_path: str | PathLike[str],
        *,
        content_type: str | None = None,
        resumable: bool = False,
    ) -> SavedObject:
        self.events.append(f"upload_file:{path}:{content_type}")
        return await self.inner.upload_file(
            path, local_path, content_type=content_type, resumable=resumable
        )

    @override
    async def delete(self, path: str) -> None:
        self.events.append(f"delete:{path}")
        await self.inner.delete(path)

    @override
    def public_url(self, path: str) -> str:
        return self.inner.public_url(path)


# ============================================================================
# Database rows
# ============================================================================


async def insert_video(
    session_factory: SessionFactory,
    video_id: str,
    *,
    user_id: str = "user-1",
    source: str = "https://cdn.example.com/original/index.m3u8",
    status: str = "pending",
    duration: float | None = None,
    thumbnail_url: str | None = None,
) -> None:
    async with session_factory() as session, session.begin():
        session.add(
            VideoRow(
                id=video_id,
                user_id=user_id,
                source=source,
                status=status,
                duration=duration,
                thumbnail_url=thumbnail_url,
            )
        )


# ============================================================================
# FFmpeg
# ============================================================================

FFMPEG_RUN = "vidflow.plugins.media_thumbnail.algo.video_frame.subprocess.run"


class FakeFFmpeg:
    """Stands in for subprocess.run: records the command and writes the output image."""

    def __init__(self, returncode: int = 0, stderr: str = ""):
        self.returncode: int = returncode
        self.stderr: str = stderr
        self.commands: list[list[str]] = []

    def __call__(self, command: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
        self.commands.append(command)
        if self.returncode == 0:
            _ = Path(command[-1]).write_bytes(b"\xff\xd8\xff\xe0 fake jpeg")
        return subprocess.CompletedProcess(command, self.returncode, "", self.stderr)
