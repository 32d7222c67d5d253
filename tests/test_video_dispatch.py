"""Tests for the gateway: media classification, routing and repair dispatch."""

import base64
import json

import pytest

from vidflow.common.config import Settings
from vidflow.common.database import SessionFactory
from vidflow.common.dispatcher import TASK_ID_HEADER, TaskDispatcher
from vidflow.common.errors import ConfigurationError
from vidflow.common.schema_task import TaskType, compute_task_id
from vidflow.common.task_store import TaskStore
from vidflow.plugins.video_dispatch.dispatch import (
    build_task_target,
    dispatch_video_event,
    dispatch_video_repairs,
)
from vidflow.plugins.video_dispatch.media_source import classify_media_url
from vidflow.plugins.video_dispatch.schema import VideoEvent

from helpers import FakeQueue, insert_video


def _event(**data: object) -> VideoEvent:
    values: dict[str, object] = {
        "id": "v1",
        "user_id": "user-1",
        "video_url": "https://cdn.example.com/v1/index.m3u8",
    }
    values.update(data)
    return VideoEvent.model_validate({"data": values, "metadata": {"id": "event-1"}})


# ============================================================================
# Media classification
# ============================================================================


@pytest.mark.parametrize(
    ("url", "file_type", "platform"),
    [
        ("https://cdn.example.com/v1/index.m3u8", "hls", None),
        ("https://cdn.example.com/v1/index.M3U8?token=1", "hls", None),
        ("https://cdn.example.com/upload/clip.mp4", "video", None),
        ("https://cdn.example.com/upload/clip.mov?x=1", "video", None),
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", None, "youtube"),
        ("https://youtu.be/dQw4w9WgXcQ", None, "youtube"),
        ("https://vimeo.com/123456", None, "vimeo"),
        ("https://example.com/page.html", None, None),
    ],
)
def test_classify_media_url(url: str, file_type: str | None, platform: str | None):
    source = classify_media_url(url)

    assert source.file_type == file_type
    assert source.platform == platform


# ============================================================================
# Routing
# ============================================================================


class TestBuildTaskTarget:
    def test_hls_goes_to_stream_handler(self, settings: Settings):
        target = build_task_target("hls", None, settings)

        assert target is not None
        assert target.queue == "stream-video"
        assert target.audience == "https://io.example.com"
        assert target.url == "https://io.example.com/videos/stream-hls-handler"
        assert target.task_type == TaskType.stream_hls

    def test_file_goes_to_convert_handler(self, settings: Settings):
        target = build_task_target("video", None, settings)

        assert target is not None
        assert target.queue == "convert-video"
        assert target.url == "https://compute.example.com/videos/convert-handler"
        assert target.task_type == TaskType.convert

    def test_platform_goes_to_import_handler(self, settings: Settings):
        target = build_task_target(None, "vimeo", settings)

        assert target is not None
        assert target.url == "https://io.example.com/videos/import-platform-handler"
        assert target.task_type == TaskType.import_platform

    def test_unknown_source(self, settings: Settings):
        assert build_task_target(None, None, settings) is None

    def test_missing_handler_url(self, settings: Settings):
        with pytest.raises(ConfigurationError) as exc_info:
            _ = build_task_target("hls", None, settings.model_copy(update={"io_service_url": None}))

        assert exc_info.value.context["missing"] == ["IO_SERVICE_URL"]


# ============================================================================
# dispatch_video_event
# ============================================================================


@pytest.mark.asyncio
async def test_hls_event_is_dispatched(
    dispatcher: TaskDispatcher, fake_queue: FakeQueue, settings: Settings
):
    result = await dispatch_video_event(_event(), dispatcher, settings)

    assert result.success is True
    assert result.dispatched == 1
    parent, task = fake_queue.calls[0]
    assert parent.endswith("/queues/stream-video")
    assert result.task_name == task.name
    assert task.http_request.url == "https://io.example.com/videos/stream-hls-handler"
    assert task.http_request.headers[TASK_ID_HEADER] == compute_task_id("video", "v1", "stream_hls")

    assert task.http_request.body is not None
    payload = json.loads(base64.b64decode(task.http_request.body))
    assert payload == {
        "id": "v1",
        "user_id": "user-1",
        "video_url": "https://cdn.example.com/v1/index.m3u8",
        "keep_original_source": False,
        "metadata": {"id": "event-1", "span_id": None, "trace_id": None},
    }


@pytest.mark.asyncio
async def test_skip_process(dispatcher: TaskDispatcher, fake_queue: FakeQueue, settings: Settings):
    result = await dispatch_video_event(_event(skip_process=True), dispatcher, settings)

    assert result.success is True
    assert result.dispatched == 0
    assert fake_queue.calls == []


@pytest.mark.asyncio
async def test_invalid_source(dispatcher: TaskDispatcher, fake_queue: FakeQueue, settings: Settings):
    result = await dispatch_video_event(
        _event(video_url="https://example.com/page.html"), dispatcher, settings
    )

    assert result.success is False
    assert result.message == "Invalid source"
    assert fake_queue.calls == []


@pytest.mark.asyncio
async def test_completed_video_is_not_dispatched_again(
    dispatcher: TaskDispatcher, fake_queue: FakeQueue, settings: Settings, task_store: TaskStore
):
    _ = await dispatch_video_event(_event(), dispatcher, settings)
    await task_store.complete(compute_task_id("video", "v1", "stream_hls"))

    result = await dispatch_video_event(_event(), dispatcher, settings)

    assert result.success is True
    assert result.message == "already completed"
    assert len(fake_queue.calls) == 1


# ============================================================================
# dispatch_video_repairs
# ============================================================================


@pytest.mark.asyncio
async def test_repairs_target_ready_videos_missing_duration(
    dispatcher: TaskDispatcher,
    fake_queue: FakeQueue,
    settings: Settings,
    session_factory: SessionFactory,
):
    await insert_video(session_factory, "needs-fix", status="ready")
    await insert_video(session_factory, "has-duration", status="ready", duration=12)
    await insert_video(session_factory, "still-pending", status="pending")

    result = await dispatch_video_repairs(
        TaskType.fix_duration, session_factory, dispatcher, settings
    )

    assert result.dispatched == 1
    task = fake_queue.calls[0][1]
    assert task.http_request.url == "https://io.example.com/videos/fix-duration"
    assert task.http_request.headers[TASK_ID_HEADER] == compute_task_id(
        "video", "needs-fix", "fix_duration"
    )
    assert task.http_request.body is not None
    assert json.loads(base64.b64decode(task.http_request.body)) == {"id": "needs-fix"}


@pytest.mark.asyncio
async def test_repairs_target_videos_missing_thumbnail(
    dispatcher: TaskDispatcher,
    fake_queue: FakeQueue,
    settings: Settings,
    session_factory: SessionFactory,
):
    await insert_video(session_factory, "a", status="ready")
    await insert_video(session_factory, "b", status="ready", thumbnail_url="https://x/t.jpg")

    result = await dispatch_video_repairs(
        TaskType.fix_thumbnail, session_factory, dispatcher, settings
    )

    assert result.dispatched == 1
    assert fake_queue.calls[0][1].http_request.url == "https://io.example.com/videos/fix-thumbnail"


@pytest.mark.asyncio
async def test_repairs_skip_entities_with_completed_task(
    dispatcher: TaskDispatcher,
    fake_queue: FakeQueue,
    settings: Settings,
    session_factory: SessionFactory,
    task_store: TaskStore,
):
    await insert_video(session_factory, "v1", status="ready")
    _ = await dispatch_video_event(_event(), dispatcher, settings)
    await task_store.complete(compute_task_id("video", "v1", "stream_hls"))

    result = await dispatch_video_repairs(
        TaskType.fix_duration, session_factory, dispatcher, settings
    )

    # one task row per entity: the finished stream task shadows the repair
    assert result.dispatched == 0
    assert len(fake_queue.calls) == 1


@pytest.mark.asyncio
async def test_repairs_reject_other_task_types(
    dispatcher: TaskDispatcher, settings: Settings, session_factory: SessionFactory
):
    with pytest.raises(ValueError):
        _ = await dispatch_video_repairs(TaskType.convert, session_factory, dispatcher, settings)
