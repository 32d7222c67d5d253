"""Tests for the fix_duration and fix_thumbnail maintenance handlers."""

from unittest.mock import patch

import pytest

from vidflow.common.database import SessionFactory
from vidflow.common.errors import ErrorCode, ThumbnailError, VidflowError
from vidflow.common.models import VideoRow
from vidflow.common.schema_task import TaskDefaults, TaskStatus, compute_task_id
from vidflow.common.task_handler import TaskServices
from vidflow.common.task_store import TaskStore
from vidflow.plugins.fix_duration.task import FixDurationTask
from vidflow.plugins.fix_thumbnail.task import FixThumbnailTask

from helpers import FFMPEG_RUN, PUBLIC_BASE_URL, FakeFFmpeg, FakeOrigin, insert_video

SOURCE = f"{PUBLIC_BASE_URL}/videos/user-1/v1/playlist.m3u8"
PLAYLIST = "#EXTM3U\n#EXTINF:9.9,\nseg0.ts\n#EXTINF:4.2,\nseg1.ts\n#EXT-X-ENDLIST\n"


async def _track(task_store: TaskStore, task_type: str) -> str:
    task_id = compute_task_id("video", "v1", task_type)
    _ = await task_store.find_or_create_by_entity(
        "v1",
        "video",
        TaskDefaults(task_id=task_id, type=task_type, status=TaskStatus.in_progress),
    )
    return task_id


async def _video(session_factory: SessionFactory) -> VideoRow:
    async with session_factory() as session:
        video = await session.get(VideoRow, "v1")
        assert video is not None
        return video


# ============================================================================
# fix_duration
# ============================================================================


class TestFixDuration:
    @pytest.mark.asyncio
    async def test_recomputes_duration(
        self,
        services: TaskServices,
        session_factory: SessionFactory,
        task_store: TaskStore,
        origin: FakeOrigin,
    ):
        await insert_video(session_factory, "v1", source=SOURCE, status="ready")
        task_id = await _track(task_store, "fix_duration")
        origin.add_text(SOURCE, PLAYLIST)

        output = await FixDurationTask().execute(task_id, {"id": "v1"}, services)

        assert output.duration == 13
        assert (await _video(session_factory)).duration == 13
        task = await task_store.get(task_id)
        assert task is not None
        assert task.completed is True

    @pytest.mark.asyncio
    async def test_missing_video(self, services: TaskServices):
        with pytest.raises(VidflowError) as exc_info:
            _ = await FixDurationTask().execute("task-1", {"id": "missing"}, services)

        assert exc_info.value.error_code == ErrorCode.FIX_DURATION_ERROR
        assert exc_info.value.should_retry is False

    @pytest.mark.asyncio
    async def test_unreachable_manifest_is_retryable(
        self,
        services: TaskServices,
        session_factory: SessionFactory,
        task_store: TaskStore,
        origin: FakeOrigin,
    ):
        await insert_video(session_factory, "v1", source=SOURCE, status="ready")
        task_id = await _track(task_store, "fix_duration")
        origin.add_status(SOURCE, 503)

        with pytest.raises(VidflowError) as exc_info:
            _ = await FixDurationTask().execute(task_id, {"id": "v1"}, services)

        assert exc_info.value.error_code == ErrorCode.FIX_DURATION_ERROR
        assert exc_info.value.should_retry is True
        assert exc_info.value.flattened_context()["status_code"] == 503
        assert (await _video(session_factory)).duration is None


# ============================================================================
# fix_thumbnail
# ============================================================================


class TestFixThumbnail:
    @pytest.mark.asyncio
    async def test_regenerates_thumbnail(
        self,
        services: TaskServices,
        session_factory: SessionFactory,
        task_store: TaskStore,
        origin: FakeOrigin,
    ):
        await insert_video(session_factory, "v1", source=SOURCE, status="ready")
        task_id = await _track(task_store, "fix_thumbnail")
        origin.add_text(SOURCE, PLAYLIST)
        origin.add_bytes(f"{PUBLIC_BASE_URL}/videos/user-1/v1/seg0.ts", b"segment zero")
        ffmpeg = FakeFFmpeg()

        with patch(FFMPEG_RUN, side_effect=ffmpeg):
            output = await FixThumbnailTask().execute(task_id, {"id": "v1"}, services)

        assert output.thumbnail_url.startswith(f"{PUBLIC_BASE_URL}/videos/user-1/v1/thumbnail--")
        command = ffmpeg.commands[0]
        assert command[command.index("-ss") + 1] == "3"

        video = await _video(session_factory)
        assert video.thumbnail_url == output.thumbnail_url
        task = await task_store.get(task_id)
        assert task is not None
        assert task.completed is True

    @pytest.mark.asyncio
    async def test_thumbnail_failure_is_fatal(
        self,
        services: TaskServices,
        session_factory: SessionFactory,
        task_store: TaskStore,
        origin: FakeOrigin,
    ):
        await insert_video(session_factory, "v1", source=SOURCE, status="ready")
        task_id = await _track(task_store, "fix_thumbnail")
        origin.add_text(SOURCE, PLAYLIST)
        origin.add_bytes(f"{PUBLIC_BASE_URL}/videos/user-1/v1/seg0.ts", b"segment zero")

        with patch(FFMPEG_RUN, side_effect=FakeFFmpeg(returncode=1)):
            with pytest.raises(ThumbnailError):
                _ = await FixThumbnailTask().execute(task_id, {"id": "v1"}, services)

        assert (await _video(session_factory)).thumbnail_url is None
        task = await task_store.get(task_id)
        assert task is not None
        assert task.completed is False

    @pytest.mark.asyncio
    async def test_missing_video(self, services: TaskServices):
        with pytest.raises(VidflowError) as exc_info:
            _ = await FixThumbnailTask().execute("task-1", {"id": "missing"}, services)

        assert exc_info.value.error_code == ErrorCode.FIX_THUMBNAIL_ERROR

    @pytest.mark.asyncio
    async def test_empty_playlist(
        self, services: TaskServices, session_factory: SessionFactory, origin: FakeOrigin
    ):
        await insert_video(session_factory, "v1", source=SOURCE, status="ready")
        origin.add_text(SOURCE, "#EXTM3U\n#EXT-X-ENDLIST\n")

        with pytest.raises(VidflowError) as exc_info:
            _ = await FixThumbnailTask().execute("task-1", {"id": "v1"}, services)

        assert exc_info.value.error_code == ErrorCode.INVALID_LENGTH
