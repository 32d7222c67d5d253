"""Stream-to-storage task: copy an HLS stream into the bucket without its ads."""

from typing_extensions import override

from loguru import logger

from ...common.errors import EmptyContentError, FinalizeError, VideoNotFoundError
from ...common.finalize import NotificationInput
from ...common.schema_task import TaskType
from ...common.task_handler import TaskHandler, TaskServices
from ...common.videos import VideoUpdate, video_storage_path
from ..media_thumbnail.extractor import ThumbnailExtractor
from .algo.playlist_parser import parse
from .algo.playlist_validator import validate_playlist
from .algo.segment_streamer import SegmentStreamer
from .schema import StreamHLSOutput, StreamHLSParams

PLAYLIST_NAME = "playlist.m3u8"


class StreamHLSTask(TaskHandler[StreamHLSParams, StreamHLSOutput]):
    """Handler for ``stream_hls`` tasks."""

    schema: type[StreamHLSParams] = StreamHLSParams

    @property
    @override
    def task_type(self) -> str:
        return TaskType.stream_hls.value

    @override
    async def run(
        self,
        task_id: str,
        params: StreamHLSParams,
        services: TaskServices,
    ) -> StreamHLSOutput:
        log = logger.bind(task_id=task_id, video_id=params.id)

        if params.keep_original_source:
            await self._finalize(
                services,
                task_id,
                params,
                VideoUpdate(source=params.video_url, status="ready"),
            )
            log.info("Kept original source")
            return StreamHLSOutput(playable_video_url=params.video_url)

        log.bind(event_id=params.metadata.id if params.metadata else None).info(
            "Start streaming HLS to storage"
        )

        settings = services.settings
        storage_path = video_storage_path(params.user_id, params.id)

        parsed = await parse(
            services.http_client,
            params.video_url,
            settings.compiled_exclude_patterns(),
            timeout=settings.request_timeout_seconds,
        )
        included = parsed.segments.included
        if not included:
            raise EmptyContentError(
                "Empty HLS content",
                context={"video_id": params.id, "video_url": params.video_url},
                source="hls_streaming/task.run",
            )

        _ = validate_playlist(parsed.rewritten_manifest, expected_segments=len(included))

        streamer = SegmentStreamer(
            services.http_client,
            services.storage,
            timeout=settings.request_timeout_seconds,
            concurrency_limit=settings.segment_concurrency,
            max_segment_size_bytes=settings.max_segment_size_bytes,
        )
        playlist_path = f"{storage_path}/{PLAYLIST_NAME}"
        _ = await streamer.stream_manifest(parsed.rewritten_manifest, playlist_path)
        _ = await streamer.stream_all([segment.url for segment in included], storage_path)

        extractor = ThumbnailExtractor(
            services.http_client,
            services.storage,
            timeout=settings.request_timeout_seconds,
        )
        first = included[0]
        outcome = await extractor.try_extract(
            first.url, first.duration, storage_path, is_segment_input=True
        )
        thumbnail_url: str | None = None
        if outcome.path is not None:
            thumbnail_url = services.storage.public_url(outcome.path)
        elif outcome.error is not None:
            log.bind(**outcome.error.flattened_context()).warning(
                f"Continuing without thumbnail: {outcome.error.message}"
            )

        playable_video_url = services.storage.public_url(playlist_path)
        await self._finalize(
            services,
            task_id,
            params,
            VideoUpdate(
                source=playable_video_url,
                status="ready",
                thumbnail_url=thumbnail_url,
                duration=parsed.total_duration_seconds,
            ),
        )

        return StreamHLSOutput(
            playable_video_url=playable_video_url,
            duration=parsed.total_duration_seconds,
            thumbnail_url=thumbnail_url,
            segments_uploaded=len(included),
            segments_excluded=len(parsed.segments.excluded),
        )

    @staticmethod
    async def _finalize(
        services: TaskServices,
        task_id: str,
        params: StreamHLSParams,
        updates: VideoUpdate,
    ) -> None:
        try:
            await services.finalizer.finish_video_process(
                task_id=task_id,
                notification=NotificationInput(type="video-ready", user_id=params.user_id),
                video_id=params.id,
                video_updates=updates,
            )
        except VideoNotFoundError:
            raise
        except Exception as exc:
            raise FinalizeError(
                "Failed to finalize video",
                context={"task_id": task_id, "video_id": params.id},
                source="hls_streaming/task.finalize",
            ) from exc
