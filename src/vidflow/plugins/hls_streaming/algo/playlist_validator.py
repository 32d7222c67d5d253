import m3u8
from pydantic import BaseModel, Field

from ....common.errors import ManifestValidationError


class ValidationResult(BaseModel):
    is_valid: bool
    total_segments: int = 0
    target_duration: float | None = None
    is_endlist: bool = False
    errors: list[str] = Field(default_factory=list)


class PlaylistValidator:
    """Checks a rewritten media playlist before it is published."""

    def __init__(self, content: str):
        self.content: str = content
        self.errors: list[str] = []

    def validate(self, expected_segments: int | None = None) -> ValidationResult:
        if not self.content.lstrip().startswith("#EXTM3U"):
            self.errors.append("Playlist does not start with #EXTM3U")

        try:
            playlist = m3u8.loads(self.content)
        except Exception as e:
            self.errors.append(f"Validation error: {e}")
            return ValidationResult(is_valid=False, errors=self.errors)

        if playlist.is_variant:
            self.errors.append("Expected a media playlist, got a master playlist")

        total_segments = len(playlist.segments)
        if expected_segments is not None and total_segments != expected_segments:
            self.errors.append(
                f"Segment count mismatch: {total_segments} in playlist, {expected_segments} expected"
            )

        for segment in playlist.segments:
            if not segment.uri or "/" in segment.uri:
                self.errors.append(f"Segment URI is not a bare file name: {segment.uri!r}")

        return ValidationResult(
            is_valid=not self.errors,
            total_segments=total_segments,
            target_duration=playlist.target_duration,
            is_endlist=playlist.is_endlist,
            errors=self.errors,
        )


def validate_playlist(content: str, expected_segments: int | None = None) -> ValidationResult:
    """Validate and raise ManifestValidationError when the playlist is unusable."""
    result = PlaylistValidator(content).validate(expected_segments)
    if not result.is_valid:
        raise ManifestValidationError(
            "HLS validation failed: " + ", ".join(result.errors),
            context={"errors": result.errors, "total_segments": result.total_segments},
            source="hls_streaming/playlist_validator",
        )
    return result
