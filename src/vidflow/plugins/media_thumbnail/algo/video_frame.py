"""Single-frame capture using FFmpeg."""

import math
import subprocess
from pathlib import Path

MAX_TIMESTAMP_SECONDS = 10


def frame_timestamp(duration_seconds: float) -> int:
    """Capture point for a preview frame: a third into the clip, at most 10 s."""
    if duration_seconds <= 0 or not math.isfinite(duration_seconds):
        return 0
    return min(math.floor(duration_seconds / 3), MAX_TIMESTAMP_SECONDS)


def video_frame(
    *,
    input_path: str | Path,
    output_path: str | Path,
    timestamp_seconds: int = 0,
) -> str:
    """
    Capture one frame of a video as a JPEG.

    Args:
        input_path: Path to input video or transport-stream segment
        output_path: Path to output image (JPG)
        timestamp_seconds: Offset of the captured frame

    Returns:
        Output file path as string

    Raises:
        FileNotFoundError: If input video does not exist
        RuntimeError: If FFmpeg command fails
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    if not output_path.parent.exists():
        raise FileNotFoundError(f"Output directory not found: {output_path.parent}")

    ffmpeg_command = [
        "ffmpeg",
        "-loglevel",
        "error",
        "-y",
        "-ss",
        str(max(timestamp_seconds, 0)),
        "-i",
        str(input_path),
        "-frames:v",
        "1",
        "-q:v",
        "2",
        str(output_path),
    ]

    result = subprocess.run(
        ffmpeg_command,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=False,
    )

    if result.returncode != 0:
        raise RuntimeError(f"FFmpeg command failed: {result.stderr}")

    return str(output_path)
