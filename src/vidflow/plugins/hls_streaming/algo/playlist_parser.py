"""M3U8 media-playlist rewriting.

A single forward pass over the manifest lines classifies every ``#EXTINF``
segment as included or excluded, keeps the structural tags a player needs and
rewrites included segment URIs to their basename, which is the flat layout the
segments are uploaded with.
"""

import math
import posixpath
import re
from collections.abc import Iterable
from urllib.parse import urljoin, urlparse

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from ....utils.fetch import DEFAULT_TIMEOUT_SECONDS, fetch_text

ESSENTIAL_TAGS: frozenset[str] = frozenset(
    {
        "#EXTM3U",
        "#EXT-X-VERSION",
        "#EXT-X-TARGETDURATION",
        "#EXT-X-MEDIA-SEQUENCE",
        "#EXT-X-ENDLIST",
    }
)

EXTINF = "#EXTINF"
SEGMENT_EXTENSION = ".ts"


class HLSSegment(BaseModel):
    url: str = Field(description="Absolute segment URL")
    name: str = Field(description="Basename used in storage and in the rewritten manifest")
    duration: float = Field(default=0.0, ge=0, description="Duration from #EXTINF, seconds")


class SegmentSplit(BaseModel):
    included: list[HLSSegment] = Field(default_factory=list)
    excluded: list[HLSSegment] = Field(default_factory=list)


class ParsedPlaylist(BaseModel):
    rewritten_manifest: str
    segments: SegmentSplit
    total_duration_seconds: int = Field(ge=0)


def segment_basename(url: str) -> str:
    """Last path component of a URL, without query or fragment."""
    return posixpath.basename(urlparse(url).path)


def _tag_name(line: str) -> str:
    return line.split(":", 1)[0]


def _parse_extinf_duration(line: str) -> float:
    """``#EXTINF:9.009,title`` -> 9.009. Unparseable durations count as zero."""
    value = line.split(":", 1)[1] if ":" in line else ""
    value = value.split(",", 1)[0].strip()
    try:
        duration = float(value)
    except ValueError:
        logger.warning(f"Invalid #EXTINF duration: {line!r}")
        return 0.0
    if not math.isfinite(duration) or duration < 0:
        logger.warning(f"Invalid #EXTINF duration: {line!r}")
        return 0.0
    return duration


def _is_excluded(url: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(pattern.search(url) for pattern in patterns)


def parse_content(
    content: str,
    manifest_url: str,
    exclude_patterns: Iterable[re.Pattern[str]] = (),
) -> ParsedPlaylist:
    """Rewrite a media playlist and classify its segments.

    Args:
        content: Manifest text
        manifest_url: URL the manifest was fetched from; relative URIs resolve against it
        exclude_patterns: A segment whose resolved URL matches any pattern is dropped

    Returns:
        ParsedPlaylist. An empty ``included`` list is not an error here.
    """
    patterns = list(exclude_patterns)
    lines = [line.strip() for line in content.splitlines()]
    lines = [line for line in lines if line]

    output: list[str] = []
    split = SegmentSplit()
    total = 0

    i = 0
    while i < len(lines):
        line = lines[i]

        if line.startswith("#"):
            tag = _tag_name(line)

            if tag in ESSENTIAL_TAGS:
                output.append(line)

            elif tag == EXTINF:
                uri = lines[i + 1] if i + 1 < len(lines) else None
                if uri is None or uri.startswith("#") or SEGMENT_EXTENSION not in uri:
                    # next line is left for the main loop
                    logger.debug(f"Dropping #EXTINF without segment URI: {line!r}")
                    i += 1
                    continue

                url = urljoin(manifest_url, uri)
                segment = HLSSegment(
                    url=url,
                    name=segment_basename(url),
                    duration=_parse_extinf_duration(line),
                )
                if _is_excluded(url, patterns):
                    split.excluded.append(segment)
                else:
                    split.included.append(segment)
                    output.append(line)
                    output.append(segment.name)
                    total += math.floor(segment.duration)
                i += 2
                continue

        i += 1

    return ParsedPlaylist(
        rewritten_manifest="\n".join(output) + "\n",
        segments=split,
        total_duration_seconds=total,
    )


async def parse(
    client: httpx.AsyncClient,
    manifest_url: str,
    exclude_patterns: Iterable[re.Pattern[str]] = (),
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ParsedPlaylist:
    """Fetch a manifest and rewrite it. Fetch errors propagate unchanged."""
    content = await fetch_text(client, manifest_url, timeout=timeout)
    parsed = parse_content(content, manifest_url, exclude_patterns)

    logger.bind(
        manifest_url=manifest_url,
        included=len(parsed.segments.included),
        excluded=len(parsed.segments.excluded),
    ).info(f"Parsed playlist, total duration {parsed.total_duration_seconds}s")
    return parsed
