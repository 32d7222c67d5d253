"""Classification of a submitted video URL into a file type or a known platform."""

import re

from pydantic import BaseModel

URL_PATTERNS: dict[str, re.Pattern[str]] = {
    "youtube": re.compile(
        r"(?:youtu\.be/|youtube(?:-nocookie|education)?\.com/(?:embed/|v/|watch/|watch\?v=|watch\?.+&v=|shorts/|live/))((\w|-){11})"
        r"|youtube\.com/playlist\?list=|youtube\.com/user/"
    ),
    "soundcloud": re.compile(r"(?:soundcloud\.com|snd\.sc)/[^.]+$"),
    "vimeo": re.compile(r"vimeo\.com/(?!progressive_redirect).+"),
    "mux": re.compile(r"stream\.mux\.com/(?!\w+\.m3u8)(\w+)"),
    "facebook": re.compile(r"^https?://(www\.)?facebook\.com.*/(video(s)?|watch|story)(\.php?|/).+$"),
    "facebook_watch": re.compile(r"^https?://fb\.watch/.+$"),
    "streamable": re.compile(r"streamable\.com/([a-z0-9]+)$"),
    "wistia": re.compile(r"(?:wistia\.(?:com|net)|wi\.st)/(?:medias|embed)/(?:iframe/)?([^?]+)"),
    "twitch_video": re.compile(r"(?:www\.|go\.)?twitch\.tv/videos/(\d+)($|\?)"),
    "twitch_channel": re.compile(r"(?:www\.|go\.)?twitch\.tv/([a-zA-Z0-9_]+)($|\?)"),
    "dailymotion": re.compile(
        r"^(?:(?:https?):)?(?://)?(?:www\.)?(?:(?:dailymotion\.com(?:/embed)?/video)|dai\.ly)/([a-zA-Z0-9]+)(?:_[\w_-]+)?(?:[\w.#_-]+)?"
    ),
    "mixcloud": re.compile(r"mixcloud\.com/([^/]+/[^/]+)"),
    "vidyard": re.compile(r"vidyard.com/(?:watch/)?([a-zA-Z0-9-_]+)"),
}

# only containers that HLS conversion can copy without re-encoding
FILE_EXTENSION_PATTERNS: dict[str, re.Pattern[str]] = {
    "video": re.compile(r"\.(mp4|mov|m4v|ts)($|\?)", re.IGNORECASE),
    "hls": re.compile(r"\.(m3u8)($|\?)", re.IGNORECASE),
}


class MediaSource(BaseModel):
    file_type: str | None = None
    platform: str | None = None


def classify_media_url(url: str) -> MediaSource:
    for file_type, pattern in FILE_EXTENSION_PATTERNS.items():
        if pattern.search(url):
            return MediaSource(file_type=file_type)
    for platform, pattern in URL_PATTERNS.items():
        if pattern.search(url):
            return MediaSource(platform=platform)
    return MediaSource()
