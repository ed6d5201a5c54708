from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

from clipscribe.errors import InvalidReferenceError


VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

PLATFORM_HOSTS = {
    "youtube": {"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be"},
    "tiktok": {"tiktok.com", "www.tiktok.com", "vm.tiktok.com"},
    "instagram": {"instagram.com", "www.instagram.com"},
    "facebook": {"facebook.com", "www.facebook.com", "m.facebook.com", "fb.watch"},
    "twitter": {"x.com", "www.x.com", "twitter.com", "www.twitter.com"},
}

_PATH_ID_PREFIXES = ("/embed/", "/shorts/", "/live/", "/v/")


@dataclass(frozen=True)
class VideoRef:
    url: str
    platform: str
    video_id: Optional[str] = None

    @property
    def is_youtube(self) -> bool:
        return self.platform == "youtube" and self.video_id is not None


def detect_platform(host: str) -> Optional[str]:
    host = host.lower()
    for platform, hosts in PLATFORM_HOSTS.items():
        if host in hosts:
            return platform
    return None


def _youtube_id(parsed) -> Optional[str]:
    host = parsed.hostname or ""
    if host == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif parsed.path == "/watch":
        candidate = (parse_qs(parsed.query).get("v") or [""])[0]
    else:
        candidate = ""
        for prefix in _PATH_ID_PREFIXES:
            if parsed.path.startswith(prefix):
                candidate = parsed.path[len(prefix):].split("/")[0]
                break
    return candidate if VIDEO_ID_RE.match(candidate or "") else None


def youtube_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def parse_reference(value: str) -> VideoRef:
    """Turn a bare video id or a URL into a :class:`VideoRef`.

    Raises :class:`InvalidReferenceError` for empty input, hosts outside the
    allow-list and YouTube URLs without a recognisable video id.
    """
    value = (value or "").strip()
    if not value:
        raise InvalidReferenceError("Missing video URL. Use ?url= or ?v= parameter.")

    if VIDEO_ID_RE.match(value):
        return VideoRef(url=youtube_watch_url(value), platform="youtube", video_id=value)

    if "://" not in value:
        raise InvalidReferenceError("Invalid video ID")

    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidReferenceError("Invalid video URL")

    platform = detect_platform(parsed.hostname)
    if platform is None:
        raise InvalidReferenceError(
            "Unsupported platform. Supported: YouTube, TikTok, Instagram, Facebook, X/Twitter."
        )

    if platform == "youtube":
        video_id = _youtube_id(parsed)
        if video_id is None:
            raise InvalidReferenceError("Could not find a video id in the YouTube URL")
        return VideoRef(url=youtube_watch_url(video_id), platform=platform, video_id=video_id)

    return VideoRef(url=value, platform=platform)
