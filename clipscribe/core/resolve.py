"""Expand a playlist or channel URL into the videos it lists.

Scrapes the public page: the embedded ``ytInitialData`` JSON first, then
regex passes over the raw HTML for ids and titles the JSON walk missed.
"""

from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx

from clipscribe.core.jsonwalk import extract_json_object, text_of
from clipscribe.core.reference import VIDEO_ID_RE, youtube_watch_url
from clipscribe.errors import InvalidReferenceError, UpstreamError
from clipscribe.schemas.transcript import VideoEntry


MAX_WALK_DEPTH = 15

INITIAL_DATA_PATTERNS = [
    re.compile(r"var ytInitialData\s*=\s*(\{.*?\});\s*</script>", re.S),
    re.compile(r"window\[\"ytInitialData\"\]\s*=\s*(\{.*?\});", re.S),
]
VIDEO_ID_PATTERN = re.compile(r'"videoId"\s*:\s*"([a-zA-Z0-9_-]{11})"')
TITLE_RUNS_PATTERN = re.compile(
    r'"title"\s*:\s*\{\s*"runs"\s*:\s*\[\s*\{\s*"text"\s*:\s*"([^"]+)"\s*\}\s*\]\s*\}'
)

_PLAYLIST_RE = re.compile(r"[?&]list=([a-zA-Z0-9_-]+)")
_CHANNEL_RE = re.compile(r"youtube\.com/channel/(UC[a-zA-Z0-9_-]+)")
_HANDLE_RE = re.compile(r"youtube\.com/@([a-zA-Z0-9_.-]+)")
_USER_RE = re.compile(r"youtube\.com/user/([a-zA-Z0-9_.-]+)")


@dataclass(frozen=True)
class Collection:
    kind: str
    page_url: str


def classify_collection_url(url: str) -> Collection:
    url = (url or "").strip()
    if not url:
        raise InvalidReferenceError("Missing url parameter")

    match = _PLAYLIST_RE.search(url)
    if match:
        return Collection("playlist", f"https://www.youtube.com/playlist?list={match.group(1)}")
    match = _CHANNEL_RE.search(url)
    if match:
        return Collection("channel", f"https://www.youtube.com/channel/{match.group(1)}/videos")
    match = _HANDLE_RE.search(url)
    if match:
        return Collection("channel", f"https://www.youtube.com/@{match.group(1)}/videos")
    match = _USER_RE.search(url)
    if match:
        return Collection("channel", f"https://www.youtube.com/user/{match.group(1)}/videos")
    raise InvalidReferenceError("URL must be a YouTube playlist, channel, or @handle URL")


def decode_html_entities(value: str) -> str:
    return html_lib.unescape(value.replace("\\u0026", "&").replace('\\"', '"'))


def find_video_ids(obj: Any, videos: Dict[str, str], depth: int = 0) -> None:
    """Collect ``videoId`` -> title from a decoded page JSON tree, first sighting wins."""
    if depth > MAX_WALK_DEPTH or not isinstance(obj, (dict, list)):
        return
    if isinstance(obj, list):
        for item in obj:
            find_video_ids(item, videos, depth + 1)
        return

    video_id = obj.get("videoId")
    if isinstance(video_id, str) and VIDEO_ID_RE.match(video_id) and video_id not in videos:
        videos[video_id] = decode_html_entities(text_of(obj.get("title")))
    for value in obj.values():
        if isinstance(value, (dict, list)):
            find_video_ids(value, videos, depth + 1)


def extract_video_entries(page: str) -> List[VideoEntry]:
    videos: Dict[str, str] = {}

    data = extract_json_object(page, INITIAL_DATA_PATTERNS)
    if data is not None:
        find_video_ids(data, videos)

    # The n-th unique id in the HTML is paired with the n-th title-runs match.
    titles = TITLE_RUNS_PATTERN.findall(page)
    unique_ids = list(dict.fromkeys(VIDEO_ID_PATTERN.findall(page)))
    for index, video_id in enumerate(unique_ids):
        title = decode_html_entities(titles[index]) if index < len(titles) else ""
        if not videos.get(video_id):
            videos[video_id] = title

    return [
        VideoEntry(video_id=video_id, title=title, url=youtube_watch_url(video_id))
        for video_id, title in videos.items()
    ]


def resolve_collection(url: str, client: httpx.Client, timeout_s: float = 10.0) -> List[VideoEntry]:
    collection = classify_collection_url(url)
    try:
        resp = client.get(
            collection.page_url,
            headers={"Accept-Language": "en-US,en;q=0.9"},
            timeout=timeout_s,
        )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Failed to fetch {collection.kind} page: {exc}") from exc
    if not resp.is_success:
        raise UpstreamError(f"Failed to fetch {collection.kind} page")
    return extract_video_entries(resp.text)
