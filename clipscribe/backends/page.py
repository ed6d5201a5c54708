from __future__ import annotations

import html as html_lib
import json
import re
from typing import Any, Optional

import httpx

from clipscribe.backends.base import BROWSER_USER_AGENT, Strategy, check_status
from clipscribe.backends.innertube import (
    build_result,
    caption_tracks_from_list,
    fetch_track_segments,
    playability_error,
    video_details,
)
from clipscribe.core.jsonwalk import extract_json_object, first_value
from clipscribe.core.reference import VideoRef
from clipscribe.core.tracks import pick_best_track
from clipscribe.errors import StrategyError
from clipscribe.schemas.transcript import AttemptOutcome


# The embedding format is not a public contract; newest layout first.
PLAYER_RESPONSE_PATTERNS = [
    re.compile(r"var ytInitialPlayerResponse\s*=\s*(\{.+?\})\s*;\s*(?:var meta|</script>)", re.S),
    re.compile(r"ytInitialPlayerResponse\s*=\s*(\{.+?\})\s*;\s*</script>", re.S),
    re.compile(r"window\[\"ytInitialPlayerResponse\"\]\s*=\s*(\{.+?\})\s*;", re.S),
]

CAPTION_TRACK_PATTERNS = [
    re.compile(r'"captionTracks":(\[.*?\]),"audioTracks"', re.S),
    re.compile(r'"captionTracks":(\[.*?\])\s*[,}]', re.S),
]

TITLE_RE = re.compile(r"<title>(.*?)</title>", re.S)


def detect_soft_block(final_url: str, page: str) -> Optional[str]:
    """Name the interstitial served instead of a watch page, if any."""
    if "consent.youtube.com" in final_url or 'action="https://consent.youtube.com' in page:
        return "consent interstitial"
    if "accounts.google.com/ServiceLogin" in final_url or "Sign in to confirm" in page:
        return "sign-in interstitial"
    if "/sorry/" in final_url or "g-recaptcha" in page:
        return "captcha challenge"
    return None


def _caption_tracks_by_regex(page: str) -> Any:
    for pattern in CAPTION_TRACK_PATTERNS:
        match = pattern.search(page)
        if not match:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
    return None


def _page_title(page: str) -> Optional[str]:
    match = TITLE_RE.search(page)
    if not match:
        return None
    title = html_lib.unescape(match.group(1)).replace(" - YouTube", "").strip()
    return title or None


class WatchPageStrategy(Strategy):
    name = "watch_page"

    def __init__(self, client: httpx.Client, timeout_s: float = 10.0, language: str = "en") -> None:
        super().__init__(client, timeout_s)
        self.language = language

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        resp = self.client.get(
            "https://www.youtube.com/watch",
            params={"v": ref.video_id, "hl": "en"},
            headers={
                "User-Agent": BROWSER_USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
            timeout=self.timeout_s,
        )
        check_status(resp, "watch page")
        page = resp.text

        blocked = detect_soft_block(str(resp.url), page)
        if blocked:
            raise StrategyError(f"blocked by {blocked}")

        title: Optional[str] = None
        duration: Optional[int] = None
        player = extract_json_object(page, PLAYER_RESPONSE_PATTERNS)
        if isinstance(player, dict):
            unplayable = playability_error(player)
            if unplayable and "LOGIN_REQUIRED" in unplayable:
                raise StrategyError(unplayable)
            raw_tracks = first_value(player.get("captions") or {}, "captionTracks")
            title, duration = video_details(player)
        else:
            raw_tracks = _caption_tracks_by_regex(page)

        tracks = caption_tracks_from_list(raw_tracks)
        if not tracks:
            raise StrategyError("no caption tracks in watch page", no_captions=True)

        track = pick_best_track(tracks, self.language)
        segments = fetch_track_segments(self.client, track, self.timeout_s)
        if not segments:
            raise StrategyError("caption track parsed to zero segments")

        return self.success(
            build_result(
                ref,
                segments,
                title=title or _page_title(page),
                language=track.language_code or self.language,
                is_auto_generated=track.is_auto_generated,
                duration_seconds=duration,
            )
        )
