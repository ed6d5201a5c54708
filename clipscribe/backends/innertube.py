"""Strategies that talk to YouTube's own player and transcript endpoints.

The endpoints serve different data (or block outright) depending on which
client the request claims to be, so each call carries a client identity in
both the JSON context and the headers.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from clipscribe.backends.base import BROWSER_USER_AGENT, Strategy, check_status
from clipscribe.backends.oembed import fallback_title, lookup_title
from clipscribe.core.jsonwalk import find_values, first_value, text_of
from clipscribe.core.normalize import parse_engagement_panel, parse_json3, parse_vtt
from clipscribe.core.reference import VideoRef
from clipscribe.core.tracks import pick_best_track
from clipscribe.errors import StrategyError
from clipscribe.schemas.transcript import (
    AttemptOutcome,
    CaptionTrack,
    TranscriptResult,
    TranscriptSegment,
)


log = logging.getLogger(__name__)

INNERTUBE_BASE = "https://www.youtube.com/youtubei/v1"

CLIENTS: Dict[str, Dict[str, Any]] = {
    "WEB": {
        "context": {"clientName": "WEB", "clientVersion": "2.20250101.00.00"},
        "user_agent": BROWSER_USER_AGENT,
    },
    "ANDROID": {
        "context": {
            "clientName": "ANDROID",
            "clientVersion": "19.09.37",
            "androidSdkVersion": 30,
        },
        "user_agent": "com.google.android.youtube/19.09.37 (Linux; U; Android 11) gzip",
    },
    "WEB_EMBEDDED_PLAYER": {
        "context": {"clientName": "WEB_EMBEDDED_PLAYER", "clientVersion": "1.20250101.00.00"},
        "user_agent": BROWSER_USER_AGENT,
        "embedded": True,
    },
    "TVHTML5_SIMPLY_EMBEDDED_PLAYER": {
        "context": {"clientName": "TVHTML5_SIMPLY_EMBEDDED_PLAYER", "clientVersion": "2.0"},
        "user_agent": BROWSER_USER_AGENT,
        "embedded": True,
    },
}


def client_request(client_name: str) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Return the ``context`` payload and headers for an innertube client identity."""
    try:
        identity = CLIENTS[client_name]
    except KeyError as exc:
        raise StrategyError(f"unknown innertube client {client_name}") from exc
    context: Dict[str, Any] = {"client": {**identity["context"], "hl": "en", "gl": "US"}}
    if identity.get("embedded"):
        context["thirdParty"] = {"embedUrl": "https://www.google.com"}
    headers = {"Content-Type": "application/json", "User-Agent": identity["user_agent"]}
    return context, headers


def transcript_params(video_id: str) -> str:
    """Protobuf-encode ``{1: {2: video_id}}`` the way the web app does for get_transcript."""
    inner = b"\x0a" + bytes([len(video_id)]) + video_id.encode("ascii")
    return base64.b64encode(b"\x0a" + bytes([len(inner)]) + inner).decode("ascii")


def call_player(
    client: httpx.Client, video_id: str, client_name: str, timeout_s: float
) -> Dict[str, Any]:
    context, headers = client_request(client_name)
    resp = client.post(
        f"{INNERTUBE_BASE}/player",
        params={"prettyPrint": "false"},
        json={"videoId": video_id, "context": context},
        headers=headers,
        timeout=timeout_s,
    )
    check_status(resp, f"player ({client_name})")
    data = resp.json()
    if not isinstance(data, dict):
        raise StrategyError("player returned a non-object response")
    return data


def playability_error(data: Dict[str, Any]) -> Optional[str]:
    status = (data.get("playabilityStatus") or {}).get("status")
    if status in (None, "OK"):
        return None
    reason = (data.get("playabilityStatus") or {}).get("reason") or ""
    return f"playability {status}: {reason}".strip().rstrip(":")


def caption_tracks_from_list(raw_tracks: Any) -> List[CaptionTrack]:
    """Convert a ``captionTracks`` array (player API or watch page) to tracks."""
    tracks: List[CaptionTrack] = []
    for raw in raw_tracks or []:
        if not isinstance(raw, dict) or not raw.get("baseUrl"):
            continue
        tracks.append(
            CaptionTrack(
                url=str(raw["baseUrl"]).replace("\\u0026", "&"),
                language_code=str(raw.get("languageCode") or ""),
                name=text_of(raw.get("name")),
                is_auto_generated=raw.get("kind") == "asr",
                fmt="json3",
            )
        )
    return tracks


def fetch_track_segments(
    client: httpx.Client, track: CaptionTrack, timeout_s: float
) -> List[TranscriptSegment]:
    url = track.url
    params = None
    if track.fmt == "json3" and "fmt=" not in url:
        params = {"fmt": "json3"}
    resp = client.get(url, params=params, timeout=timeout_s)
    check_status(resp, "caption track")
    if not resp.text.strip():
        raise StrategyError("caption track body was empty")
    if track.fmt == "json3":
        return parse_json3(resp.json())
    return parse_vtt(resp.text)


def video_details(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[int]]:
    details = data.get("videoDetails") or {}
    title = details.get("title")
    length = details.get("lengthSeconds")
    try:
        duration = int(length) if length is not None else None
    except (TypeError, ValueError):
        duration = None
    return title, duration


def build_result(
    ref: VideoRef,
    segments: Sequence[TranscriptSegment],
    *,
    title: Optional[str],
    language: str,
    is_auto_generated: bool = False,
    duration_seconds: Optional[int] = None,
) -> TranscriptResult:
    return TranscriptResult(
        title=title or fallback_title(ref),
        source_id=ref.video_id or ref.url,
        video_url=ref.url,
        platform=ref.platform,
        language=language,
        is_auto_generated=is_auto_generated,
        duration_seconds=duration_seconds,
        segments=list(segments),
    )


class InnertubeTranscriptStrategy(Strategy):
    """``get_transcript`` as the web client: the transcript engagement panel."""

    name = "innertube_transcript"

    def __init__(self, client: httpx.Client, timeout_s: float = 10.0, language: str = "en") -> None:
        super().__init__(client, timeout_s)
        self.language = language

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        context, headers = client_request("WEB")
        data = self.post_json(
            f"{INNERTUBE_BASE}/get_transcript",
            {"context": context, "params": transcript_params(ref.video_id)},
            params={"prettyPrint": "false"},
            headers=headers,
        )
        segments = parse_engagement_panel(data)
        if not segments:
            raise StrategyError("engagement panel had no transcript cues", no_captions=True)

        label, language = _selected_language(data)
        return self.success(
            build_result(
                ref,
                segments,
                title=lookup_title(self.client, ref, self.timeout_s),
                language=language or self.language,
                is_auto_generated="auto-generated" in label.lower(),
            )
        )


# Menu titles come back in English because requests pin hl=en.
LANGUAGE_NAMES = {
    "arabic": "ar",
    "chinese": "zh",
    "dutch": "nl",
    "english": "en",
    "french": "fr",
    "german": "de",
    "hindi": "hi",
    "indonesian": "id",
    "italian": "it",
    "japanese": "ja",
    "korean": "ko",
    "polish": "pl",
    "portuguese": "pt",
    "russian": "ru",
    "spanish": "es",
    "turkish": "tr",
    "vietnamese": "vi",
}


def _selected_language(data: Dict[str, Any]) -> Tuple[str, Optional[str]]:
    """Label and language code of the selected entry in the panel's language menu."""
    for items in find_values(data, "subMenuItems"):
        for item in items if isinstance(items, list) else []:
            if not (isinstance(item, dict) and item.get("selected")):
                continue
            label = text_of(item.get("title"))
            code = first_value(item, "languageCode")
            if not code:
                name = label.split("(", 1)[0].strip().lower()
                code = LANGUAGE_NAMES.get(name.split()[0] if name else "")
            return label, str(code) if code else None
    return "", None


class InnertubePlayerStrategy(Strategy):
    """Player API caption-track list, fetched per client identity in turn."""

    name = "innertube_player"

    def __init__(
        self,
        client: httpx.Client,
        timeout_s: float = 10.0,
        language: str = "en",
        client_names: Sequence[str] = ("ANDROID", "WEB_EMBEDDED_PLAYER"),
    ) -> None:
        super().__init__(client, timeout_s)
        self.language = language
        self.client_names = list(client_names)

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        errors: List[str] = []
        no_captions = True
        for client_name in self.client_names:
            try:
                data = call_player(self.client, ref.video_id, client_name, self.timeout_s)
                blocked = playability_error(data)
                if blocked:
                    raise StrategyError(blocked)
                raw_tracks = next(find_values(data.get("captions") or {}, "captionTracks"), None)
                tracks = caption_tracks_from_list(raw_tracks)
                if not tracks:
                    raise StrategyError("no caption tracks listed", no_captions=True)
                track = pick_best_track(tracks, self.language)
                segments = fetch_track_segments(self.client, track, self.timeout_s)
                if not segments:
                    raise StrategyError("caption track parsed to zero segments")
            except (StrategyError, httpx.HTTPError, ValueError, AttributeError) as exc:
                no_captions = no_captions and getattr(exc, "no_captions", False)
                errors.append(f"{client_name}: {exc}")
                log.debug("player client %s failed for %s: %s", client_name, ref.video_id, exc)
                continue

            title, duration = video_details(data)
            return self.success(
                build_result(
                    ref,
                    segments,
                    title=title,
                    language=track.language_code or self.language,
                    is_auto_generated=track.is_auto_generated,
                    duration_seconds=duration,
                )
            )

        raise StrategyError(
            "; ".join(errors) or "no player clients configured",
            no_captions=no_captions and bool(errors),
        )
