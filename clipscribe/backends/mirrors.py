from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Sequence
from urllib.parse import urljoin

import httpx

from clipscribe.backends.base import Strategy, check_status
from clipscribe.backends.innertube import build_result, fetch_track_segments
from clipscribe.backends.oembed import lookup_title
from clipscribe.core.reference import VideoRef
from clipscribe.core.tracks import pick_best_track
from clipscribe.errors import StrategyError
from clipscribe.schemas.transcript import AttemptOutcome, CaptionTrack


log = logging.getLogger(__name__)

INSTANCE_ERRORS = (StrategyError, httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


class MirrorStrategy(Strategy):
    """Walk a list of public mirror instances until one yields captions."""

    def __init__(
        self,
        client: httpx.Client,
        instances: Sequence[str],
        timeout_s: float = 8.0,
        language: str = "en",
    ) -> None:
        super().__init__(client, timeout_s)
        self.instances = [i.rstrip("/") for i in instances]
        self.language = language

    @abstractmethod
    def from_instance(self, instance: str, ref: VideoRef) -> AttemptOutcome:  # pragma: no cover
        raise NotImplementedError

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        if not self.instances:
            raise StrategyError(f"no {self.name} instances configured")
        last_error = ""
        no_captions = True
        for instance in self.instances:
            try:
                return self.from_instance(instance, ref)
            except INSTANCE_ERRORS as exc:
                no_captions = no_captions and getattr(exc, "no_captions", False)
                last_error = f"{instance}: {exc}"
                log.debug("%s instance failed: %s", self.name, last_error)
        raise StrategyError(
            f"all {len(self.instances)} instances failed; last: {last_error}",
            no_captions=no_captions,
        )

    @staticmethod
    def expect_object(data: Any, instance: str) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise StrategyError(f"{instance} returned {type(data).__name__}, expected an object")
        return data

    def segments_for(self, tracks: List[CaptionTrack]):
        if not tracks:
            raise StrategyError("no caption tracks listed", no_captions=True)
        track = pick_best_track(tracks, self.language)
        segments = fetch_track_segments(self.client, track, self.timeout_s)
        if not segments:
            raise StrategyError("caption track parsed to zero segments")
        return track, segments


class InvidiousStrategy(MirrorStrategy):
    name = "invidious"

    def from_instance(self, instance: str, ref: VideoRef) -> AttemptOutcome:
        data = self.expect_object(
            self.get_json(f"{instance}/api/v1/captions/{ref.video_id}"), instance
        )
        tracks = []
        for caption in data.get("captions") or []:
            if not isinstance(caption, dict):
                continue
            label = str(caption.get("label") or "")
            tracks.append(
                CaptionTrack(
                    url=urljoin(instance + "/", str(caption["url"])),
                    language_code=str(caption.get("languageCode") or caption.get("language_code") or ""),
                    name=label,
                    is_auto_generated="auto-generated" in label.lower(),
                    fmt="vtt",
                )
            )
        track, segments = self.segments_for(tracks)
        return self.success(
            build_result(
                ref,
                segments,
                title=lookup_title(self.client, ref, self.timeout_s),
                language=track.language_code or self.language,
                is_auto_generated=track.is_auto_generated,
            )
        )


class PipedStrategy(MirrorStrategy):
    name = "piped"

    def from_instance(self, instance: str, ref: VideoRef) -> AttemptOutcome:
        resp = self.client.get(f"{instance}/streams/{ref.video_id}", timeout=self.timeout_s)
        check_status(resp, instance)
        data = self.expect_object(resp.json(), instance)
        if data.get("error"):
            raise StrategyError(str(data.get("message") or data["error"]))

        tracks = [
            CaptionTrack(
                url=str(sub["url"]),
                language_code=str(sub.get("code") or ""),
                name=str(sub.get("name") or ""),
                is_auto_generated=bool(sub.get("autoGenerated")),
                fmt="json3" if "json" in str(sub.get("mimeType") or "") else "vtt",
            )
            for sub in data.get("subtitles") or []
            if isinstance(sub, dict) and sub.get("url")
        ]
        track, segments = self.segments_for(tracks)
        duration = data.get("duration")
        return self.success(
            build_result(
                ref,
                segments,
                title=data.get("title"),
                language=track.language_code or self.language,
                is_auto_generated=track.is_auto_generated,
                duration_seconds=int(duration) if isinstance(duration, (int, float)) and duration > 0 else None,
            )
        )
