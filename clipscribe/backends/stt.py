"""Speech-to-text fallback.

Pulls a direct audio stream URL from the player API, hands it to AssemblyAI
and polls until the job finishes or the wall-clock budget runs out. The
budget keeps the whole request under the host's execution limit; on timeout
the job reference is returned so the caller can poll out of band.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from clipscribe.backends.base import Strategy
from clipscribe.backends.innertube import call_player, playability_error, video_details
from clipscribe.core.jobs import format_job_ref
from clipscribe.core.reference import VideoRef
from clipscribe.core.regroup import regroup_words
from clipscribe.errors import StrategyError
from clipscribe.schemas.transcript import AttemptOutcome, TranscriptResult, TranscriptSegment


log = logging.getLogger(__name__)

DONE_STATUSES = ("completed", "error")


def best_audio_url(player: Dict[str, Any]) -> str:
    formats = (player.get("streamingData") or {}).get("adaptiveFormats") or []
    candidates = [
        f
        for f in formats
        if str(f.get("mimeType") or "").startswith("audio/") and f.get("url")
    ]
    if not candidates:
        raise StrategyError("no direct audio stream in player response")
    return str(max(candidates, key=lambda f: int(f.get("bitrate") or 0))["url"])


class AssemblyAISpeechStrategy(Strategy):
    name = "assemblyai"

    def __init__(
        self,
        client: httpx.Client,
        api_key: str,
        base_url: str = "https://api.assemblyai.com/v2",
        timeout_s: float = 10.0,
        budget_s: float = 110.0,
        poll_interval_s: float = 3.0,
        player_client: str = "ANDROID",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(client, timeout_s)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.budget_s = budget_s
        self.poll_interval_s = poll_interval_s
        self.player_client = player_client
        self._clock = clock
        self._sleep = sleep

    @property
    def _headers(self) -> Dict[str, str]:
        return {"authorization": self.api_key}

    def _status(self, job_id: str) -> Dict[str, Any]:
        return self.get_json(f"{self.base_url}/transcript/{job_id}", headers=self._headers)

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        deadline = self._clock() + self.budget_s

        player = call_player(self.client, ref.video_id, self.player_client, self.timeout_s)
        blocked = playability_error(player)
        if blocked:
            raise StrategyError(blocked)
        audio_url = best_audio_url(player)
        title, duration = video_details(player)

        job = self.post_json(
            f"{self.base_url}/transcript",
            {"audio_url": audio_url, "language_detection": True},
            headers=self._headers,
        )
        job_id = str(job["id"])
        job_ref = format_job_ref(self.name, job_id, ref)
        log.info("submitted %s for speech-to-text as %s", ref.video_id, job_ref)

        data = job
        while data.get("status") not in DONE_STATUSES:
            if self._clock() + self.poll_interval_s >= deadline:
                return AttemptOutcome.deferred(
                    self.name, job_ref, "Transcription is still processing."
                )
            self._sleep(self.poll_interval_s)
            try:
                data = self._status(job_id)
            except (StrategyError, httpx.HTTPError, ValueError) as exc:
                # The job is queued upstream; hand it back so it can be polled later.
                log.warning("status check for %s failed: %s", job_ref, exc)
                return AttemptOutcome.deferred(
                    self.name, job_ref, "Transcription is still processing."
                )

        if data["status"] == "error":
            raise StrategyError(f"transcription failed: {data.get('error') or 'unknown error'}")
        return self.success(self._result(data, ref, title, duration))

    def poll(self, job_id: str, ref: Optional[VideoRef] = None) -> AttemptOutcome:
        """Single status check for a job submitted by an earlier request."""
        try:
            data = self._status(job_id)
        except (StrategyError, httpx.HTTPError, ValueError) as exc:
            return AttemptOutcome.failed(f"{self.name}_failed", f"Could not check job: {exc}")
        status = data.get("status")
        if status == "error":
            return AttemptOutcome.failed(
                f"{self.name}_failed", f"Transcription failed: {data.get('error') or 'unknown error'}"
            )
        if status != "completed":
            return AttemptOutcome.deferred(
                self.name, format_job_ref(self.name, job_id, ref), "Transcription is still processing."
            )
        try:
            result = self._result(data, ref, None, None, job_id=job_id)
        except (StrategyError, ValueError) as exc:
            return AttemptOutcome.failed(f"{self.name}_failed", str(exc))
        return self.success(result)

    def _result(
        self,
        data: Dict[str, Any],
        ref: Optional[VideoRef],
        title: Optional[str],
        duration: Optional[int],
        job_id: Optional[str] = None,
    ) -> TranscriptResult:
        segments = regroup_words(data.get("words") or [])
        if not segments and str(data.get("text") or "").strip():
            audio_duration = float(data.get("audio_duration") or 0)
            segments = [TranscriptSegment(start=0.0, duration=audio_duration, text=data["text"])]
        if not segments:
            raise StrategyError("transcription finished with no words")

        if duration is None and data.get("audio_duration"):
            duration = int(float(data["audio_duration"]))
        return TranscriptResult(
            title=title or (f"YouTube video {ref.video_id}" if ref else "Audio transcript"),
            source_id=(ref.video_id if ref else None) or job_id or str(data.get("id")),
            video_url=ref.url if ref else "",
            platform=ref.platform if ref else "youtube",
            language=str(data.get("language_code") or "en"),
            is_auto_generated=True,
            duration_seconds=duration,
            segments=segments,
        )
