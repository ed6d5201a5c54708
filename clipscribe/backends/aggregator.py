"""Paid transcript aggregator (Supadata).

The only strategy that covers non-YouTube platforms. Large videos are
processed asynchronously upstream: a 202 carries a job id that the caller
polls later.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from clipscribe.backends.base import Strategy
from clipscribe.backends.oembed import lookup_title
from clipscribe.core.jobs import format_job_ref
from clipscribe.core.normalize import normalize_aggregator_content
from clipscribe.core.reference import VideoRef
from clipscribe.errors import StrategyError, TransientUpstreamError
from clipscribe.schemas.transcript import AttemptOutcome, TranscriptResult


log = logging.getLogger(__name__)

NO_CAPTIONS = "This video doesn't have captions available."
PROCESSING = "This video is being processed. Please try again in a few seconds."
PENDING_STATUSES = ("queued", "active", "processing")


class SupadataStrategy(Strategy):
    name = "supadata"
    youtube_only = False

    def __init__(
        self,
        client: httpx.Client,
        api_key: str,
        base_url: str = "https://api.supadata.ai/v1",
        timeout_s: float = 10.0,
        retry_delay_s: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(client, timeout_s)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep

    def _request(self, url: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        try:
            resp = self.client.get(
                url, params=params, headers={"x-api-key": self.api_key}, timeout=self.timeout_s
            )
        except httpx.HTTPError as exc:
            raise TransientUpstreamError(f"Transcript service error: {exc}") from exc
        if resp.status_code == 202 or resp.is_success:
            return resp
        log.info("supadata HTTP %s: %s", resp.status_code, resp.text[:200])
        raise TransientUpstreamError(f"Transcript service error ({resp.status_code})")

    def _request_with_retry(self, url: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self.retry_delay_s),
            retry=retry_if_exception_type(TransientUpstreamError),
            sleep=self._sleep,
            before_sleep=before_sleep_log(log, logging.INFO),
            reraise=True,
        )
        return retrying(self._request, url, params)

    def fetch(self, ref: VideoRef) -> AttemptOutcome:
        resp = self._request_with_retry(f"{self.base_url}/transcript", {"url": ref.url})
        if resp.status_code == 202:
            job_id = _job_id(resp)
            return AttemptOutcome.deferred(
                self.name,
                format_job_ref(self.name, job_id, ref) if job_id else None,
                PROCESSING,
            )
        result = self._result(resp.json(), ref)
        log.info(
            "supadata (%s): %d segments, lang=%s", ref.platform, result.total_segments, result.language
        )
        return self.success(result)

    def poll(self, job_id: str, ref: Optional[VideoRef] = None) -> AttemptOutcome:
        """Check an asynchronous transcript job once."""
        failed = f"{self.name}_failed"
        try:
            resp = self._request(f"{self.base_url}/transcript/{job_id}")
            data = resp.json()
        except (StrategyError, ValueError) as exc:
            return AttemptOutcome.failed(failed, f"Could not check job: {exc}")

        status = str(data.get("status") or "completed") if isinstance(data, dict) else "completed"
        if resp.status_code == 202 or status in PENDING_STATUSES:
            return AttemptOutcome.deferred(self.name, format_job_ref(self.name, job_id, ref), PROCESSING)
        if status == "failed":
            error = data.get("error") or "unknown error"
            return AttemptOutcome.failed(failed, f"Transcription failed: {error}")

        if ref is None:
            ref = VideoRef(url="", platform="youtube", video_id=None)
        payload = data.get("result", data) if isinstance(data, dict) else data
        try:
            result = self._result(payload, ref, source_id=job_id)
        except StrategyError as exc:
            return AttemptOutcome.failed(failed, str(exc), no_captions=exc.no_captions)
        return self.success(result)

    def _result(self, data: Any, ref: VideoRef, source_id: Optional[str] = None) -> TranscriptResult:
        segments, language = normalize_aggregator_content(data)
        if not segments:
            raise StrategyError(NO_CAPTIONS, no_captions=True)
        title = lookup_title(self.client, ref, self.timeout_s) if ref.url else None
        return TranscriptResult(
            title=title or "Video",
            source_id=ref.video_id or source_id or ref.url,
            video_url=ref.url,
            platform=ref.platform,
            language=language or "en",
            is_auto_generated=False,
            duration_seconds=None,
            segments=segments,
        )


def _job_id(resp: httpx.Response) -> Optional[str]:
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    job_id = data.get("jobId") or data.get("job_id") or data.get("id")
    return str(job_id) if job_id else None
