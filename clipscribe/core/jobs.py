"""Deferred upstream jobs.

A job reference is ``<provider>:<job id>[:<subject>]`` so a caller can poll
later without keeping any server-side state. The subject is the YouTube
video id, or ``u.`` followed by the unpadded urlsafe base64 of the original
URL for other platforms.
"""

from __future__ import annotations

import base64
from typing import Optional, Tuple

import httpx

from clipscribe.config import Settings
from clipscribe.core.reference import VIDEO_ID_RE, VideoRef, parse_reference
from clipscribe.errors import InvalidReferenceError
from clipscribe.schemas.transcript import AttemptOutcome


PROVIDERS = ("assemblyai", "supadata")
URL_SUBJECT_PREFIX = "u."


def _encode_subject(ref: VideoRef) -> str:
    if ref.is_youtube:
        return str(ref.video_id)
    token = base64.urlsafe_b64encode(ref.url.encode("utf-8")).decode("ascii")
    return URL_SUBJECT_PREFIX + token.rstrip("=")


def _decode_subject(subject: str) -> VideoRef:
    if VIDEO_ID_RE.match(subject):
        return parse_reference(subject)
    if not subject.startswith(URL_SUBJECT_PREFIX):
        raise InvalidReferenceError(f"Invalid job subject: {subject!r}")
    token = subject[len(URL_SUBJECT_PREFIX):]
    try:
        url = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode("utf-8")
    except ValueError as exc:
        raise InvalidReferenceError(f"Invalid job subject: {subject!r}") from exc
    return parse_reference(url)


def format_job_ref(provider: str, job_id: str, ref: Optional[VideoRef] = None) -> str:
    job = f"{provider}:{job_id}"
    return f"{job}:{_encode_subject(ref)}" if ref is not None else job


def parse_job_ref(job_ref: str) -> Tuple[str, str, Optional[VideoRef]]:
    parts = (job_ref or "").strip().split(":")
    if len(parts) not in (2, 3) or parts[0] not in PROVIDERS or not parts[1]:
        raise InvalidReferenceError(f"Invalid job id: {job_ref!r}")
    ref = _decode_subject(parts[2]) if len(parts) == 3 and parts[2] else None
    return parts[0], parts[1], ref


def poll_job(job_ref: str, settings: Settings, client: httpx.Client) -> AttemptOutcome:
    """Check a deferred job once; success, still pending, or ``<provider>_failed``."""
    provider, job_id, ref = parse_job_ref(job_ref)

    if provider == "assemblyai":
        from clipscribe.backends.stt import AssemblyAISpeechStrategy

        if not settings.assemblyai_api_key:
            return AttemptOutcome.failed("assemblyai_failed", "Speech-to-text is not configured.")
        stt = AssemblyAISpeechStrategy(
            client,
            api_key=settings.assemblyai_api_key,
            base_url=settings.assemblyai_base_url,
            timeout_s=settings.request_timeout_s,
        )
        return stt.poll(job_id, ref)

    from clipscribe.backends.aggregator import SupadataStrategy

    if not settings.supadata_api_key:
        return AttemptOutcome.failed("supadata_failed", "Transcript service is not available.")
    aggregator = SupadataStrategy(
        client,
        api_key=settings.supadata_api_key,
        base_url=settings.supadata_base_url,
        timeout_s=settings.request_timeout_s,
    )
    return aggregator.poll(job_id, ref)
