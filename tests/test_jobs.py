from __future__ import annotations

import httpx
import pytest
import respx

from clipscribe.config import Settings
from clipscribe.core.jobs import format_job_ref, parse_job_ref, poll_job
from clipscribe.core.reference import parse_reference
from clipscribe.errors import InvalidReferenceError


def test_job_reference_shapes():
    youtube = parse_reference("dQw4w9WgXcQ")
    assert format_job_ref("assemblyai", "abc", youtube) == "assemblyai:abc:dQw4w9WgXcQ"
    assert format_job_ref("supadata", "xyz") == "supadata:xyz"
    assert parse_job_ref("assemblyai:abc:dQw4w9WgXcQ") == ("assemblyai", "abc", youtube)
    assert parse_job_ref("supadata:xyz") == ("supadata", "xyz", None)


def test_job_reference_keeps_non_youtube_url():
    tiktok = parse_reference("https://www.tiktok.com/@creator/video/7312345678901234567?lang=en")
    job_ref = format_job_ref("supadata", "t-1", tiktok)
    assert job_ref.startswith("supadata:t-1:u.")
    assert job_ref.count(":") == 2
    assert "=" not in job_ref
    provider, job_id, ref = parse_job_ref(job_ref)
    assert (provider, job_id) == ("supadata", "t-1")
    assert ref.platform == "tiktok"
    assert ref.url == tiktok.url


@pytest.mark.parametrize(
    "value",
    ["", "abc", "other:abc", "supadata:", "a:b:c:d", "supadata:x:short", "supadata:x:u.!!"],
)
def test_invalid_job_references(value):
    with pytest.raises(InvalidReferenceError):
        parse_job_ref(value)


def test_poll_without_credentials_fails_with_provider_source():
    with httpx.Client() as client:
        outcome = poll_job("assemblyai:abc", Settings(), client)
    assert not outcome.success
    assert outcome.strategy == "assemblyai_failed"


@respx.mock
def test_poll_assemblyai_completed():
    respx.get("https://api.assemblyai.com/v2/transcript/abc").mock(
        return_value=httpx.Response(
            200,
            json={
                "id": "abc",
                "status": "completed",
                "language_code": "en",
                "audio_duration": 12.4,
                "words": [
                    {"text": "Hello", "start": 0, "end": 400},
                    {"text": "again.", "start": 450, "end": 900},
                ],
            },
        )
    )
    settings = Settings(assemblyai_api_key="aai")
    with httpx.Client() as client:
        outcome = poll_job("assemblyai:abc:dQw4w9WgXcQ", settings, client)
    assert outcome.success
    assert outcome.strategy == "assemblyai"
    assert outcome.data.source_id == "dQw4w9WgXcQ"
    assert outcome.data.duration_seconds == 12
    assert outcome.data.is_auto_generated is True
    assert [s.text for s in outcome.data.segments] == ["Hello again."]


@respx.mock
def test_poll_supadata_states():
    route = respx.get("https://api.supadata.ai/v1/transcript/job7").mock(
        side_effect=[
            httpx.Response(200, json={"status": "active"}),
            httpx.Response(200, json={"status": "failed", "error": "audio unavailable"}),
        ]
    )
    settings = Settings(supadata_api_key="sd")
    with httpx.Client() as client:
        pending = poll_job("supadata:job7", settings, client)
        failed = poll_job("supadata:job7", settings, client)

    assert route.call_count == 2
    assert pending.pending and pending.job_id == "supadata:job7"
    assert not failed.success and not failed.pending
    assert failed.strategy == "supadata_failed"
    assert "audio unavailable" in failed.error
