from __future__ import annotations

import json

import httpx
import pytest
import respx

from clipscribe.backends.base import build_client
from clipscribe.backends.stt import AssemblyAISpeechStrategy, best_audio_url
from clipscribe.core.reference import parse_reference
from clipscribe.errors import StrategyError


REF = parse_reference("dQw4w9WgXcQ")
API = "https://api.assemblyai.com/v2"

PLAYER = {
    "playabilityStatus": {"status": "OK"},
    "videoDetails": {"title": "Spoken Video", "lengthSeconds": "30"},
    "streamingData": {
        "adaptiveFormats": [
            {"mimeType": "video/mp4; codecs=\"avc1\"", "bitrate": 900000, "url": "https://rr.example/video"},
            {"mimeType": "audio/webm; codecs=\"opus\"", "bitrate": 64000, "url": "https://rr.example/low"},
            {"mimeType": "audio/mp4; codecs=\"mp4a.40.2\"", "bitrate": 128000, "url": "https://rr.example/high"},
            {"mimeType": "audio/webm", "bitrate": 256000, "signatureCipher": "s=abc"},
        ]
    },
}


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _words(n):
    return [{"text": f"w{i}", "start": i * 300, "end": i * 300 + 250} for i in range(n)]


def _strategy(client, fake, **kwargs):
    return AssemblyAISpeechStrategy(
        client,
        api_key="aai-key",
        budget_s=kwargs.pop("budget_s", 110),
        poll_interval_s=3,
        clock=fake.clock,
        sleep=fake.sleep,
        **kwargs,
    )


def test_best_audio_url_picks_highest_bitrate_direct_stream():
    assert best_audio_url(PLAYER) == "https://rr.example/high"
    with pytest.raises(StrategyError):
        best_audio_url({"streamingData": {"adaptiveFormats": [PLAYER["streamingData"]["adaptiveFormats"][0]]}})


@respx.mock
def test_submit_poll_and_regroup():
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(200, json=PLAYER)
    )
    submit = respx.post(f"{API}/transcript").mock(
        return_value=httpx.Response(200, json={"id": "job1", "status": "queued"})
    )
    status = respx.get(f"{API}/transcript/job1").mock(
        side_effect=[
            httpx.Response(200, json={"id": "job1", "status": "processing"}),
            httpx.Response(
                200,
                json={
                    "id": "job1",
                    "status": "completed",
                    "language_code": "es",
                    "audio_duration": 30,
                    "words": _words(20),
                },
            ),
        ]
    )
    fake = FakeTime()
    with build_client() as client:
        outcome = _strategy(client, fake).attempt(REF)

    assert outcome.success, outcome.error
    assert outcome.strategy == "assemblyai"
    sent = json.loads(submit.calls.last.request.content)
    assert sent["audio_url"] == "https://rr.example/high"
    assert submit.calls.last.request.headers["authorization"] == "aai-key"
    assert status.call_count == 2
    assert fake.sleeps == [3, 3]
    data = outcome.data
    assert data.title == "Spoken Video"
    assert data.language == "es"
    assert data.is_auto_generated is True
    assert [len(s.text.split()) for s in data.segments] == [18, 2]


@respx.mock
def test_budget_exhausted_returns_pending_job():
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(200, json=PLAYER)
    )
    respx.post(f"{API}/transcript").mock(
        return_value=httpx.Response(200, json={"id": "job2", "status": "queued"})
    )
    status = respx.get(f"{API}/transcript/job2").mock(
        return_value=httpx.Response(200, json={"id": "job2", "status": "processing"})
    )
    fake = FakeTime()
    with build_client() as client:
        outcome = _strategy(client, fake, budget_s=10).attempt(REF)

    assert not outcome.success
    assert outcome.pending
    assert outcome.job_id == "assemblyai:job2:dQw4w9WgXcQ"
    assert status.call_count == 3
    assert fake.now < 10


@respx.mock
def test_transcription_error_fails_the_strategy():
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(200, json=PLAYER)
    )
    respx.post(f"{API}/transcript").mock(
        return_value=httpx.Response(200, json={"id": "job3", "status": "error", "error": "unsupported audio"})
    )
    with build_client() as client:
        outcome = _strategy(client, FakeTime()).attempt(REF)
    assert not outcome.success and not outcome.pending
    assert "unsupported audio" in outcome.error


@respx.mock
def test_poll_reports_processing_and_errors():
    respx.get(f"{API}/transcript/job4").mock(
        side_effect=[
            httpx.Response(200, json={"id": "job4", "status": "processing"}),
            httpx.Response(200, json={"id": "job4", "status": "error", "error": "bad"}),
            httpx.Response(500),
        ]
    )
    with build_client() as client:
        strategy = _strategy(client, FakeTime())
        pending = strategy.poll("job4", REF)
        failed = strategy.poll("job4")
        unreachable = strategy.poll("job4")
    assert pending.pending and pending.job_id == "assemblyai:job4:dQw4w9WgXcQ"
    assert failed.strategy == "assemblyai_failed"
    assert unreachable.strategy == "assemblyai_failed"


@respx.mock
def test_failed_status_check_keeps_the_submitted_job():
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(200, json=PLAYER)
    )
    respx.post(f"{API}/transcript").mock(
        return_value=httpx.Response(200, json={"id": "job9", "status": "queued"})
    )
    respx.get(f"{API}/transcript/job9").mock(return_value=httpx.Response(503))
    with build_client() as client:
        outcome = _strategy(client, FakeTime()).attempt(REF)

    assert not outcome.success
    assert outcome.pending
    assert outcome.job_id == "assemblyai:job9:dQw4w9WgXcQ"
