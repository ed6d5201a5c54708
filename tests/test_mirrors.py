from __future__ import annotations

import httpx
import respx

from clipscribe.backends.base import build_client
from clipscribe.backends.mirrors import InvidiousStrategy, PipedStrategy
from clipscribe.core.reference import parse_reference


REF = parse_reference("dQw4w9WgXcQ")

VTT = """WEBVTT

00:00:00.000 --> 00:00:02.000
first line

00:00:02.000 --> 00:00:04.500
second line
"""


def _invidious_responder(request: httpx.Request) -> httpx.Response:
    if "label" in request.url.params:
        assert request.url.params["label"] == "English"
        return httpx.Response(200, text=VTT)
    return httpx.Response(
        200,
        json={
            "captions": [
                {
                    "label": "English (auto-generated)",
                    "languageCode": "en",
                    "url": "/api/v1/captions/dQw4w9WgXcQ?label=English%20%28auto-generated%29",
                },
                {"label": "English", "languageCode": "en", "url": "/api/v1/captions/dQw4w9WgXcQ?label=English"},
            ]
        },
    )


@respx.mock
def test_invidious_skips_failing_instance():
    bad = respx.get(host="bad.example").mock(return_value=httpx.Response(502))
    respx.get(host="inv.example").mock(side_effect=_invidious_responder)
    respx.get(host="www.youtube.com", path="/oembed").mock(
        return_value=httpx.Response(200, json={"title": "From oEmbed"})
    )
    with build_client() as client:
        strategy = InvidiousStrategy(client, ["https://bad.example/", "https://inv.example"])
        outcome = strategy.attempt(REF)

    assert bad.called
    assert outcome.success, outcome.error
    assert outcome.strategy == "invidious"
    assert outcome.data.title == "From oEmbed"
    assert outcome.data.is_auto_generated is False
    assert [(s.start, s.duration, s.text) for s in outcome.data.segments] == [
        (0.0, 2.0, "first line"),
        (2.0, 2.5, "second line"),
    ]


@respx.mock
def test_piped_uses_stream_metadata():
    respx.get("https://piped.example/streams/dQw4w9WgXcQ").mock(
        return_value=httpx.Response(
            200,
            json={
                "title": "Piped title",
                "duration": 212,
                "subtitles": [
                    {
                        "url": "https://piped.example/subs/en.vtt",
                        "mimeType": "text/vtt",
                        "name": "English",
                        "code": "en",
                        "autoGenerated": True,
                    }
                ],
            },
        )
    )
    respx.get("https://piped.example/subs/en.vtt").mock(return_value=httpx.Response(200, text=VTT))
    with build_client() as client:
        outcome = PipedStrategy(client, ["https://piped.example"]).attempt(REF)

    assert outcome.success, outcome.error
    assert outcome.data.title == "Piped title"
    assert outcome.data.duration_seconds == 212
    assert outcome.data.is_auto_generated is True
    assert outcome.data.total_segments == 2


@respx.mock
def test_all_instances_failing_reports_last_error():
    respx.get(host="one.example").mock(return_value=httpx.Response(503))
    respx.get(host="two.example").mock(side_effect=httpx.ConnectError("refused"))
    with build_client() as client:
        outcome = PipedStrategy(client, ["https://one.example", "https://two.example"]).attempt(REF)
    assert not outcome.success
    assert "all 2 instances failed" in outcome.error
    assert "two.example" in outcome.error
    assert outcome.no_captions is False


@respx.mock
def test_piped_without_subtitles_is_no_captions():
    respx.get("https://piped.example/streams/dQw4w9WgXcQ").mock(
        return_value=httpx.Response(200, json={"title": "x", "subtitles": []})
    )
    with build_client() as client:
        outcome = PipedStrategy(client, ["https://piped.example"]).attempt(REF)
    assert not outcome.success
    assert outcome.no_captions is True


def test_no_instances_configured():
    with httpx.Client() as client:
        outcome = InvidiousStrategy(client, []).attempt(REF)
    assert not outcome.success
    assert "no invidious instances" in outcome.error


@respx.mock
def test_non_object_body_moves_on_to_next_instance():
    respx.get(host="list.example").mock(return_value=httpx.Response(200, json=[]))
    respx.get(host="inv.example").mock(side_effect=_invidious_responder)
    respx.get(host="www.youtube.com", path="/oembed").mock(
        return_value=httpx.Response(200, json={"title": "From oEmbed"})
    )
    with build_client() as client:
        strategy = InvidiousStrategy(client, ["https://list.example", "https://inv.example"])
        outcome = strategy.attempt(REF)

    assert outcome.success, outcome.error
    assert outcome.data.total_segments == 2


@respx.mock
def test_piped_string_body_and_odd_subtitle_entries_are_failures():
    respx.get(host="str.example").mock(return_value=httpx.Response(200, json="maintenance"))
    respx.get(host="odd.example").mock(
        return_value=httpx.Response(200, json={"title": "x", "subtitles": ["en", None]})
    )
    with build_client() as client:
        outcome = PipedStrategy(client, ["https://str.example", "https://odd.example"]).attempt(REF)

    assert not outcome.success
    assert "all 2 instances failed" in outcome.error
    assert "no caption tracks listed" in outcome.error
