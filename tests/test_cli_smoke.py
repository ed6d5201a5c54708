from __future__ import annotations

import json

import httpx
import pytest
import respx
from typer.testing import CliRunner

from clipscribe.cli.main import EXIT_FAILED, EXIT_PENDING, app


runner = CliRunner()

PLAYER = {
    "playabilityStatus": {"status": "OK"},
    "videoDetails": {"title": "CLI Video", "lengthSeconds": "3"},
    "captions": {
        "playerCaptionsTracklistRenderer": {
            "captionTracks": [
                {"baseUrl": "https://www.youtube.com/api/timedtext?v=dQw4w9WgXcQ&lang=en", "languageCode": "en"}
            ]
        }
    },
}

JSON3 = {"events": [{"tStartMs": 0, "dDurationMs": 3000, "segs": [{"utf8": "from the cli"}]}]}


@pytest.fixture()
def cli_env(tmp_path, monkeypatch):
    for name in ("CLIPSCRIBE_CONFIG", "SUPADATA_API_KEY", "ASSEMBLYAI_API_KEY", "CLIPSCRIBE_STRATEGIES"):
        monkeypatch.delenv(name, raising=False)
    config = tmp_path / "config.yaml"
    config.write_text("strategy_order: [innertube_player]\nplayer_clients: [ANDROID]\nlog_level: WARNING\n")
    return {"config": config, "out": tmp_path / "out" / "transcript.json", "tmp": tmp_path}


@respx.mock
def test_fetch_writes_transcript(cli_env):
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(200, json=PLAYER)
    )
    respx.get(host="www.youtube.com", path="/api/timedtext").mock(
        return_value=httpx.Response(200, json=JSON3)
    )
    result = runner.invoke(
        app,
        ["fetch", "https://youtu.be/dQw4w9WgXcQ", "-o", str(cli_env["out"]), "--config", str(cli_env["config"])],
    )
    assert result.exit_code == 0, result.output

    payload = json.loads(cli_env["out"].read_text())
    assert payload["source"] == "innertube_player"
    assert payload["title"] == "CLI Video"
    assert payload["segments"] == [{"start": 0.0, "duration": 3.0, "text": "from the cli"}]


@respx.mock
def test_fetch_failure_exit_code(cli_env):
    respx.post(host="www.youtube.com", path="/youtubei/v1/player").mock(
        return_value=httpx.Response(403)
    )
    result = runner.invoke(
        app, ["fetch", "dQw4w9WgXcQ", "-o", str(cli_env["out"]), "--config", str(cli_env["config"])]
    )
    assert result.exit_code == EXIT_FAILED
    assert not cli_env["out"].exists()


@respx.mock
def test_fetch_pending_exit_code(cli_env, monkeypatch):
    monkeypatch.setenv("SUPADATA_API_KEY", "sd-key")
    respx.get(host="api.supadata.ai", path="/v1/transcript").mock(
        return_value=httpx.Response(202, json={"jobId": "j9"})
    )
    result = runner.invoke(
        app,
        [
            "fetch",
            "dQw4w9WgXcQ",
            "-o",
            str(cli_env["out"]),
            "--strategy",
            "supadata",
            "--config",
            str(cli_env["config"]),
        ],
    )
    assert result.exit_code == EXIT_PENDING
    assert "supadata:j9:dQw4w9WgXcQ" in result.output


def test_fetch_rejects_bad_reference_and_strategy(cli_env):
    result = runner.invoke(app, ["fetch", "https://vimeo.com/1", "-o", str(cli_env["out"])])
    assert result.exit_code != 0
    result = runner.invoke(app, ["fetch", "dQw4w9WgXcQ", "-o", str(cli_env["out"]), "-s", "telepathy"])
    assert result.exit_code != 0


def test_normalize_vtt_file(cli_env):
    source = cli_env["tmp"] / "captions.vtt"
    source.write_text("WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHi\n\n00:00:02.000 --> 00:00:04.000\nthere\n")
    output = cli_env["tmp"] / "segments.json"
    result = runner.invoke(app, ["normalize", str(source), "-o", str(output)])
    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text()) == [
        {"start": 1.0, "duration": 1.0, "text": "Hi"},
        {"start": 2.0, "duration": 2.0, "text": "there"},
    ]


def test_normalize_json3_file(cli_env):
    source = cli_env["tmp"] / "captions.json"
    source.write_text(json.dumps(JSON3))
    output = cli_env["tmp"] / "segments.json"
    result = runner.invoke(app, ["normalize", str(source), "--format", "json3", "-o", str(output)])
    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text())[0]["text"] == "from the cli"


def test_strategies_lists_order(cli_env):
    result = runner.invoke(app, ["strategies", "--config", str(cli_env["config"])])
    assert result.exit_code == 0, result.output
    assert "innertube_player" in result.output
    assert "assemblyai" in result.output


@respx.mock
def test_resolve_writes_videos(cli_env):
    page = '<script>var ytInitialData = {"items": [{"videoId": "bbbbbbbbbbb", "title": {"simpleText": "B"}}]};</script>'
    respx.get("https://www.youtube.com/@someone/videos").mock(return_value=httpx.Response(200, text=page))
    output = cli_env["tmp"] / "videos.json"
    result = runner.invoke(
        app, ["resolve", "https://www.youtube.com/@someone", "-o", str(output), "--config", str(cli_env["config"])]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text())["videos"][0]["videoId"] == "bbbbbbbbbbb"
