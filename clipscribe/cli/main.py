from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.traceback import install

from clipscribe.backends import build_chain, build_client, describe_strategies
from clipscribe.config import Settings, load_settings
from clipscribe.core.access import Mode, parse_mode
from clipscribe.core.jobs import poll_job
from clipscribe.core.normalize import parse_json3, parse_vtt
from clipscribe.core.reference import parse_reference
from clipscribe.core.resolve import resolve_collection
from clipscribe.errors import ClipscribeError, ConfigError, InvalidReferenceError
from clipscribe.logs import configure_logging
from clipscribe.schemas.transcript import AttemptOutcome


install(show_locals=False)
app = typer.Typer(help="Clipscribe transcript CLI")
console = Console()

EXIT_FAILED = 1
EXIT_PENDING = 2


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _write_json(data: Any, output: Path) -> None:
    _ensure_parent(output)
    output.write_text(json.dumps(data, indent=2, ensure_ascii=False))
    print(f"Wrote {output}")


def _settings(config_path: Optional[Path], language: Optional[str] = None) -> Settings:
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if language:
        settings.language = language
    configure_logging(settings.log_level)
    return settings


def _report(outcome: AttemptOutcome, output: Path) -> None:
    if outcome.success and outcome.data is not None:
        payload = outcome.data.to_payload()
        payload["source"] = outcome.strategy
        _write_json(payload, output)
        print({"source": outcome.strategy, "segments": outcome.data.total_segments})
        return
    if outcome.pending:
        console.print(f"[yellow]Still processing[/yellow] via {outcome.strategy}")
        if outcome.job_id:
            console.print(f"Poll later with: clipscribe poll {outcome.job_id} -o {output}")
        raise typer.Exit(code=EXIT_PENDING)
    console.print(f"[red]No transcript:[/red] {escape(outcome.error or '')} (source: {outcome.strategy})")
    raise typer.Exit(code=EXIT_FAILED)


ConfigOption = typer.Option(
    None, "--config", help="Path to config.yaml (defaults to $CLIPSCRIBE_CONFIG if set)"
)


@app.command()
def fetch(
    reference: str = typer.Argument(..., help="Video URL or 11-character YouTube id"),
    output: Path = typer.Option(..., "-o", "--output", help="Output transcript.json path"),
    mode: str = typer.Option("single", help="single|bulk (bulk enables speech-to-text)"),
    strategy: Optional[List[str]] = typer.Option(
        None, "--strategy", "-s", help="Run only these strategies, in this order"
    ),
    language: Optional[str] = typer.Option(None, help="Preferred caption language, e.g. en, fr"),
    config_path: Optional[Path] = ConfigOption,
):
    """Fetch a transcript by running the strategy chain."""
    console.rule("Fetch")
    settings = _settings(config_path, language)
    try:
        ref = parse_reference(reference)
        request_mode = parse_mode(mode)
    except InvalidReferenceError as exc:
        raise typer.BadParameter(str(exc)) from exc

    with build_client(settings.request_timeout_s) as client:
        try:
            chain = build_chain(
                settings, client, allow_stt=request_mode is Mode.BULK, order=strategy or None
            )
        except ConfigError as exc:
            raise typer.BadParameter(str(exc)) from exc
        if not chain.strategies:
            console.print("[red]No strategies are enabled; check your configuration.[/red]")
            raise typer.Exit(code=EXIT_FAILED)
        result = chain.run(ref)

    for attempt in result.attempts:
        status = "ok" if attempt.success else ("pending" if attempt.pending else attempt.error)
        console.print(f"  {attempt.strategy}: {escape(str(status))}")
    _report(result.outcome, output)


@app.command()
def poll(
    job_id: str = typer.Argument(..., help="Job reference printed by a deferred fetch"),
    output: Path = typer.Option(..., "-o", "--output", help="Output transcript.json path"),
    config_path: Optional[Path] = ConfigOption,
):
    """Check a deferred transcription job once."""
    console.rule("Poll")
    settings = _settings(config_path)
    with build_client(settings.request_timeout_s) as client:
        try:
            outcome = poll_job(job_id, settings, client)
        except InvalidReferenceError as exc:
            raise typer.BadParameter(str(exc)) from exc
    _report(outcome, output)


@app.command()
def resolve(
    url: str = typer.Argument(..., help="Playlist, channel or @handle URL"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write videos.json here"),
    config_path: Optional[Path] = ConfigOption,
):
    """List the videos of a playlist or channel."""
    console.rule("Resolve")
    settings = _settings(config_path)
    with build_client(settings.request_timeout_s) as client:
        try:
            videos = resolve_collection(url, client, settings.request_timeout_s)
        except InvalidReferenceError as exc:
            raise typer.BadParameter(str(exc)) from exc
        except ClipscribeError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=EXIT_FAILED) from exc

    payload = {"count": len(videos), "videos": [v.model_dump(by_alias=True) for v in videos]}
    if output:
        _write_json(payload, output)
    else:
        for video in videos:
            console.print(f"{video.video_id}  {video.title}")
    print({"count": len(videos)})


@app.command()
def normalize(
    source: Path = typer.Argument(..., exists=True, dir_okay=False),
    output: Path = typer.Option(..., "-o", "--output", help="Output segments.json path"),
    fmt: str = typer.Option("vtt", "--format", help="Caption format: vtt|json3"),
):
    """Parse a downloaded caption file into transcript segments."""
    console.rule("Normalize")
    text = source.read_text(encoding="utf-8")
    if fmt == "vtt":
        segments = parse_vtt(text)
    elif fmt == "json3":
        try:
            segments = parse_json3(json.loads(text))
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"{source} is not valid JSON") from exc
    else:
        raise typer.BadParameter("Format must be vtt or json3")
    _write_json([s.model_dump() for s in segments], output)
    print({"segments": len(segments)})


@app.command()
def strategies(config_path: Optional[Path] = ConfigOption):
    """Show the configured strategy order and which strategies are enabled."""
    settings = _settings(config_path)
    table = Table(title="Strategies")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Enabled")
    table.add_column("Note")
    for index, (name, enabled, note) in enumerate(describe_strategies(settings), start=1):
        table.add_row(str(index), name, "yes" if enabled else "no", note)
    console.print(table)


if __name__ == "__main__":
    app()
