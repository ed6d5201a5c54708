"""Converters from upstream caption formats to :class:`TranscriptSegment` lists.

Every parser here is pure: text or decoded JSON in, segments out. Entries
with no usable text are dropped rather than reported.
"""

from __future__ import annotations

import html
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from clipscribe.core.jsonwalk import find_values, text_of
from clipscribe.schemas.transcript import TranscriptSegment


_TIMESTAMP_RE = re.compile(r"(?:(\d+):)?(\d{1,2}):(\d{2})[.,](\d{1,3})")
_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")
_SKIP_BLOCKS = ("WEBVTT", "NOTE", "STYLE", "REGION")


def _clean_text(raw: str) -> str:
    text = _TAG_RE.sub("", raw)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def parse_timestamp(value: str) -> float:
    match = _TIMESTAMP_RE.search(value)
    if not match:
        raise ValueError(f"Not a timestamp: {value!r}")
    hours, minutes, seconds, fraction = match.groups()
    return (
        int(hours or 0) * 3600
        + int(minutes) * 60
        + int(seconds)
        + int(fraction.ljust(3, "0")) / 1000
    )


def finalize_segments(items: Iterable[Dict[str, Any]]) -> List[TranscriptSegment]:
    """Drop blank entries, clamp negatives and order by start time."""
    segments: List[TranscriptSegment] = []
    for item in items:
        text = _SPACE_RE.sub(" ", str(item.get("text") or "")).strip()
        if not text:
            continue
        start = max(float(item.get("start") or 0.0), 0.0)
        duration = max(float(item.get("duration") or 0.0), 0.0)
        segments.append(TranscriptSegment(start=start, duration=duration, text=text))
    segments.sort(key=lambda s: s.start)
    return segments


def parse_vtt(text: str) -> List[TranscriptSegment]:
    """Parse WebVTT cues. Start and duration are rounded to hundredths."""
    items = []
    blocks = re.split(r"\n\s*\n", text.replace("\r\n", "\n").replace("\r", "\n"))
    for block in blocks:
        lines = [line for line in block.strip("\n").split("\n") if line.strip()]
        if not lines or lines[0].startswith(_SKIP_BLOCKS):
            continue
        timing_index = next((i for i, line in enumerate(lines) if "-->" in line), None)
        if timing_index is None:
            continue
        start_raw, _, end_raw = lines[timing_index].partition("-->")
        try:
            start = parse_timestamp(start_raw)
            end = parse_timestamp(end_raw.strip().split(" ")[0])
        except ValueError:
            continue
        cue_text = _clean_text(" ".join(lines[timing_index + 1:]))
        items.append(
            {
                "start": round(start, 2),
                "duration": round(max(end - start, 0.0), 2),
                "text": cue_text,
            }
        )
    return finalize_segments(items)


def parse_json3(data: Dict[str, Any]) -> List[TranscriptSegment]:
    """Parse the JSON cue-event format (``fmt=json3``)."""
    items = []
    for event in data.get("events") or []:
        segs = event.get("segs")
        if not segs:
            continue
        cue_text = "".join(str(s.get("utf8", "")) for s in segs if isinstance(s, dict))
        items.append(
            {
                "start": float(event.get("tStartMs") or 0) / 1000,
                "duration": float(event.get("dDurationMs") or 0) / 1000,
                "text": html.unescape(cue_text.replace("\n", " ")),
            }
        )
    return finalize_segments(items)


def parse_engagement_panel(data: Dict[str, Any]) -> List[TranscriptSegment]:
    """Parse a ``get_transcript`` response.

    Two layouts are in the wild: cue groups holding ``transcriptCueRenderer``
    (offsets and durations in ms) and the segment list holding
    ``transcriptSegmentRenderer`` (start and end in ms).
    """
    items = []
    for cue in find_values(data, "transcriptCueRenderer"):
        if not isinstance(cue, dict):
            continue
        items.append(
            {
                "start": float(cue.get("startOffsetMs") or 0) / 1000,
                "duration": float(cue.get("durationMs") or 0) / 1000,
                "text": text_of(cue.get("cue")),
            }
        )
    if items:
        return finalize_segments(items)

    for seg in find_values(data, "transcriptSegmentRenderer"):
        if not isinstance(seg, dict):
            continue
        start_ms = float(seg.get("startMs") or 0)
        end_ms = float(seg.get("endMs") or start_ms)
        items.append(
            {
                "start": start_ms / 1000,
                "duration": (end_ms - start_ms) / 1000,
                "text": text_of(seg.get("snippet")),
            }
        )
    return finalize_segments(items)


def normalize_aggregator_content(data: Any) -> Tuple[List[TranscriptSegment], Optional[str]]:
    """Normalize an aggregator payload; returns segments and the reported language.

    Offsets and durations arrive in milliseconds (``offset``/``duration``);
    older payloads use seconds (``start``/``dur``).
    """
    content = data.get("content", data) if isinstance(data, dict) else data
    if isinstance(content, dict):
        raw = content.get("segments") or content.get("transcript") or []
    elif isinstance(content, list):
        raw = content
    else:
        raw = []

    items = []
    language = None
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        if language is None and entry.get("lang"):
            language = str(entry["lang"])
        if entry.get("offset") is not None:
            start = float(entry["offset"]) / 1000
        else:
            start = float(entry.get("start") or 0)
        if entry.get("duration") is not None:
            duration = float(entry["duration"]) / 1000
        else:
            duration = float(entry.get("dur") or 0)
        items.append({"start": start, "duration": duration, "text": entry.get("text")})

    if language is None and isinstance(data, dict) and data.get("lang"):
        language = str(data["lang"])
    return finalize_segments(items), language
