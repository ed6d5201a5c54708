from __future__ import annotations

from typing import Any, Dict, Iterable, List

from clipscribe.schemas.transcript import TranscriptSegment


MAX_WORDS = 18
MAX_PAUSE_S = 1.5
TERMINAL_PUNCTUATION = (".", "!", "?")


def _flush(words: List[Dict[str, Any]], out: List[TranscriptSegment]) -> None:
    if not words:
        return
    start_ms = float(words[0].get("start") or 0)
    end_ms = float(words[-1].get("end") or start_ms)
    out.append(
        TranscriptSegment(
            start=max(start_ms, 0.0) / 1000,
            duration=max(end_ms - start_ms, 0.0) / 1000,
            text=" ".join(str(w["text"]).strip() for w in words),
        )
    )


def regroup_words(words: Iterable[Dict[str, Any]]) -> List[TranscriptSegment]:
    """Group word-level STT output (times in ms) into sentence-like segments.

    A new segment starts when the running one already holds ``MAX_WORDS``
    words, when the silence before the next word exceeds ``MAX_PAUSE_S``, or
    when the running text ends in terminal punctuation.
    """
    segments: List[TranscriptSegment] = []
    current: List[Dict[str, Any]] = []
    for word in words:
        if not str(word.get("text") or "").strip():
            continue
        if current:
            gap_s = (float(word.get("start") or 0) - float(current[-1].get("end") or 0)) / 1000
            ends_sentence = str(current[-1]["text"]).strip().endswith(TERMINAL_PUNCTUATION)
            if len(current) >= MAX_WORDS or gap_s > MAX_PAUSE_S or ends_sentence:
                _flush(current, segments)
                current = []
        current.append(word)
    _flush(current, segments)
    return segments
