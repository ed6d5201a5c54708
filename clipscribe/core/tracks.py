from __future__ import annotations

from typing import Optional, Sequence

from clipscribe.schemas.transcript import CaptionTrack


def _matches(track: CaptionTrack, language: str) -> bool:
    code = (track.language_code or "").lower()
    return code.split("-")[0].split("_")[0] == language.lower()


def pick_best_track(tracks: Sequence[CaptionTrack], language: str = "en") -> Optional[CaptionTrack]:
    """Choose the caption track to fetch.

    Manual track in ``language`` first, then an auto-generated one in
    ``language``, then whatever the upstream listed first.
    """
    if not tracks:
        return None
    in_language = [t for t in tracks if _matches(t, language)]
    for track in in_language:
        if not track.is_auto_generated:
            return track
    if in_language:
        return in_language[0]
    return tracks[0]
