from __future__ import annotations

import logging
from typing import Optional

import httpx

from clipscribe.core.reference import VideoRef


log = logging.getLogger(__name__)

OEMBED_ENDPOINTS = {
    "youtube": "https://www.youtube.com/oembed",
    "tiktok": "https://www.tiktok.com/oembed",
}

PLACEHOLDER_TITLES = {
    "instagram": "Instagram video",
    "facebook": "Facebook video",
    "twitter": "X post",
}


def lookup_title(client: httpx.Client, ref: VideoRef, timeout_s: float = 8.0) -> Optional[str]:
    """Best-effort title via oEmbed; ``None`` when the platform has no endpoint or it fails."""
    endpoint = OEMBED_ENDPOINTS.get(ref.platform)
    if endpoint is None:
        return PLACEHOLDER_TITLES.get(ref.platform)
    try:
        resp = client.get(endpoint, params={"url": ref.url, "format": "json"}, timeout=timeout_s)
        if not resp.is_success:
            return None
        title = resp.json().get("title")
    except (httpx.HTTPError, ValueError) as exc:
        log.debug("oEmbed lookup failed for %s: %s", ref.url, exc)
        return None
    return str(title) if title else None


def fallback_title(ref: VideoRef) -> str:
    if ref.video_id:
        return f"YouTube video {ref.video_id}"
    return PLACEHOLDER_TITLES.get(ref.platform, "Video")
