from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from clipscribe.core.reference import VideoRef
from clipscribe.errors import StrategyError, TransientUpstreamError
from clipscribe.schemas.transcript import AttemptOutcome, TranscriptResult


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Strategy(ABC):
    """One way of getting a transcript for a video reference.

    Subclasses implement :meth:`fetch` and raise :class:`StrategyError` (or let
    httpx errors propagate) on failure; :meth:`attempt` turns every failure
    into an :class:`AttemptOutcome` so nothing escapes to the chain.
    """

    name: str = "strategy"
    youtube_only: bool = True

    def __init__(self, client: httpx.Client, timeout_s: float = 10.0) -> None:
        self.client = client
        self.timeout_s = timeout_s

    @abstractmethod
    def fetch(self, ref: VideoRef) -> AttemptOutcome:  # pragma: no cover - interface
        raise NotImplementedError

    def attempt(self, ref: VideoRef) -> AttemptOutcome:
        if self.youtube_only and not ref.is_youtube:
            return AttemptOutcome.failed(self.name, f"{self.name} only supports YouTube videos")
        try:
            return self.fetch(ref)
        except StrategyError as exc:
            return AttemptOutcome.failed(self.name, str(exc), no_captions=exc.no_captions)
        except httpx.TimeoutException as exc:
            return AttemptOutcome.failed(self.name, f"timed out: {exc}")
        except httpx.HTTPError as exc:
            return AttemptOutcome.failed(self.name, f"HTTP error: {exc}")
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            # Unexpected upstream shape; pydantic's ValidationError is a ValueError.
            return AttemptOutcome.failed(self.name, f"unexpected response: {exc}")

    def success(self, data: TranscriptResult) -> AttemptOutcome:
        return AttemptOutcome.succeeded(self.name, data)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        resp = self.client.get(url, timeout=kwargs.pop("timeout", self.timeout_s), **kwargs)
        check_status(resp)
        return resp.json()

    def post_json(self, url: str, payload: Dict[str, Any], **kwargs: Any) -> Any:
        resp = self.client.post(
            url, json=payload, timeout=kwargs.pop("timeout", self.timeout_s), **kwargs
        )
        check_status(resp)
        return resp.json()


def check_status(resp: httpx.Response, what: Optional[str] = None) -> None:
    if resp.is_success:
        return
    label = what
    if label is None:
        try:
            label = resp.request.url.host
        except RuntimeError:
            label = "upstream"
    if resp.status_code >= 500 or resp.status_code == 429:
        raise TransientUpstreamError(f"{label} returned HTTP {resp.status_code}")
    raise StrategyError(f"{label} returned HTTP {resp.status_code}")


def build_client(timeout_s: float = 10.0) -> httpx.Client:
    return httpx.Client(
        timeout=timeout_s,
        follow_redirects=True,
        headers={"User-Agent": BROWSER_USER_AGENT, "Accept-Language": "en-US,en;q=0.9"},
    )
