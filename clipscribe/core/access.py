"""Request modes and paid-session checks.

Session issuance lives elsewhere; here we only answer "is this token a paid
session?", either from a static token list or by asking a verification
endpoint.
"""

from __future__ import annotations

import hmac
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional, Sequence

import httpx

from clipscribe.config import Settings
from clipscribe.core.cache import TTLCache
from clipscribe.errors import InvalidReferenceError, PaymentRequiredError


log = logging.getLogger(__name__)

PAID_REQUIRED_MESSAGE = "Pro subscription required for bulk downloads."
SESSION_HEADER = "X-Session-Token"
SESSION_COOKIE = "tg_session"


class Mode(str, Enum):
    SINGLE = "single"
    BULK = "bulk"


def parse_mode(value: Optional[str]) -> Mode:
    try:
        return Mode((value or Mode.SINGLE.value).strip().lower())
    except ValueError as exc:
        raise InvalidReferenceError(f"Invalid mode: {value!r}. Use 'single' or 'bulk'.") from exc


class SessionVerifier(ABC):
    @abstractmethod
    def is_paid(self, token: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class StaticTokenVerifier(SessionVerifier):
    def __init__(self, tokens: Sequence[str]) -> None:
        self.tokens: List[str] = [t for t in tokens if t]

    def is_paid(self, token: str) -> bool:
        return any(hmac.compare_digest(token, known) for known in self.tokens)


class HttpSessionVerifier(SessionVerifier):
    """Ask a session endpoint about the token; expects ``{"tier": "pro"}``.

    Definite answers are cached for the cache's TTL. Transport errors and
    5xx responses are treated as "not paid" and not cached.
    """

    def __init__(
        self,
        url: str,
        cache: TTLCache[bool],
        client_factory: Optional[Callable[[], httpx.Client]] = None,
        timeout_s: float = 5.0,
    ) -> None:
        self.url = url
        self.cache = cache
        self.timeout_s = timeout_s
        self._client_factory = client_factory or (lambda: httpx.Client(timeout=timeout_s))

    def is_paid(self, token: str) -> bool:
        cached = self.cache.get(token)
        if cached is not None:
            return cached
        try:
            with self._client_factory() as client:
                resp = client.get(
                    self.url,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout_s,
                )
        except httpx.HTTPError as exc:
            log.warning("session check failed: %s", exc)
            return False
        if resp.status_code >= 500:
            log.warning("session check returned HTTP %s", resp.status_code)
            return False

        paid = False
        if resp.is_success:
            try:
                paid = resp.json().get("tier") == "pro"
            except (ValueError, AttributeError):
                paid = False
        self.cache.set(token, paid)
        return paid


class AnyOfVerifier(SessionVerifier):
    def __init__(self, verifiers: Sequence[SessionVerifier]) -> None:
        self.verifiers = list(verifiers)

    def is_paid(self, token: str) -> bool:
        return any(v.is_paid(token) for v in self.verifiers)


def build_verifier(settings: Settings) -> SessionVerifier:
    verifiers: List[SessionVerifier] = []
    if settings.pro_tokens:
        verifiers.append(StaticTokenVerifier(settings.pro_tokens))
    if settings.session_verify_url:
        verifiers.append(
            HttpSessionVerifier(settings.session_verify_url, TTLCache(settings.session_cache_ttl_s))
        )
    if len(verifiers) == 1:
        return verifiers[0]
    return AnyOfVerifier(verifiers)


def require_paid_session(verifier: SessionVerifier, token: Optional[str]) -> None:
    if not token or not verifier.is_paid(token):
        raise PaymentRequiredError(PAID_REQUIRED_MESSAGE)
