from __future__ import annotations

import httpx
import pytest
import respx

from clipscribe.config import Settings
from clipscribe.core.access import (
    AnyOfVerifier,
    HttpSessionVerifier,
    Mode,
    StaticTokenVerifier,
    build_verifier,
    parse_mode,
    require_paid_session,
)
from clipscribe.core.cache import TTLCache
from clipscribe.errors import InvalidReferenceError, PaymentRequiredError


VERIFY_URL = "https://auth.example/api/auth/me"


def test_parse_mode():
    assert parse_mode(None) is Mode.SINGLE
    assert parse_mode("BULK") is Mode.BULK
    with pytest.raises(InvalidReferenceError):
        parse_mode("everything")


def test_static_tokens():
    verifier = StaticTokenVerifier(["tok-1", ""])
    assert verifier.is_paid("tok-1")
    assert not verifier.is_paid("tok-2")


def test_require_paid_session():
    verifier = StaticTokenVerifier(["tok-1"])
    require_paid_session(verifier, "tok-1")
    for token in (None, "", "tok-2"):
        with pytest.raises(PaymentRequiredError):
            require_paid_session(verifier, token)


@respx.mock
def test_http_verifier_caches_answers():
    route = respx.get(VERIFY_URL).mock(return_value=httpx.Response(200, json={"tier": "pro"}))
    verifier = HttpSessionVerifier(VERIFY_URL, TTLCache(300))
    assert verifier.is_paid("abc")
    assert verifier.is_paid("abc")
    assert route.call_count == 1
    assert route.calls.last.request.headers["Authorization"] == "Bearer abc"


@respx.mock
def test_http_verifier_free_tier_and_server_errors():
    respx.get(VERIFY_URL).mock(
        side_effect=[
            httpx.Response(200, json={"tier": "free"}),
            httpx.Response(503),
            httpx.Response(401),
        ]
    )
    cache = TTLCache(300)
    verifier = HttpSessionVerifier(VERIFY_URL, cache)
    assert not verifier.is_paid("free-user")
    assert not verifier.is_paid("flaky")
    assert "flaky" not in cache
    assert not verifier.is_paid("expired")
    assert cache.get("expired") is False


def test_build_verifier_combines_sources():
    assert isinstance(build_verifier(Settings(pro_tokens=["a"])), StaticTokenVerifier)
    combined = build_verifier(Settings(pro_tokens=["a"], session_verify_url=VERIFY_URL))
    assert isinstance(combined, AnyOfVerifier)
    assert combined.is_paid("a")
    nobody = build_verifier(Settings())
    assert not nobody.is_paid("anything")
