from __future__ import annotations

import logging
import os
import time
from typing import Callable, Optional

from fastapi import Cookie, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipscribe.backends import build_chain, build_client
from clipscribe.config import Settings, load_settings
from clipscribe.core.access import Mode, SessionVerifier, build_verifier, parse_mode, require_paid_session
from clipscribe.core.jobs import poll_job
from clipscribe.core.ratelimit import FixedWindowRateLimiter
from clipscribe.core.reference import parse_reference
from clipscribe.core.resolve import resolve_collection
from clipscribe.errors import (
    ClipscribeError,
    ConfigError,
    InvalidReferenceError,
    PaymentRequiredError,
    RateLimitedError,
    UpstreamError,
)
from clipscribe.logs import configure_logging
from clipscribe.schemas.transcript import AttemptOutcome


log = logging.getLogger("clipscribe.service")

SERVICE_UNAVAILABLE = "Transcript service is not available."
PROCESSING = "This video is being processed. Please try again in a few seconds."


def init_state(
    app: FastAPI,
    settings: Settings,
    verifier: Optional[SessionVerifier] = None,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """(Re)build the per-process state: settings, rate limiters, session verifier."""
    app.state.settings = settings
    app.state.rate_limiter = FixedWindowRateLimiter(settings.rate_limit, settings.rate_window_s, clock)
    app.state.resolve_limiter = FixedWindowRateLimiter(
        settings.resolve_rate_limit, settings.rate_window_s, clock
    )
    app.state.verifier = verifier or build_verifier(settings)


_settings = load_settings()
configure_logging(_settings.log_level)

app = FastAPI(title="Clipscribe Transcript Service")
init_state(app, _settings)
if _settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_settings.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Session-Token"],
        allow_credentials=True,
    )


_ERROR_STATUS = {
    InvalidReferenceError: 400,
    PaymentRequiredError: 402,
    RateLimitedError: 429,
    UpstreamError: 502,
    ConfigError: 500,
}


@app.exception_handler(ClipscribeError)
async def _domain_error(request: Request, exc: ClipscribeError) -> JSONResponse:
    status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    body = {"error": str(exc)}
    if isinstance(exc, PaymentRequiredError):
        body["upgrade"] = True
    if status >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=body)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _outcome_response(outcome: AttemptOutcome, platform: Optional[str] = None) -> JSONResponse:
    if outcome.success and outcome.data is not None:
        payload = outcome.data.to_payload()
        payload["source"] = outcome.strategy
        return JSONResponse(status_code=200, content=payload)
    if outcome.pending:
        body = {
            "async": True,
            "job_id": outcome.job_id,
            "message": outcome.error or PROCESSING,
            "source": outcome.strategy,
        }
        if platform:
            body["platform"] = platform
        return JSONResponse(status_code=202, content=body)
    return JSONResponse(
        status_code=404,
        content={
            "error": outcome.error,
            "no_captions": outcome.no_captions,
            "source": outcome.strategy,
        },
    )


@app.get("/healthz")
def healthz():  # pragma: no cover - simple endpoint
    return {"status": "ok"}


@app.get("/api/transcript")
def transcript(
    request: Request,
    url: Optional[str] = None,
    v: Optional[str] = None,
    mode: Optional[str] = None,
    x_session_token: Optional[str] = Header(None),
    tg_session: Optional[str] = Cookie(None),
):
    state = request.app.state
    settings: Settings = state.settings

    ref = parse_reference(url or v or "")
    request_mode = parse_mode(mode)
    if request_mode is Mode.SINGLE:
        if not state.rate_limiter.hit(client_ip(request)):
            raise RateLimitedError("Rate limit exceeded. Please wait a moment before trying again.")
    else:
        require_paid_session(state.verifier, x_session_token or tg_session)

    with build_client(settings.request_timeout_s) as client:
        chain = build_chain(settings, client, allow_stt=request_mode is Mode.BULK)
        if not chain.strategies:
            log.error("no transcript strategies are configured")
            return JSONResponse(status_code=500, content={"error": SERVICE_UNAVAILABLE})
        result = chain.run(ref)

    return _outcome_response(result.outcome, ref.platform)


@app.get("/api/transcript/jobs/{job_ref}")
def transcript_job(
    job_ref: str,
    request: Request,
    x_session_token: Optional[str] = Header(None),
    tg_session: Optional[str] = Cookie(None),
):
    state = request.app.state
    require_paid_session(state.verifier, x_session_token or tg_session)

    with build_client(state.settings.request_timeout_s) as client:
        outcome = poll_job(job_ref, state.settings, client)
    return _outcome_response(outcome)


@app.get("/api/resolve")
def resolve(request: Request, url: Optional[str] = None):
    state = request.app.state
    if not state.resolve_limiter.hit(client_ip(request)):
        raise RateLimitedError("Rate limit exceeded. Please wait a moment.")

    with build_client(state.settings.request_timeout_s) as client:
        videos = resolve_collection(url or "", client, state.settings.request_timeout_s)
    return {
        "count": len(videos),
        "videos": [v.model_dump(by_alias=True) for v in videos],
    }


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
