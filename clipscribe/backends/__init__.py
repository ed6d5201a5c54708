"""Transcript acquisition strategies and the registry that orders them."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from clipscribe.backends.aggregator import SupadataStrategy
from clipscribe.backends.base import Strategy, build_client
from clipscribe.backends.innertube import InnertubePlayerStrategy, InnertubeTranscriptStrategy
from clipscribe.backends.mirrors import InvidiousStrategy, PipedStrategy
from clipscribe.backends.page import WatchPageStrategy
from clipscribe.backends.stt import AssemblyAISpeechStrategy
from clipscribe.config import Settings
from clipscribe.core.chain import StrategyChain
from clipscribe.errors import ConfigError


log = logging.getLogger(__name__)

__all__ = [
    "Strategy",
    "STRATEGY_NAMES",
    "build_client",
    "build_strategies",
    "build_chain",
    "describe_strategies",
]


def _supadata(settings: Settings, client: httpx.Client) -> Optional[Strategy]:
    if not settings.supadata_api_key:
        return None
    return SupadataStrategy(
        client,
        api_key=settings.supadata_api_key,
        base_url=settings.supadata_base_url,
        timeout_s=settings.request_timeout_s,
        retry_delay_s=settings.aggregator_retry_delay_s,
    )


def _innertube_transcript(settings: Settings, client: httpx.Client) -> Strategy:
    return InnertubeTranscriptStrategy(
        client, timeout_s=settings.request_timeout_s, language=settings.language
    )


def _innertube_player(settings: Settings, client: httpx.Client) -> Strategy:
    return InnertubePlayerStrategy(
        client,
        timeout_s=settings.request_timeout_s,
        language=settings.language,
        client_names=settings.player_clients,
    )


def _watch_page(settings: Settings, client: httpx.Client) -> Strategy:
    return WatchPageStrategy(client, timeout_s=settings.request_timeout_s, language=settings.language)


def _invidious(settings: Settings, client: httpx.Client) -> Strategy:
    return InvidiousStrategy(
        client,
        settings.invidious_instances,
        timeout_s=settings.mirror_timeout_s,
        language=settings.language,
    )


def _piped(settings: Settings, client: httpx.Client) -> Strategy:
    return PipedStrategy(
        client,
        settings.piped_instances,
        timeout_s=settings.mirror_timeout_s,
        language=settings.language,
    )


FACTORIES: Dict[str, Callable[[Settings, httpx.Client], Optional[Strategy]]] = {
    "supadata": _supadata,
    "innertube_transcript": _innertube_transcript,
    "innertube_player": _innertube_player,
    "watch_page": _watch_page,
    "invidious": _invidious,
    "piped": _piped,
}

STRATEGY_NAMES = list(FACTORIES) + [AssemblyAISpeechStrategy.name]


def _stt(settings: Settings, client: httpx.Client) -> Optional[Strategy]:
    if not settings.assemblyai_api_key:
        return None
    return AssemblyAISpeechStrategy(
        client,
        api_key=settings.assemblyai_api_key,
        base_url=settings.assemblyai_base_url,
        timeout_s=settings.request_timeout_s,
        budget_s=settings.stt_budget_s,
        poll_interval_s=settings.stt_poll_interval_s,
    )


def build_strategies(
    settings: Settings,
    client: httpx.Client,
    *,
    allow_stt: bool = False,
    order: Optional[Sequence[str]] = None,
) -> List[Strategy]:
    """Instantiate strategies in configured order.

    Strategies missing their credentials are skipped. Speech-to-text is only
    added when ``allow_stt`` is set and a key is configured, and always last.
    """
    names = list(order) if order else list(settings.strategy_order)
    unknown = [n for n in names if n not in STRATEGY_NAMES]
    if unknown:
        raise ConfigError(f"Unknown strategy: {', '.join(unknown)}")

    strategies: List[Strategy] = []
    for name in names:
        if name == AssemblyAISpeechStrategy.name:
            continue
        strategy = FACTORIES[name](settings, client)
        if strategy is None:
            log.debug("strategy %s skipped: not configured", name)
            continue
        strategies.append(strategy)

    if allow_stt:
        stt = _stt(settings, client)
        if stt is not None:
            strategies.append(stt)
    return strategies


def build_chain(
    settings: Settings,
    client: httpx.Client,
    *,
    allow_stt: bool = False,
    order: Optional[Sequence[str]] = None,
) -> StrategyChain:
    return StrategyChain(build_strategies(settings, client, allow_stt=allow_stt, order=order))


def describe_strategies(settings: Settings) -> List[Tuple[str, bool, str]]:
    """(name, enabled, note) for every configured strategy, STT last."""
    rows: List[Tuple[str, bool, str]] = []
    for name in settings.strategy_order:
        if name == "supadata" and not settings.supadata_api_key:
            rows.append((name, False, "SUPADATA_API_KEY not set"))
        elif name == "invidious":
            rows.append((name, bool(settings.invidious_instances), f"{len(settings.invidious_instances)} instances"))
        elif name == "piped":
            rows.append((name, bool(settings.piped_instances), f"{len(settings.piped_instances)} instances"))
        elif name in FACTORIES:
            rows.append((name, True, ""))
        else:
            rows.append((name, False, "unknown strategy"))
    if settings.assemblyai_api_key:
        rows.append((AssemblyAISpeechStrategy.name, True, "bulk mode only"))
    else:
        rows.append((AssemblyAISpeechStrategy.name, False, "ASSEMBLYAI_API_KEY not set"))
    return rows
