from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from clipscribe.errors import ConfigError


DEFAULT_STRATEGY_ORDER = [
    "supadata",
    "innertube_transcript",
    "innertube_player",
    "watch_page",
    "invidious",
    "piped",
]

DEFAULT_INVIDIOUS_INSTANCES = [
    "https://inv.nadeko.net",
    "https://invidious.nerdvpn.de",
    "https://yewtu.be",
]

DEFAULT_PIPED_INSTANCES = [
    "https://pipedapi.kavin.rocks",
    "https://pipedapi.adminforge.de",
]


@dataclass
class Settings:
    strategy_order: List[str] = field(default_factory=lambda: list(DEFAULT_STRATEGY_ORDER))
    player_clients: List[str] = field(
        default_factory=lambda: ["ANDROID", "WEB_EMBEDDED_PLAYER", "TVHTML5_SIMPLY_EMBEDDED_PLAYER"]
    )
    invidious_instances: List[str] = field(default_factory=lambda: list(DEFAULT_INVIDIOUS_INSTANCES))
    piped_instances: List[str] = field(default_factory=lambda: list(DEFAULT_PIPED_INSTANCES))
    language: str = "en"

    request_timeout_s: float = 10.0
    mirror_timeout_s: float = 8.0

    supadata_api_key: Optional[str] = None
    supadata_base_url: str = "https://api.supadata.ai/v1"
    aggregator_retry_delay_s: float = 1.5

    assemblyai_api_key: Optional[str] = None
    assemblyai_base_url: str = "https://api.assemblyai.com/v2"
    stt_budget_s: float = 110.0
    stt_poll_interval_s: float = 3.0

    rate_limit: int = 10
    rate_window_s: float = 60.0
    resolve_rate_limit: int = 5

    pro_tokens: List[str] = field(default_factory=list)
    session_verify_url: Optional[str] = None
    session_cache_ttl_s: float = 300.0

    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"


_ENV_SCALARS = {
    "SUPADATA_API_KEY": "supadata_api_key",
    "ASSEMBLYAI_API_KEY": "assemblyai_api_key",
    "CLIPSCRIBE_LANGUAGE": "language",
    "CLIPSCRIBE_REQUEST_TIMEOUT_S": "request_timeout_s",
    "CLIPSCRIBE_STT_BUDGET_S": "stt_budget_s",
    "CLIPSCRIBE_STT_POLL_INTERVAL_S": "stt_poll_interval_s",
    "CLIPSCRIBE_RATE_LIMIT": "rate_limit",
    "CLIPSCRIBE_RATE_WINDOW_S": "rate_window_s",
    "CLIPSCRIBE_SESSION_VERIFY_URL": "session_verify_url",
    "CLIPSCRIBE_LOG_LEVEL": "log_level",
}

_ENV_LISTS = {
    "CLIPSCRIBE_STRATEGIES": "strategy_order",
    "CLIPSCRIBE_PLAYER_CLIENTS": "player_clients",
    "CLIPSCRIBE_INVIDIOUS_INSTANCES": "invidious_instances",
    "CLIPSCRIBE_PIPED_INSTANCES": "piped_instances",
    "CLIPSCRIBE_CORS_ORIGINS": "cors_origins",
}


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _collect_pro_tokens(environ: Mapping[str, str]) -> List[str]:
    """Return paid-session tokens from numbered vars and the CSV variable, deduplicated."""
    tokens: List[str] = []
    seen: set[str] = set()

    grouped = sorted(
        (
            (name, value)
            for name, value in environ.items()
            if name.startswith("CLIPSCRIBE_PRO_TOKEN_") and value
        ),
        key=lambda item: item[0],
    )
    for _, value in grouped:
        if value not in seen:
            seen.add(value)
            tokens.append(value)

    for candidate in _split_csv(environ.get("CLIPSCRIBE_PRO_TOKENS", "")):
        if candidate not in seen:
            seen.add(candidate)
            tokens.append(candidate)

    return tokens


def _coerce(name: str, value: Any) -> Any:
    default = Settings.__dataclass_fields__[name].default
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    try:
        if isinstance(default, int) and not isinstance(default, bool):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc
    return value


def load_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    import yaml

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a top-level mapping")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from defaults, an optional YAML file, then the environment.

    The file path falls back to ``$CLIPSCRIBE_CONFIG``. Environment values win
    over the file so deployments can override secrets without editing it.
    """
    env = os.environ if environ is None else environ
    settings = Settings()
    known = {f.name for f in fields(Settings)}

    path = config_path
    if path is None and env.get("CLIPSCRIBE_CONFIG"):
        path = Path(env["CLIPSCRIBE_CONFIG"])
    if path is not None:
        for key, value in load_config_file(path).items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            if isinstance(getattr(settings, key), list):
                if isinstance(value, str):
                    value = _split_csv(value)
                elif not isinstance(value, list):
                    raise ConfigError(f"Config key {key} must be a list")
                value = [str(v) for v in value]
            elif value is not None:
                value = _coerce(key, value)
            setattr(settings, key, value)

    for var, attr in _ENV_SCALARS.items():
        raw = env.get(var)
        if raw:
            setattr(settings, attr, _coerce(attr, raw))
    for var, attr in _ENV_LISTS.items():
        raw = env.get(var)
        if raw:
            setattr(settings, attr, _split_csv(raw))

    tokens = _collect_pro_tokens(env)
    for token in tokens:
        if token not in settings.pro_tokens:
            settings.pro_tokens.append(token)

    return settings
