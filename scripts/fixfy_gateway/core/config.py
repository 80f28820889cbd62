"""Gateway settings loaded from the process environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .router import DEFAULT_PROVIDERS, normalize_provider


DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 60
DEFAULT_REQUEST_TIMEOUT = 120.0
STRENGTH_POLICIES = {"clamp", "reject"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _float_setting(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _int_setting(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _bool_setting(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    lowered = str(raw).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


@dataclass(frozen=True)
class GatewaySettings:
    default_providers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PROVIDERS))
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    strength_policy: str = "clamp"
    analysis_fallback: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        env = os.environ if env is None else env
        defaults: Dict[str, str] = dict(DEFAULT_PROVIDERS)
        for mode, key in (
            ("generate", "FIXFY_IMAGE_PROVIDER"),
            ("analyze", "FIXFY_ANALYSIS_PROVIDER"),
            ("estimate", "FIXFY_ESTIMATE_PROVIDER"),
        ):
            choice = normalize_provider(env.get(key))
            if choice:
                defaults[mode] = choice
        policy = str(env.get("FIXFY_STRENGTH_POLICY") or "clamp").strip().lower()
        if policy not in STRENGTH_POLICIES:
            policy = "clamp"
        return cls(
            default_providers=defaults,
            poll_interval=_float_setting(env, "FIXFY_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            poll_max_attempts=_int_setting(env, "FIXFY_POLL_MAX_ATTEMPTS", DEFAULT_POLL_MAX_ATTEMPTS),
            request_timeout=_float_setting(env, "FIXFY_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT) or DEFAULT_REQUEST_TIMEOUT,
            strength_policy=policy,
            analysis_fallback=_bool_setting(env, "FIXFY_ANALYSIS_FALLBACK", True),
        )


def find_dotenv(start: Optional[Path] = None) -> Optional[Path]:
    here = (start or Path.cwd()).resolve()
    for parent in [here, *here.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return candidate
    return None


def load_environment(start: Optional[Path] = None) -> Optional[Path]:
    """Load the nearest .env without overriding variables that are already set."""
    dotenv_path = find_dotenv(start)
    if dotenv_path is not None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path
