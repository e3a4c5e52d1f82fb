"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from assistant_engine.errors import ConfigurationError

_ENV_LOADED = False
_TRUTHY = {"1", "true", "yes", "on"}


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """Load the nearest .env file exactly once."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path.cwd()
        while current != current.parent:
            candidate = current / ".env"
            if candidate.exists():
                env_path = candidate
                break
            current = current.parent

    if env_path is not None and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_required_env(key: str, *fallbacks: str) -> str:
    """Return the first non-empty value among key and fallbacks or raise."""
    ensure_env_loaded()
    for name in (key, *fallbacks):
        value = os.getenv(name)
        if value:
            return value
    names = ", ".join((key, *fallbacks))
    raise ConfigurationError(f"Required environment variable not set: {names}")


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class Settings:
    """Runtime settings for the assistant."""

    llm_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str | None = None
    llm_timeout_seconds: float = 30.0
    reconcile_interval_seconds: float = 60.0
    queue_capacity: int = 100
    correlation_max_age_hours: float = 24.0
    auto_track_projects: bool = True

    @classmethod
    def from_env(cls) -> Settings:
        ensure_env_loaded()
        return cls(
            llm_api_key=os.getenv("ASSISTANT_LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            llm_model=os.getenv("ASSISTANT_LLM_MODEL", "gpt-4o-mini"),
            llm_base_url=os.getenv("ASSISTANT_LLM_BASE_URL") or None,
            llm_timeout_seconds=_env_float("ASSISTANT_LLM_TIMEOUT", 30.0),
            reconcile_interval_seconds=_env_float("ASSISTANT_RECONCILE_INTERVAL", 60.0),
            queue_capacity=int(_env_float("ASSISTANT_QUEUE_CAPACITY", 100)),
            correlation_max_age_hours=_env_float("ASSISTANT_CORRELATION_MAX_AGE_HOURS", 24.0),
            auto_track_projects=_env_bool("ASSISTANT_AUTO_TRACK_PROJECTS", True),
        )


def load_settings(require_llm: bool = True) -> Settings:
    """Read settings from the environment, failing fast on missing credentials."""

    settings = Settings.from_env()
    if require_llm:
        settings.llm_api_key = get_required_env("ASSISTANT_LLM_API_KEY", "OPENAI_API_KEY")
    if settings.reconcile_interval_seconds <= 0:
        raise ConfigurationError("ASSISTANT_RECONCILE_INTERVAL must be positive")
    if settings.queue_capacity <= 0:
        raise ConfigurationError("ASSISTANT_QUEUE_CAPACITY must be positive")
    return settings
