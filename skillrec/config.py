"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from skillrec.constants import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag; unset means *default*."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class ProviderSettings:
    """Per-vendor LLM settings."""

    name: str
    enabled: bool
    api_key: str
    model: str
    temperature: float

    @classmethod
    def from_env(cls, name: str, default_model: str, *, enabled_by_default: bool = False) -> ProviderSettings:
        prefix = name.upper()
        return cls(
            name=name,
            enabled=env_bool(f"USE_{prefix}", enabled_by_default),
            api_key=os.environ.get(f"{prefix}_API_KEY", ""),
            model=os.environ.get(f"{prefix}_MODEL", default_model),
            temperature=env_float(f"{prefix}_TEMPERATURE", 0.7),
        )


DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-3.5-turbo",
    "gemini": "gemini-2.5-pro",
    "anthropic": "claude-3-haiku-20240307",
    "cohere": "command",
}


class EngineSettings:
    """Configuration for the recommendation engine, loaded from environment variables.

    Prefix: SKILLREC_ for engine-specific settings.
    Vendor credentials use their conventional names (OPENAI_API_KEY, ...).
    """

    use_ai: bool
    default_provider: str
    providers: dict[str, ProviderSettings]
    llm_request_timeout: float
    cache_enabled: bool
    cache_ttl_seconds: int
    cache_max_size: int
    redis_cache_enabled: bool
    redis_url: str
    retry_attempts: int
    retry_delay_seconds: float
    attempt_timeout_seconds: float
    reuse_match_grade: bool
    log_level: str
    log_service: str

    def __init__(self) -> None:
        self.use_ai = env_bool("SKILLREC_USE_AI", True)
        self.default_provider = os.environ.get("DEFAULT_LLM_PROVIDER", "gemini").lower()
        self.providers = {
            name: ProviderSettings.from_env(name, model, enabled_by_default=name == "gemini")
            for name, model in DEFAULT_MODELS.items()
        }
        self.llm_request_timeout = env_float(
            "SKILLREC_LLM_REQUEST_TIMEOUT_SECONDS", DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS
        )

        self.cache_enabled = env_bool("SKILLREC_LLM_CACHE_ENABLED", True)
        self.cache_ttl_seconds = env_int("SKILLREC_LLM_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS)
        self.cache_max_size = env_int("SKILLREC_LLM_CACHE_MAX_SIZE", DEFAULT_CACHE_MAX_SIZE)
        self.redis_cache_enabled = env_bool("SKILLREC_REDIS_CACHE_ENABLED", False)
        self.redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

        self.retry_attempts = env_int("SKILLREC_AI_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS)
        self.retry_delay_seconds = env_float("SKILLREC_AI_RETRY_DELAY_SECONDS", DEFAULT_RETRY_DELAY_SECONDS)
        self.attempt_timeout_seconds = env_float(
            "SKILLREC_AI_ATTEMPT_TIMEOUT_SECONDS", DEFAULT_ATTEMPT_TIMEOUT_SECONDS
        )
        self.reuse_match_grade = env_bool("SKILLREC_AI_REUSE_MATCH_GRADE", False)

        self.log_level = os.environ.get("SKILLREC_LOG_LEVEL", "info")
        self.log_service = os.environ.get("SKILLREC_LOG_SERVICE", "skillrec")
