"""Application configuration with environment-specific profiles.

Supports dev, staging, production and test environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_RACE_PACE_OFFSETS: dict[str, int] = {
    "marathon": 30,
    "half": 20,
    "10m": 15,
    "10k": 10,
    "5k": 0,
}


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    jwt_secret_key: str = "jwt-change-me"

    # Preview cache
    redis_url: str = ""
    preview_ttl_seconds: int = 3600
    preview_cache_prefix: str = "preview:"

    # Generative collaborator
    generator_api_url: str = "https://api.openai.com/v1"
    generator_api_key: str = ""
    generator_model: str = "gpt-4o-mini"
    generator_timeout_seconds: float = 90.0
    generator_temperature: float = 0.7
    generator_max_tokens: int = 8000

    # Plan rules
    min_plan_weeks: int = 8
    min_preferred_days: int = 5
    race_pace_offsets: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_RACE_PACE_OFFSETS))

    # HTTP
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    generation_rate_limit: str = "10/minute"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    request_id_header_name: str = "X-Request-ID"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "generator_timeout_seconds": 120.0,
    },
    "staging": {
        "log_level": "INFO",
        "generator_timeout_seconds": 90.0,
    },
    "production": {
        "log_level": "WARNING",
        "generator_timeout_seconds": 60.0,
    },
    "test": {
        "log_level": "WARNING",
        "generator_timeout_seconds": 5.0,
    },
}


def get_database_url() -> str:
    """Resolve database URL from env var or local default."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/gofast"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_csv(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_race_pace_offsets(value: str | None) -> dict[str, int]:
    """Parse ``"marathon=30,half=20"`` overrides on top of the defaults."""
    offsets = dict(DEFAULT_RACE_PACE_OFFSETS)
    if not value:
        return offsets
    for chunk in value.split(","):
        if "=" not in chunk:
            raise ValueError(f"Invalid RACE_PACE_OFFSETS entry: {chunk!r}")
        key, raw = chunk.split("=", 1)
        offsets[key.strip().lower()] = int(raw.strip())
    return offsets


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", os.getenv("SECRET_KEY", "jwt-change-me")),
        redis_url=os.getenv("REDIS_URL", ""),
        preview_ttl_seconds=int(os.getenv("PREVIEW_TTL_SECONDS", "3600")),
        preview_cache_prefix=os.getenv("PREVIEW_CACHE_PREFIX", "preview:"),
        generator_api_url=os.getenv("GENERATOR_API_URL", "https://api.openai.com/v1"),
        generator_api_key=os.getenv("GENERATOR_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        generator_model=os.getenv("GENERATOR_MODEL", "gpt-4o-mini"),
        generator_timeout_seconds=float(
            os.getenv("GENERATOR_TIMEOUT_SECONDS", str(profile.get("generator_timeout_seconds", 90.0)))
        ),
        generator_temperature=float(os.getenv("GENERATOR_TEMPERATURE", "0.7")),
        generator_max_tokens=int(os.getenv("GENERATOR_MAX_TOKENS", "8000")),
        min_plan_weeks=int(os.getenv("MIN_PLAN_WEEKS", "8")),
        min_preferred_days=int(os.getenv("MIN_PREFERRED_DAYS", "5")),
        race_pace_offsets=parse_race_pace_offsets(os.getenv("RACE_PACE_OFFSETS")),
        rate_limit_enabled=_parse_bool(os.getenv("RATE_LIMIT_ENABLED"), True),
        rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        generation_rate_limit=os.getenv("GENERATION_RATE_LIMIT", "10/minute"),
        cors_origins=_parse_csv(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"]),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER_NAME", "X-Request-ID"),
    )
