from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigError

# Values already present in the environment win over the .env file.
load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5500"
_REDIS_SCHEMES = {"redis", "rediss", "unix"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_ENV: 'development' (default) or 'production'; production hides error details
    - REDIS_URL: durable task storage; unset or empty selects the in-memory store
    - TASKS_KEY_PREFIX: prefix for Redis keys. Default 'tasks'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins, or '*'
    - LOG_LEVEL: root log level. Default 'INFO'
    - HOST / PORT: bind address used by `python -m task_api`
    """

    app_env: str = "development"
    redis_url: Optional[str] = None
    key_prefix: str = "tasks"
    cors_allow_origins: List[str] = field(default_factory=lambda: _parse_origins(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def durable_configured(self) -> bool:
        """True when a durable backend URL is present."""
        return bool(self.redis_url)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def validate_redis_url(url: str) -> str:
    """Return `url` unchanged if it has a scheme redis-py understands, else raise ConfigError."""
    scheme = urlparse(url).scheme.lower()
    if scheme not in _REDIS_SCHEMES:
        raise ConfigError(
            f"REDIS_URL must use one of the schemes {sorted(_REDIS_SCHEMES)}, got {url!r}"
        )
    return url


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """
    Return application settings loaded from environment variables.

    Raises:
        ConfigError: REDIS_URL is set but malformed, or PORT is not an integer.
    """
    app_env = _get_env("APP_ENV", "development").strip().lower()

    redis_url = os.getenv("REDIS_URL", "").strip() or None
    if redis_url is not None:
        validate_redis_url(redis_url)

    port_raw = _get_env("PORT", "5000").strip()
    try:
        port = int(port_raw)
    except ValueError as e:
        raise ConfigError(f"PORT must be an integer, got {port_raw!r}") from e

    return Settings(
        app_env=app_env,
        redis_url=redis_url,
        key_prefix=_get_env("TASKS_KEY_PREFIX", "tasks").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", DEFAULT_CORS_ORIGINS)),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=port,
    )
