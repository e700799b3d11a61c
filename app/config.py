"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the lesson attempt service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  redis_url: str
  redis_attempts_db: int | None
  redis_socket_timeout: int
  attempt_cache_ttl_seconds: int | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("LP_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("LP_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("LP_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_int(name: str, raw: str) -> int:
  value = int(raw)
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("LP_ENV", "development").lower()

  # Toggle SQL echo and verbose diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("LP_DEBUG"))

  log_max_bytes = _parse_positive_int("LP_LOG_MAX_BYTES", os.getenv("LP_LOG_MAX_BYTES", "5242880"))  # 5MB default

  log_backup_count = int(os.getenv("LP_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("LP_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx responses and of request/response bodies with a size cap.
  log_http_4xx = _parse_bool(os.getenv("LP_LOG_HTTP_4XX"))
  log_http_bodies = _parse_bool(os.getenv("LP_LOG_HTTP_BODIES"))
  log_http_body_bytes = _parse_positive_int("LP_LOG_HTTP_BODY_BYTES", os.getenv("LP_LOG_HTTP_BODY_BYTES", "2048"))

  redis_url = (os.getenv("LP_REDIS_URL") or "redis://localhost:6379/0").strip()
  redis_attempts_db = _parse_optional_int(os.getenv("LP_REDIS_ATTEMPTS_DB"), allow_zero=True)
  redis_socket_timeout = _parse_positive_int("LP_REDIS_SOCKET_TIMEOUT", os.getenv("LP_REDIS_SOCKET_TIMEOUT", "5"))

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("LP_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
    pg_dsn=_optional_str(os.getenv("LP_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=_parse_positive_int("LP_PG_CONNECT_TIMEOUT", os.getenv("LP_PG_CONNECT_TIMEOUT", "5")),
    redis_url=redis_url,
    redis_attempts_db=redis_attempts_db,
    redis_socket_timeout=redis_socket_timeout,
    attempt_cache_ttl_seconds=_parse_optional_int(os.getenv("LP_ATTEMPT_CACHE_TTL_SECONDS")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("LP_DEBUG"))
  pg_connect_timeout = _parse_positive_int("LP_PG_CONNECT_TIMEOUT", os.getenv("LP_PG_CONNECT_TIMEOUT", "5"))

  # Support fallback to DATABASE_URL for hosted Postgres providers.
  pg_dsn = _optional_str(os.getenv("LP_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_optional_int(raw: str | None, *, allow_zero: bool = False) -> int | None:
  if raw is None or raw.strip() == "":
    return None

  value = int(raw)

  if value < 0 or (value == 0 and not allow_zero):
    raise ValueError("Optional integer settings must be positive when provided.")

  return value
