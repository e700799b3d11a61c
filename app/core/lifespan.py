import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings
from app.core.cache import close_redis_client, get_redis_client
from app.core.database import dispose_db_engine, get_db_engine
from app.core.env_contract import EnvContractError, validate_runtime_env_or_raise
from app.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging, check configuration, probe backing stores, and release pools on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
    validate_runtime_env_or_raise(logger=logger, target="service")
  except EnvContractError:
    logger.error("Environment contract failed; refusing to start the service.", exc_info=True)
    raise
  except RuntimeError:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # Unreachable stores are reported, not fatal; requests surface 503 until they recover.
  logger.info("Probing Postgres at %s", _redact_dsn(settings.pg_dsn))
  await _probe_database(logger=logger)
  logger.info("Probing Redis at %s", _redact_dsn(settings.redis_url))
  await _probe_redis(settings, logger=logger)

  try:
    yield
  finally:
    await close_redis_client()
    await dispose_db_engine()
    logger.info("Shutdown complete - connection pools released.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"


async def _probe_database(*, logger: logging.Logger) -> None:
  """Log whether the attempt tables are reachable."""
  engine = get_db_engine()
  if engine is None:
    logger.warning("Database engine unavailable; LP_PG_DSN is not set.")
    return

  try:
    async with engine.connect() as connection:
      result = await connection.execute(text("SELECT to_regclass('public.lesson_attempts') IS NOT NULL, to_regclass('public.question_page_attempts') IS NOT NULL"))
      attempts_table, page_attempts_table = result.one()
  except (SQLAlchemyError, OSError) as exc:
    logger.warning("Database probe failed: %s", exc)
    return

  logger.info("Runtime DB state lesson_attempts_table=%s question_page_attempts_table=%s", attempts_table, page_attempts_table)
  if not (attempts_table and page_attempts_table):
    logger.warning("Attempt tables missing; run `alembic upgrade head`.")


async def _probe_redis(settings: Settings, *, logger: logging.Logger) -> None:
  try:
    await get_redis_client(settings).ping()
  except (RedisError, OSError) as exc:
    logger.warning("Redis probe failed: %s", exc)
    return

  logger.info("Redis reachable; attempt cache ttl_seconds=%s", settings.attempt_cache_ttl_seconds)
