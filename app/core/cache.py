"""Process-wide Redis client for the answer cache."""

from __future__ import annotations

from redis.asyncio import Redis

from app.config import Settings

_client: Redis | None = None


def get_redis_client(settings: Settings) -> Redis:
  """Return the shared Redis client, creating it lazily on first use."""
  global _client
  if _client is None:
    kwargs: dict[str, object] = {"socket_timeout": settings.redis_socket_timeout, "socket_connect_timeout": settings.redis_socket_timeout, "decode_responses": True}
    # A dedicated attempts DB index overrides the one embedded in the URL.
    if settings.redis_attempts_db is not None:
      kwargs["db"] = settings.redis_attempts_db
    _client = Redis.from_url(settings.redis_url, **kwargs)
  return _client


async def close_redis_client() -> None:
  """Close the shared client so connection pools shut down with the app."""
  global _client
  if _client is None:
    return
  try:
    await _client.aclose()
  finally:
    _client = None
