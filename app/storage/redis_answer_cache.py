"""Redis-backed answer cache: one hash per lesson attempt, one field per page attempt."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import msgspec
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.errors import CacheCorruptionError, CacheUnavailableError
from app.storage.answer_cache import AnswerCache, CachedPageAnswer

logger = logging.getLogger(__name__)

_ATTEMPT_KEY_PREFIX = "lesson_attempt:"
_PAGE_FIELD_PREFIX = "page_attempt:"


class _StoredAnswer(msgspec.Struct):
  """Wire shape of a hash field value; the page attempt id lives in the field name."""

  page_id: int
  user_answer: str
  is_correct: bool


_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(_StoredAnswer)


def attempt_key(lesson_attempt_id: int) -> str:
  return f"{_ATTEMPT_KEY_PREFIX}{lesson_attempt_id}"


def page_field(page_attempt_id: int) -> str:
  return f"{_PAGE_FIELD_PREFIX}{page_attempt_id}"


def _parse_page_field(field: str) -> int:
  if not field.startswith(_PAGE_FIELD_PREFIX):
    raise ValueError(f"unexpected field {field!r}")
  return int(field.removeprefix(_PAGE_FIELD_PREFIX))


def _decode_entry(key: str, field: str, raw_value: str | bytes) -> CachedPageAnswer:
  try:
    page_attempt_id = _parse_page_field(field)
    stored = _decoder.decode(raw_value)
  except (ValueError, msgspec.DecodeError) as exc:
    logger.error("Answer cache entry undecodable: key=%s, field=%s, error=%s", key, field, exc)
    raise CacheCorruptionError(f"undecodable cache entry {key}/{field}") from exc
  return CachedPageAnswer(page_attempt_id=page_attempt_id, page_id=stored.page_id, user_answer=stored.user_answer, is_correct=stored.is_correct)


def _encode(entry: CachedPageAnswer) -> bytes:
  return _encoder.encode(_StoredAnswer(page_id=entry.page_id, user_answer=entry.user_answer, is_correct=entry.is_correct))


class RedisAnswerCache(AnswerCache):
  """Store cached page answers in Redis hashes keyed by lesson attempt."""

  def __init__(self, client: Redis, *, ttl_seconds: int | None = None) -> None:
    self._client = client
    self._ttl_seconds = ttl_seconds

  async def write(self, lesson_attempt_id: int, entry: CachedPageAnswer) -> None:
    await self._hset(attempt_key(lesson_attempt_id), {page_field(entry.page_attempt_id): _encode(entry)})

  async def write_many(self, lesson_attempt_id: int, entries: Sequence[CachedPageAnswer]) -> None:
    """Write every entry with one HSET inside a MULTI/EXEC block."""
    if not entries:
      return
    await self._hset(attempt_key(lesson_attempt_id), {page_field(entry.page_attempt_id): _encode(entry) for entry in entries})

  async def _hset(self, key: str, mapping: dict[str, bytes]) -> None:
    try:
      async with self._client.pipeline(transaction=True) as pipe:
        pipe.hset(key, mapping=mapping)
        # Sliding TTL so an abandoned attempt eventually drops out of memory.
        if self._ttl_seconds:
          pipe.expire(key, self._ttl_seconds)
        await pipe.execute()
    except RedisError as exc:
      logger.error("Answer cache write failed: key=%s, fields=%s, error=%s", key, len(mapping), exc)
      raise CacheUnavailableError(f"answer cache write failed for {key}") from exc

  async def read(self, lesson_attempt_id: int, page_attempt_id: int) -> CachedPageAnswer | None:
    key = attempt_key(lesson_attempt_id)
    field = page_field(page_attempt_id)
    try:
      raw_value = await self._client.hget(key, field)
    except RedisError as exc:
      logger.error("Answer cache read failed: key=%s, field=%s, error=%s", key, field, exc)
      raise CacheUnavailableError(f"answer cache read failed for {key}") from exc

    if raw_value is None:
      return None
    return _decode_entry(key, field, raw_value)

  async def read_all(self, lesson_attempt_id: int) -> list[CachedPageAnswer]:
    key = attempt_key(lesson_attempt_id)
    try:
      raw_fields = await self._client.hgetall(key)
    except RedisError as exc:
      logger.error("Answer cache read failed: key=%s, error=%s", key, exc)
      raise CacheUnavailableError(f"answer cache read failed for {key}") from exc

    entries = [_decode_entry(key, field, raw_value) for field, raw_value in raw_fields.items()]
    entries.sort(key=lambda entry: entry.page_attempt_id)
    return entries

  async def discard(self, lesson_attempt_id: int) -> None:
    key = attempt_key(lesson_attempt_id)
    try:
      await self._client.delete(key)
    except RedisError as exc:
      raise CacheUnavailableError(f"answer cache discard failed for {key}") from exc
