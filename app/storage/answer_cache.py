"""Answer cache contract and the cached page answer value."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import msgspec


class CachedPageAnswer(msgspec.Struct, frozen=True):
  """Latest answer and correctness flag for one page attempt while its lesson attempt is open."""

  page_attempt_id: int
  page_id: int
  user_answer: str = ""
  is_correct: bool = False


class AnswerCache(Protocol):
  """Ephemeral per-attempt answer store. Never authoritative once an attempt completes."""

  async def write(self, lesson_attempt_id: int, entry: CachedPageAnswer) -> None:
    """Upsert one page answer; the last write wins."""

  async def write_many(self, lesson_attempt_id: int, entries: Sequence[CachedPageAnswer]) -> None:
    """Upsert several page answers of one attempt atomically: all land or none do."""

  async def read(self, lesson_attempt_id: int, page_attempt_id: int) -> CachedPageAnswer | None:
    """Return the cached answer of one page attempt, or None when it is not cached."""

  async def read_all(self, lesson_attempt_id: int) -> list[CachedPageAnswer]:
    """Return every cached page answer of an attempt, possibly none."""

  async def discard(self, lesson_attempt_id: int) -> None:
    """Drop all cached answers of an attempt."""
