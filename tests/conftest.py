"""Shared fixtures: in-memory collaborators for the coordinator and an HTTP client over the app."""

from __future__ import annotations

import dataclasses
import datetime
import itertools
import os
from pathlib import Path

# Settings are read at import time of app.main, so the env must be ready first.
os.environ.setdefault("LP_ENV_FILE", str(Path(__file__).resolve().parent / ".env.tests"))
os.environ.setdefault("LP_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("LP_ENV", "test")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.errors import AnswerNotFoundError, AttemptAlreadyExistsError, CacheUnavailableError, LessonAttemptNotFoundError  # noqa: E402
from app.services.attempts import LessonAttemptCoordinator  # noqa: E402
from app.storage.answer_cache import CachedPageAnswer  # noqa: E402
from app.storage.attempts_repo import LessonAttemptCompletion, LessonAttemptRecord, NewLessonAttempt, NewPageAttempt, PageAttemptRecord, PageAttemptResult  # noqa: E402
from app.storage.question_catalog import QuestionPageRecord  # noqa: E402

FIXED_NOW = datetime.datetime(2026, 10, 18, 9, 30, tzinfo=datetime.UTC)


class InMemoryAttemptStore:
  """Attempt store honouring the open-attempt uniqueness and conditional completion rules."""

  def __init__(self) -> None:
    self.attempts: dict[int, LessonAttemptRecord] = {}
    self.pages: dict[int, PageAttemptRecord] = {}
    self._attempt_ids = itertools.count(1)
    self._page_ids = itertools.count(101)

  def _open_for(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> LessonAttemptRecord | None:
    for attempt in self.attempts.values():
      if (attempt.user_id, attempt.lesson_id, attempt.plan_id, attempt.channel_id) == (user_id, lesson_id, plan_id, channel_id) and not attempt.is_complete:
        return attempt
    return None

  async def find_open_attempt(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> LessonAttemptRecord | None:
    return self._open_for(user_id, lesson_id, plan_id, channel_id)

  async def create_lesson_attempt(self, attempt: NewLessonAttempt) -> LessonAttemptRecord:
    if self._open_for(attempt.user_id, attempt.lesson_id, attempt.plan_id, attempt.channel_id) is not None:
      raise AttemptAlreadyExistsError("open attempt exists")
    record = LessonAttemptRecord(id=next(self._attempt_ids), user_id=attempt.user_id, lesson_id=attempt.lesson_id, plan_id=attempt.plan_id, channel_id=attempt.channel_id, start_time=attempt.start_time)
    self.attempts[record.id] = record
    return record

  async def create_page_attempts(self, lesson_attempt_id: int, pages: list[NewPageAttempt]) -> list[PageAttemptRecord]:
    created = [PageAttemptRecord(id=next(self._page_ids), lesson_attempt_id=lesson_attempt_id, page_id=page.page_id, content_type=page.content_type, question_type=page.question_type) for page in pages]
    for record in created:
      self.pages[record.id] = record
    return created

  async def list_page_attempts(self, lesson_attempt_id: int) -> list[PageAttemptRecord]:
    attempt = self.attempts.get(lesson_attempt_id)
    if attempt is None or attempt.is_complete:
      return []
    return sorted((page for page in self.pages.values() if page.lesson_attempt_id == lesson_attempt_id), key=lambda page: page.id)

  async def complete_lesson_attempt(self, completion: LessonAttemptCompletion, results: list[PageAttemptResult]) -> LessonAttemptRecord:
    attempt = self.attempts.get(completion.lesson_attempt_id)
    if attempt is None or attempt.user_id != completion.user_id or attempt.is_complete:
      raise LessonAttemptNotFoundError("no open attempt")
    for result in results:
      page = self.pages[result.page_attempt_id]
      self.pages[page.id] = dataclasses.replace(page, user_answer=result.user_answer, is_correct=result.is_correct)
    completed = dataclasses.replace(attempt, end_time=completion.end_time, is_complete=True, is_successful=completion.is_successful, percentage_score=completion.percentage_score)
    self.attempts[completed.id] = completed
    return completed

  async def list_lesson_attempts(self, user_id: str, lesson_id: int | None, limit: int, offset: int) -> list[LessonAttemptRecord]:
    matching = [attempt for attempt in self.attempts.values() if attempt.user_id == user_id and (lesson_id is None or attempt.lesson_id == lesson_id)]
    matching.sort(key=lambda attempt: (attempt.end_time is None, attempt.end_time or FIXED_NOW, attempt.id))
    return matching[offset : offset + limit]

  async def user_owns_attempt(self, user_id: str, lesson_attempt_id: int) -> bool:
    attempt = self.attempts.get(lesson_attempt_id)
    return attempt is not None and attempt.user_id == user_id


class InMemoryAnswerCache:
  """Answer cache with switchable failures; multi-entry writes are all-or-nothing like a MULTI/EXEC block."""

  def __init__(self) -> None:
    self.entries: dict[int, dict[int, CachedPageAnswer]] = {}
    self.fail_writes = False
    self.fail_discard = False

  async def write(self, lesson_attempt_id: int, entry: CachedPageAnswer) -> None:
    await self.write_many(lesson_attempt_id, [entry])

  async def write_many(self, lesson_attempt_id: int, entries: list[CachedPageAnswer]) -> None:
    if self.fail_writes:
      raise CacheUnavailableError("redis down")
    stored = self.entries.setdefault(lesson_attempt_id, {})
    for entry in entries:
      stored[entry.page_attempt_id] = entry

  async def read(self, lesson_attempt_id: int, page_attempt_id: int) -> CachedPageAnswer | None:
    return self.entries.get(lesson_attempt_id, {}).get(page_attempt_id)

  async def read_all(self, lesson_attempt_id: int) -> list[CachedPageAnswer]:
    return sorted(self.entries.get(lesson_attempt_id, {}).values(), key=lambda entry: entry.page_attempt_id)

  async def discard(self, lesson_attempt_id: int) -> None:
    if self.fail_discard:
      raise CacheUnavailableError("redis down")
    self.entries.pop(lesson_attempt_id, None)

  def clear(self) -> None:
    self.entries.clear()


class FakeQuestionCatalog:
  def __init__(self) -> None:
    self.pages: dict[int, list[QuestionPageRecord]] = {}
    self.answers: dict[int, str] = {}

  def add_lesson(self, lesson_id: int, answers: dict[int, str]) -> None:
    self.pages[lesson_id] = [QuestionPageRecord(page_id=page_id, content_type="question", question_type="multichoice") for page_id in answers]
    self.answers.update(answers)

  async def list_question_pages(self, lesson_id: int) -> list[QuestionPageRecord]:
    return list(self.pages.get(lesson_id, []))

  async def get_canonical_answer(self, page_id: int) -> str:
    if page_id not in self.answers:
      raise AnswerNotFoundError(f"no canonical answer for page {page_id}")
    return self.answers[page_id]


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def attempt_store() -> InMemoryAttemptStore:
  return InMemoryAttemptStore()


@pytest.fixture
def answer_cache() -> InMemoryAnswerCache:
  return InMemoryAnswerCache()


@pytest.fixture
def question_catalog() -> FakeQuestionCatalog:
  catalog = FakeQuestionCatalog()
  # Lesson 7 has four multichoice pages; lesson 8 has none.
  catalog.add_lesson(7, {11: "OPTION_A", 12: "OPTION_B", 13: "OPTION_C", 14: "OPTION_D"})
  catalog.add_lesson(8, {})
  return catalog


@pytest.fixture
def coordinator(attempt_store, answer_cache, question_catalog) -> LessonAttemptCoordinator:
  return LessonAttemptCoordinator(attempt_store, answer_cache, question_catalog, clock=lambda: FIXED_NOW)


@pytest.fixture
async def async_client(coordinator):
  from app.api.deps import get_attempt_coordinator
  from app.main import app

  app.dependency_overrides[get_attempt_coordinator] = lambda: coordinator
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()


@pytest.fixture
def fixed_now() -> datetime.datetime:
  return FIXED_NOW
