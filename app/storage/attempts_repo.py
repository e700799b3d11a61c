"""Storage interfaces and records for lesson attempt persistence."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class LessonAttemptRecord:
  """Record stored in the lesson_attempts table."""

  id: int
  user_id: str
  lesson_id: int
  plan_id: int
  channel_id: int
  start_time: datetime.datetime
  end_time: datetime.datetime | None = None
  is_complete: bool = False
  is_successful: bool = False
  percentage_score: int = 0


@dataclass(frozen=True)
class NewLessonAttempt:
  """Values for a lesson attempt that has not been inserted yet."""

  user_id: str
  lesson_id: int
  plan_id: int
  channel_id: int
  start_time: datetime.datetime


@dataclass(frozen=True)
class NewPageAttempt:
  """One question page to materialize for a freshly created lesson attempt."""

  page_id: int
  content_type: str
  question_type: str


@dataclass(frozen=True)
class PageAttemptRecord:
  """Record stored in the question_page_attempts table."""

  id: int
  lesson_attempt_id: int
  page_id: int
  content_type: str
  question_type: str
  user_answer: str = ""
  is_correct: bool = False


@dataclass(frozen=True)
class PageAttemptResult:
  """Final answer and correctness for one page attempt, written at completion."""

  page_attempt_id: int
  user_answer: str
  is_correct: bool


@dataclass(frozen=True)
class LessonAttemptCompletion:
  """Aggregate fields written once when a lesson attempt completes."""

  lesson_attempt_id: int
  user_id: str
  end_time: datetime.datetime
  is_successful: bool
  percentage_score: int


class AttemptStore(Protocol):
  """Repository contract for lesson and page attempt persistence."""

  async def find_open_attempt(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> LessonAttemptRecord | None:
    """Return the open attempt for the tuple, if any."""

  async def create_lesson_attempt(self, attempt: NewLessonAttempt) -> LessonAttemptRecord:
    """Insert an open attempt; raise AttemptAlreadyExistsError when one is already open."""

  async def create_page_attempts(self, lesson_attempt_id: int, pages: list[NewPageAttempt]) -> list[PageAttemptRecord]:
    """Insert all page attempts of an attempt in one transaction."""

  async def list_page_attempts(self, lesson_attempt_id: int) -> list[PageAttemptRecord]:
    """Return the page attempts of an attempt ordered by id."""

  async def complete_lesson_attempt(self, completion: LessonAttemptCompletion, results: list[PageAttemptResult]) -> LessonAttemptRecord:
    """Persist page results and the aggregate row in one transaction; raise LessonAttemptNotFoundError when no open row matches."""

  async def list_lesson_attempts(self, user_id: str, lesson_id: int | None, limit: int, offset: int) -> list[LessonAttemptRecord]:
    """Return a page of the user's attempts ordered by end time."""

  async def user_owns_attempt(self, user_id: str, lesson_attempt_id: int) -> bool:
    """Return whether the attempt exists and belongs to the user."""
