"""Lesson attempt coordination: resume-or-create, answer submission, and one-time scoring."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from app.core.errors import AttemptAlreadyExistsError, AttemptConflictError, CacheSyncError, InvalidInputError, LessonAttemptError, PageAttemptNotFoundError, PageAttemptsNotFoundError, PermissionDeniedError
from app.services.request_validation import DEFAULT_PAGE_LIMIT, resolve_page_limit, validate_complete_lesson, validate_list_attempts, validate_permission_check, validate_submit_answer, validate_try_lesson
from app.services.scoring import score_attempt
from app.storage.answer_cache import AnswerCache, CachedPageAnswer
from app.storage.attempts_repo import AttemptStore, LessonAttemptCompletion, LessonAttemptRecord, NewLessonAttempt, NewPageAttempt, PageAttemptRecord, PageAttemptResult
from app.storage.question_catalog import QuestionCatalogProvider

_module_logger = logging.getLogger(__name__)


def _utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class PageAttemptSnapshot:
  """The learner-visible state of one page attempt."""

  id: int
  page_id: int
  lesson_attempt_id: int
  user_answer: str
  is_correct: bool


@dataclass(frozen=True)
class LessonCompletion:
  lesson_attempt_id: int
  is_successful: bool
  percentage_score: int


def _snapshot_from_record(record: PageAttemptRecord) -> PageAttemptSnapshot:
  return PageAttemptSnapshot(id=record.id, page_id=record.page_id, lesson_attempt_id=record.lesson_attempt_id, user_answer=record.user_answer, is_correct=record.is_correct)


def _snapshot(record: PageAttemptRecord, entry: CachedPageAnswer | None) -> PageAttemptSnapshot:
  if entry is None:
    return _snapshot_from_record(record)
  return PageAttemptSnapshot(id=record.id, page_id=record.page_id, lesson_attempt_id=record.lesson_attempt_id, user_answer=entry.user_answer, is_correct=entry.is_correct)


def _result(record: PageAttemptRecord, entry: CachedPageAnswer | None) -> PageAttemptResult:
  source = record if entry is None else entry
  return PageAttemptResult(page_attempt_id=record.id, user_answer=source.user_answer, is_correct=source.is_correct)


class LessonAttemptCoordinator:
  """Orchestrate lesson attempts across the durable store, the answer cache, and the question catalog.

  The cache is authoritative for answers while an attempt is open; the store
  becomes authoritative once completion reconciles the two.
  """

  def __init__(
    self,
    attempt_store: AttemptStore,
    answer_cache: AnswerCache,
    question_catalog: QuestionCatalogProvider,
    *,
    logger: logging.Logger | None = None,
    clock: Callable[[], datetime.datetime] | None = None,
  ) -> None:
    self._store = attempt_store
    self._cache = answer_cache
    self._catalog = question_catalog
    self._logger = logger or _module_logger
    self._clock = clock or _utc_now

  async def try_lesson(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> list[PageAttemptSnapshot]:
    """Resume the open attempt for the tuple or create one with a page attempt per question page."""
    validate_try_lesson(user_id, lesson_id, plan_id, channel_id).raise_for_violations()

    attempt = await self._store.find_open_attempt(user_id, lesson_id, plan_id, channel_id)
    if attempt is not None:
      return await self._resume(attempt)

    try:
      attempt = await self._store.create_lesson_attempt(NewLessonAttempt(user_id=user_id, lesson_id=lesson_id, plan_id=plan_id, channel_id=channel_id, start_time=self._clock()))
    except AttemptAlreadyExistsError:
      return await self._resume_concurrent_winner(user_id, lesson_id, plan_id, channel_id)

    pages = await self._catalog.list_question_pages(lesson_id)
    records = await self._store.create_page_attempts(attempt.id, [NewPageAttempt(page_id=page.page_id, content_type=page.content_type, question_type=page.question_type) for page in pages])
    await self._seed_cache(attempt.id, records)

    self._logger.info("op=try_lesson action=created lesson_attempt_id=%s user_id=%s lesson_id=%s pages=%s", attempt.id, user_id, lesson_id, len(records))
    return [_snapshot_from_record(record) for record in records]

  async def _resume(self, attempt: LessonAttemptRecord) -> list[PageAttemptSnapshot]:
    """Return one snapshot per durable page attempt, preferring cached answers and backfilling the cache."""
    records = await self._store.list_page_attempts(attempt.id)
    if not records:
      self._logger.warning("op=try_lesson action=resume_failed reason=no_page_attempts lesson_attempt_id=%s", attempt.id)
      raise PageAttemptsNotFoundError(f"lesson attempt {attempt.id} has no page attempts")

    cached = await self._cached_answers(attempt.id, records)
    missing = [record for record in records if record.id not in cached]
    if missing:
      # Cold or partially populated cache: write back the pages it does not hold.
      await self._seed_cache(attempt.id, missing)

    self._logger.info("op=try_lesson action=resumed lesson_attempt_id=%s pages=%s cached=%s backfilled=%s", attempt.id, len(records), len(cached), len(missing))
    return [_snapshot(record, cached.get(record.id)) for record in records]

  async def _resume_concurrent_winner(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> list[PageAttemptSnapshot]:
    winner = await self._store.find_open_attempt(user_id, lesson_id, plan_id, channel_id)
    if winner is None:
      # The competing attempt was completed between our insert and the re-read.
      raise AttemptConflictError(f"concurrent attempt for lesson {lesson_id} changed state; retry")
    try:
      return await self._resume(winner)
    except PageAttemptsNotFoundError as exc:
      self._logger.warning("op=try_lesson action=conflict lesson_attempt_id=%s user_id=%s", winner.id, user_id)
      raise AttemptConflictError(f"lesson attempt {winner.id} is still being created by a concurrent request") from exc

  async def _cached_answers(self, lesson_attempt_id: int, records: Sequence[PageAttemptRecord]) -> dict[int, CachedPageAnswer]:
    """Cached entries keyed by page attempt id, restricted to the attempt's durable page attempts."""
    durable_ids = {record.id for record in records}
    cached: dict[int, CachedPageAnswer] = {}
    stray: list[int] = []
    for entry in await self._cache.read_all(lesson_attempt_id):
      if entry.page_attempt_id in durable_ids:
        cached[entry.page_attempt_id] = entry
      else:
        stray.append(entry.page_attempt_id)
    if stray:
      self._logger.warning("op=read_cache action=skip_unknown lesson_attempt_id=%s page_attempt_ids=%s", lesson_attempt_id, stray)
    return cached

  async def _seed_cache(self, lesson_attempt_id: int, records: Sequence[PageAttemptRecord]) -> None:
    entries = [CachedPageAnswer(page_attempt_id=record.id, page_id=record.page_id, user_answer=record.user_answer, is_correct=record.is_correct) for record in records]
    try:
      await self._cache.write_many(lesson_attempt_id, entries)
    except LessonAttemptError as exc:
      self._logger.error("op=seed_cache lesson_attempt_id=%s pages=%s error=%s", lesson_attempt_id, len(entries), exc)
      raise CacheSyncError(f"failed to seed answer cache for lesson attempt {lesson_attempt_id}") from exc

  async def _page_of(self, lesson_attempt_id: int, page_attempt_id: int) -> int:
    """Return the page behind a page attempt of the open attempt, from the cache or else the store."""
    entry = await self._cache.read(lesson_attempt_id, page_attempt_id)
    if entry is not None:
      return entry.page_id
    for record in await self._store.list_page_attempts(lesson_attempt_id):
      if record.id == page_attempt_id:
        return record.page_id
    raise PageAttemptNotFoundError(f"page attempt {page_attempt_id} is not part of open lesson attempt {lesson_attempt_id}")

  async def submit_answer(self, lesson_attempt_id: int, page_id: int, page_attempt_id: int, user_answer: str, *, user_id: str | None = None) -> None:
    """Grade an answer against the canonical answer and record it in the cache only.

    When user_id is given the attempt must belong to that user. The page attempt
    must belong to the attempt and point at page_id.
    """
    validate_submit_answer(lesson_attempt_id, page_id, page_attempt_id, user_answer).raise_for_violations()

    if user_id is not None and not await self.check_permission_for_user(user_id, lesson_attempt_id):
      self._logger.warning("op=submit_answer action=denied lesson_attempt_id=%s user_id=%s", lesson_attempt_id, user_id)
      raise PermissionDeniedError(f"lesson attempt {lesson_attempt_id} does not belong to user")

    expected_page_id = await self._page_of(lesson_attempt_id, page_attempt_id)
    if expected_page_id != page_id:
      self._logger.warning("op=submit_answer action=rejected reason=page_mismatch lesson_attempt_id=%s page_attempt_id=%s page_id=%s", lesson_attempt_id, page_attempt_id, page_id)
      raise InvalidInputError(["page_id does not match question_page_attempt_id"])

    canonical_answer = await self._catalog.get_canonical_answer(page_id)
    is_correct = user_answer == canonical_answer
    await self._cache.write(lesson_attempt_id, CachedPageAnswer(page_attempt_id=page_attempt_id, page_id=page_id, user_answer=user_answer, is_correct=is_correct))

  async def complete_lesson(self, user_id: str, lesson_attempt_id: int) -> LessonCompletion:
    """Persist answers and the aggregate score over every durable page attempt; an attempt completes at most once."""
    validate_complete_lesson(user_id, lesson_attempt_id).raise_for_violations()

    durable = await self._store.list_page_attempts(lesson_attempt_id)
    cached = await self._cached_answers(lesson_attempt_id, durable)
    # Pages missing from the cache keep whatever the store holds for them.
    results = [_result(record, cached.get(record.id)) for record in durable]

    score = score_attempt(result.is_correct for result in results)
    completion = LessonAttemptCompletion(lesson_attempt_id=lesson_attempt_id, user_id=user_id, end_time=self._clock(), is_successful=score.is_successful, percentage_score=score.percentage_score)
    record = await self._store.complete_lesson_attempt(completion, results)

    try:
      await self._cache.discard(lesson_attempt_id)
    except LessonAttemptError as exc:
      self._logger.warning("op=complete_lesson action=discard_failed lesson_attempt_id=%s error=%s", lesson_attempt_id, exc)

    self._logger.info("op=complete_lesson lesson_attempt_id=%s user_id=%s correct=%s total=%s cached=%s percentage_score=%s is_successful=%s", record.id, user_id, score.correct, score.total, len(cached), record.percentage_score, record.is_successful)
    return LessonCompletion(lesson_attempt_id=record.id, is_successful=record.is_successful, percentage_score=record.percentage_score)

  async def get_lesson_attempts(self, user_id: str, lesson_id: int | None = None, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0) -> list[LessonAttemptRecord]:
    limit = resolve_page_limit(limit)
    validate_list_attempts(user_id, lesson_id, limit, offset).raise_for_violations()
    return await self._store.list_lesson_attempts(user_id, lesson_id, limit, offset)

  async def check_permission_for_user(self, user_id: str, lesson_attempt_id: int) -> bool:
    """Return whether the attempt exists and belongs to the user; never raises for foreign attempts."""
    validate_permission_check(user_id, lesson_attempt_id).raise_for_violations()
    return await self._store.user_owns_attempt(user_id, lesson_attempt_id)
