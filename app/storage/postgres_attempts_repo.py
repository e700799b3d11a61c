"""Postgres-backed repository for lesson and page attempts using SQLAlchemy."""

from __future__ import annotations

import logging

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.database import get_session_factory
from app.core.errors import AttemptAlreadyExistsError, LessonAttemptNotFoundError
from app.schema.attempts import OPEN_ATTEMPT_INDEX, LessonAttempt, QuestionPageAttempt
from app.storage.attempts_repo import AttemptStore, LessonAttemptCompletion, LessonAttemptRecord, NewLessonAttempt, NewPageAttempt, PageAttemptRecord, PageAttemptResult
from app.utils.db_errors import is_unique_violation, translate_db_error

logger = logging.getLogger(__name__)

# asyncpg raises OSError subclasses for refused/reset sockets before SQLAlchemy wraps them.
_DB_FAILURES = (SQLAlchemyError, OSError)


def _to_attempt_record(row: LessonAttempt) -> LessonAttemptRecord:
  return LessonAttemptRecord(
    id=row.id,
    user_id=row.user_id,
    lesson_id=row.lesson_id,
    plan_id=row.plan_id,
    channel_id=row.channel_id,
    start_time=row.start_time,
    end_time=row.end_time,
    is_complete=row.is_complete,
    is_successful=row.is_successful,
    percentage_score=row.percentage_score,
  )


def _to_page_record(row: QuestionPageAttempt) -> PageAttemptRecord:
  return PageAttemptRecord(id=row.id, lesson_attempt_id=row.lesson_attempt_id, page_id=row.page_id, content_type=row.content_type, question_type=row.question_type, user_answer=row.user_answer, is_correct=row.is_correct)


class PostgresAttemptStore(AttemptStore):
  """Persist lesson attempts and their question page attempts to Postgres."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def find_open_attempt(self, user_id: str, lesson_id: int, plan_id: int, channel_id: int) -> LessonAttemptRecord | None:
    stmt = select(LessonAttempt).where(
      LessonAttempt.user_id == user_id,
      LessonAttempt.lesson_id == lesson_id,
      LessonAttempt.plan_id == plan_id,
      LessonAttempt.channel_id == channel_id,
      LessonAttempt.is_complete.is_(False),
    )
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="find_open_attempt", in_transaction=False) from exc

    if row is None:
      return None
    return _to_attempt_record(row)

  async def create_lesson_attempt(self, attempt: NewLessonAttempt) -> LessonAttemptRecord:
    """Insert an open attempt; the partial unique index rejects a second open attempt for the tuple."""
    async with self._session_factory() as session:
      row = LessonAttempt(user_id=attempt.user_id, lesson_id=attempt.lesson_id, plan_id=attempt.plan_id, channel_id=attempt.channel_id, start_time=attempt.start_time, is_complete=False, is_successful=False, percentage_score=0)
      session.add(row)
      try:
        await session.commit()
      except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc, constraint_name=OPEN_ATTEMPT_INDEX):
          logger.info("Open attempt already exists: user_id=%s, lesson_id=%s, plan_id=%s, channel_id=%s", attempt.user_id, attempt.lesson_id, attempt.plan_id, attempt.channel_id)
          raise AttemptAlreadyExistsError(f"open attempt already exists for lesson {attempt.lesson_id}") from exc
        raise translate_db_error(exc, operation="create_lesson_attempt", in_transaction=True) from exc
      except _DB_FAILURES as exc:
        raise translate_db_error(exc, operation="create_lesson_attempt", in_transaction=True) from exc

      return _to_attempt_record(row)

  async def create_page_attempts(self, lesson_attempt_id: int, pages: list[NewPageAttempt]) -> list[PageAttemptRecord]:
    """Insert every page attempt of the batch or none of them."""
    if not pages:
      return []

    rows = [QuestionPageAttempt(lesson_attempt_id=lesson_attempt_id, page_id=page.page_id, content_type=page.content_type, question_type=page.question_type, user_answer="", is_correct=False) for page in pages]
    try:
      async with self._session_factory() as session:
        async with session.begin():
          session.add_all(rows)
          await session.flush()
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="create_page_attempts", in_transaction=True) from exc

    return sorted((_to_page_record(row) for row in rows), key=lambda record: record.id)

  async def list_page_attempts(self, lesson_attempt_id: int) -> list[PageAttemptRecord]:
    stmt = (
      select(QuestionPageAttempt)
      .join(LessonAttempt, LessonAttempt.id == QuestionPageAttempt.lesson_attempt_id)
      .where(QuestionPageAttempt.lesson_attempt_id == lesson_attempt_id, LessonAttempt.is_complete.is_(False))
      .order_by(QuestionPageAttempt.id.asc())
    )
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        rows = list(result.scalars().all())
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="list_page_attempts", in_transaction=False) from exc

    return [_to_page_record(row) for row in rows]

  async def complete_lesson_attempt(self, completion: LessonAttemptCompletion, results: list[PageAttemptResult]) -> LessonAttemptRecord:
    """Write page results, then flip the open lesson row to complete; all inside one transaction."""
    lesson_stmt = (
      update(LessonAttempt)
      .where(LessonAttempt.id == completion.lesson_attempt_id, LessonAttempt.user_id == completion.user_id, LessonAttempt.is_complete.is_(False))
      .values(end_time=completion.end_time, is_complete=True, is_successful=completion.is_successful, percentage_score=completion.percentage_score)
      .returning(LessonAttempt)
      .execution_options(synchronize_session=False)
    )
    try:
      async with self._session_factory() as session:
        async with session.begin():
          # Page rows are written before the aggregate so a completed attempt never references unpersisted scores.
          for result in results:
            page_stmt = (
              update(QuestionPageAttempt)
              .where(QuestionPageAttempt.id == result.page_attempt_id, QuestionPageAttempt.lesson_attempt_id == completion.lesson_attempt_id)
              .values(user_answer=result.user_answer, is_correct=result.is_correct)
              .execution_options(synchronize_session=False)
            )
            await session.execute(page_stmt)

          row = (await session.execute(lesson_stmt)).scalar_one_or_none()
          if row is None:
            # Raising inside begin() rolls back the page writes above.
            raise LessonAttemptNotFoundError(f"no open lesson attempt {completion.lesson_attempt_id} for user")
          record = _to_attempt_record(row)
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="complete_lesson_attempt", in_transaction=True) from exc

    return record

  async def list_lesson_attempts(self, user_id: str, lesson_id: int | None, limit: int, offset: int) -> list[LessonAttemptRecord]:
    stmt = select(LessonAttempt).where(LessonAttempt.user_id == user_id)
    if lesson_id is not None:
      stmt = stmt.where(LessonAttempt.lesson_id == lesson_id)
    stmt = stmt.order_by(LessonAttempt.end_time.asc().nulls_last(), LessonAttempt.id.asc()).limit(limit).offset(offset)
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        rows = list(result.scalars().all())
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="list_lesson_attempts", in_transaction=False) from exc

    return [_to_attempt_record(row) for row in rows]

  async def user_owns_attempt(self, user_id: str, lesson_attempt_id: int) -> bool:
    stmt = select(exists().where(LessonAttempt.id == lesson_attempt_id, LessonAttempt.user_id == user_id))
    try:
      async with self._session_factory() as session:
        owned = await session.scalar(stmt)
    except _DB_FAILURES as exc:
      raise translate_db_error(exc, operation="user_owns_attempt", in_transaction=False) from exc

    return bool(owned)
