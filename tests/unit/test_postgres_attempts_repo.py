"""PostgresAttemptStore behaviour against a mocked async session."""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from app.core.errors import AttemptAlreadyExistsError, LessonAttemptNotFoundError, StoreTransactionError, TransientStoreError
from app.schema.attempts import LessonAttempt
from app.storage.attempts_repo import LessonAttemptCompletion, NewLessonAttempt, PageAttemptResult
from app.storage.postgres_attempts_repo import PostgresAttemptStore
from sqlalchemy.exc import IntegrityError, OperationalError

NOW = datetime.datetime(2026, 10, 18, 9, 30, tzinfo=datetime.UTC)


def _driver_error(sqlstate: str, constraint_name: str | None = None) -> MagicMock:
  orig = MagicMock()
  orig.sqlstate = sqlstate
  orig.constraint_name = constraint_name
  return orig


def _session() -> MagicMock:
  session = MagicMock()
  session.__aenter__ = AsyncMock(return_value=session)
  session.__aexit__ = AsyncMock(return_value=False)
  transaction = MagicMock()
  transaction.__aenter__ = AsyncMock(return_value=transaction)
  transaction.__aexit__ = AsyncMock(return_value=False)
  session.begin = MagicMock(return_value=transaction)
  session.commit = AsyncMock()
  session.rollback = AsyncMock()
  session.execute = AsyncMock()
  session.scalar = AsyncMock()
  return session


def _store(session: MagicMock) -> PostgresAttemptStore:
  with patch("app.storage.postgres_attempts_repo.get_session_factory", return_value=MagicMock(return_value=session)):
    return PostgresAttemptStore()


def _lesson_row(**overrides) -> LessonAttempt:
  values = {"id": 9, "user_id": "sso-user-1", "lesson_id": 7, "plan_id": 3, "channel_id": 5, "start_time": NOW, "end_time": None, "is_complete": False, "is_successful": False, "percentage_score": 0}
  values.update(overrides)
  return LessonAttempt(**values)


def test_requires_initialized_database() -> None:
  with patch("app.storage.postgres_attempts_repo.get_session_factory", return_value=None):
    with pytest.raises(RuntimeError, match="Database not initialized"):
      PostgresAttemptStore()


@pytest.mark.anyio
async def test_find_open_attempt_maps_row() -> None:
  session = _session()
  result = MagicMock()
  result.scalar_one_or_none.return_value = _lesson_row()
  session.execute.return_value = result

  record = await _store(session).find_open_attempt("sso-user-1", 7, 3, 5)

  assert record is not None
  assert (record.id, record.lesson_id, record.is_complete) == (9, 7, False)


@pytest.mark.anyio
async def test_find_open_attempt_connectivity_failure_is_transient() -> None:
  session = _session()
  session.execute.side_effect = OperationalError("SELECT", {}, _driver_error("08006"))

  with pytest.raises(TransientStoreError):
    await _store(session).find_open_attempt("sso-user-1", 7, 3, 5)


@pytest.mark.anyio
async def test_create_lesson_attempt_open_index_violation() -> None:
  session = _session()
  session.commit.side_effect = IntegrityError("INSERT", {}, _driver_error("23505", constraint_name="ux_lesson_attempts_open_tuple"))

  with pytest.raises(AttemptAlreadyExistsError):
    await _store(session).create_lesson_attempt(NewLessonAttempt(user_id="sso-user-1", lesson_id=7, plan_id=3, channel_id=5, start_time=NOW))

  session.rollback.assert_awaited_once()


@pytest.mark.anyio
async def test_create_lesson_attempt_other_integrity_failure() -> None:
  session = _session()
  session.commit.side_effect = IntegrityError("INSERT", {}, _driver_error("23514", constraint_name="ck_lesson_attempts_percentage_score"))

  with pytest.raises(StoreTransactionError):
    await _store(session).create_lesson_attempt(NewLessonAttempt(user_id="sso-user-1", lesson_id=7, plan_id=3, channel_id=5, start_time=NOW))


@pytest.mark.anyio
async def test_create_page_attempts_with_no_pages_skips_the_session() -> None:
  session = _session()

  assert await _store(session).create_page_attempts(9, []) == []

  session.begin.assert_not_called()


@pytest.mark.anyio
async def test_complete_lesson_attempt_writes_pages_then_lesson() -> None:
  session = _session()
  lesson_result = MagicMock()
  lesson_result.scalar_one_or_none.return_value = _lesson_row(end_time=NOW, is_complete=True, is_successful=True, percentage_score=100)
  session.execute.side_effect = [MagicMock(), MagicMock(), lesson_result]
  completion = LessonAttemptCompletion(lesson_attempt_id=9, user_id="sso-user-1", end_time=NOW, is_successful=True, percentage_score=100)
  results = [PageAttemptResult(page_attempt_id=101, user_answer="OPTION_A", is_correct=True), PageAttemptResult(page_attempt_id=102, user_answer="OPTION_B", is_correct=True)]

  record = await _store(session).complete_lesson_attempt(completion, results)

  assert session.execute.await_count == 3
  assert record.is_complete is True
  assert record.percentage_score == 100


@pytest.mark.anyio
async def test_complete_lesson_attempt_without_open_row_is_not_found() -> None:
  session = _session()
  lesson_result = MagicMock()
  lesson_result.scalar_one_or_none.return_value = None
  session.execute.return_value = lesson_result
  completion = LessonAttemptCompletion(lesson_attempt_id=9, user_id="someone-else", end_time=NOW, is_successful=False, percentage_score=0)

  with pytest.raises(LessonAttemptNotFoundError):
    await _store(session).complete_lesson_attempt(completion, [])


@pytest.mark.anyio
async def test_complete_lesson_attempt_mid_transaction_failure() -> None:
  session = _session()
  session.execute.side_effect = OperationalError("UPDATE", {}, _driver_error("23503"))
  completion = LessonAttemptCompletion(lesson_attempt_id=9, user_id="sso-user-1", end_time=NOW, is_successful=False, percentage_score=0)

  with pytest.raises(StoreTransactionError):
    await _store(session).complete_lesson_attempt(completion, [PageAttemptResult(page_attempt_id=101, user_answer="", is_correct=False)])


@pytest.mark.anyio
@pytest.mark.parametrize("owned,expected", [(True, True), (False, False), (None, False)])
async def test_user_owns_attempt(owned, expected) -> None:
  session = _session()
  session.scalar.return_value = owned

  assert await _store(session).user_owns_attempt("sso-user-1", 9) is expected
