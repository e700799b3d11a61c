"""Postgres-backed question catalog reading the question_pages mirror."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_session_factory
from app.core.errors import AnswerNotFoundError
from app.schema.attempts import QuestionPage
from app.storage.question_catalog import QUESTION_CONTENT_TYPE, SUPPORTED_QUESTION_TYPES, QuestionCatalogProvider, QuestionPageRecord
from app.utils.db_errors import translate_db_error


class PostgresQuestionCatalog(QuestionCatalogProvider):
  """Serve question pages and canonical answers from Postgres."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def list_question_pages(self, lesson_id: int) -> list[QuestionPageRecord]:
    stmt = (
      select(QuestionPage.id, QuestionPage.content_type, QuestionPage.question_type)
      .where(QuestionPage.lesson_id == lesson_id, QuestionPage.content_type == QUESTION_CONTENT_TYPE, QuestionPage.question_type.in_(sorted(SUPPORTED_QUESTION_TYPES)))
      .order_by(QuestionPage.position.asc(), QuestionPage.id.asc())
    )
    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        rows = result.all()
    except (SQLAlchemyError, OSError) as exc:
      raise translate_db_error(exc, operation="list_question_pages", in_transaction=False) from exc

    return [QuestionPageRecord(page_id=row.id, content_type=row.content_type, question_type=row.question_type) for row in rows]

  async def get_canonical_answer(self, page_id: int) -> str:
    stmt = select(QuestionPage.canonical_answer).where(QuestionPage.id == page_id, QuestionPage.content_type == QUESTION_CONTENT_TYPE)
    try:
      async with self._session_factory() as session:
        answer = await session.scalar(stmt)
    except (SQLAlchemyError, OSError) as exc:
      raise translate_db_error(exc, operation="get_canonical_answer", in_transaction=False) from exc

    if not answer:
      raise AnswerNotFoundError(f"no canonical answer configured for page {page_id}")
    return answer
