"""SQLAlchemy models for lesson attempts, their question page attempts, and the question page mirror."""

from __future__ import annotations

import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

OPEN_ATTEMPT_INDEX = "ux_lesson_attempts_open_tuple"


class LessonAttempt(Base):
  __tablename__ = "lesson_attempts"
  __table_args__ = (
    # At most one open attempt per (user, lesson, plan, channel).
    Index(OPEN_ATTEMPT_INDEX, "user_id", "lesson_id", "plan_id", "channel_id", unique=True, postgresql_where=text("is_complete = false")),
    Index("ix_lesson_attempts_user_lesson", "user_id", "lesson_id"),
    CheckConstraint("percentage_score BETWEEN 0 AND 100", name="ck_lesson_attempts_percentage_score"),
  )

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False)
  lesson_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  plan_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  start_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  end_time: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  is_successful: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  percentage_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

  page_attempts: Mapped[list[QuestionPageAttempt]] = relationship(back_populates="lesson_attempt", cascade="all, delete-orphan", passive_deletes=True)


class QuestionPageAttempt(Base):
  """One row per question page of a lesson attempt; the content/question type columns tag the variant."""

  __tablename__ = "question_page_attempts"
  __table_args__ = (UniqueConstraint("lesson_attempt_id", "page_id", name="ux_question_page_attempts_attempt_page"),)

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  lesson_attempt_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("lesson_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
  page_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  content_type: Mapped[str] = mapped_column(String, nullable=False, default="question", server_default="question")
  question_type: Mapped[str] = mapped_column(String, nullable=False, default="multichoice", server_default="multichoice")
  user_answer: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
  is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  modified: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

  lesson_attempt: Mapped[LessonAttempt] = relationship(back_populates="page_attempts")


class QuestionPage(Base):
  """Read-only mirror of catalog pages; only question pages of a supported type are gradable."""

  __tablename__ = "question_pages"
  __table_args__ = (Index("ix_question_pages_lesson_position", "lesson_id", "position"),)

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  lesson_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
  content_type: Mapped[str] = mapped_column(String, nullable=False)
  question_type: Mapped[str | None] = mapped_column(String, nullable=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  canonical_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
