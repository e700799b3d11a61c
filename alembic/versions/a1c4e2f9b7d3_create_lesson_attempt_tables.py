"""Create lesson attempt, question page attempt, and question page tables.

Revision ID: a1c4e2f9b7d3
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from app.core.migration_guards import guarded_create_index, guarded_create_table, guarded_drop_index, guarded_drop_table

# revision identifiers, used by Alembic.
revision = "a1c4e2f9b7d3"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  guarded_create_table(
    "lesson_attempts",
    sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("lesson_id", sa.BigInteger(), nullable=False),
    sa.Column("plan_id", sa.BigInteger(), nullable=False),
    sa.Column("channel_id", sa.BigInteger(), nullable=False),
    sa.Column("start_time", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
    sa.Column("is_complete", sa.Boolean(), server_default="false", nullable=False),
    sa.Column("is_successful", sa.Boolean(), server_default="false", nullable=False),
    sa.Column("percentage_score", sa.Integer(), server_default="0", nullable=False),
    sa.CheckConstraint("percentage_score BETWEEN 0 AND 100", name="ck_lesson_attempts_percentage_score"),
    sa.PrimaryKeyConstraint("id"),
  )
  # Enforces at most one open attempt per (user, lesson, plan, channel).
  guarded_create_index("ux_lesson_attempts_open_tuple", "lesson_attempts", ["user_id", "lesson_id", "plan_id", "channel_id"], unique=True, postgresql_where=sa.text("is_complete = false"))
  guarded_create_index("ix_lesson_attempts_user_lesson", "lesson_attempts", ["user_id", "lesson_id"], unique=False)

  guarded_create_table(
    "question_page_attempts",
    sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column("lesson_attempt_id", sa.BigInteger(), nullable=False),
    sa.Column("page_id", sa.BigInteger(), nullable=False),
    sa.Column("content_type", sa.String(), server_default="question", nullable=False),
    sa.Column("question_type", sa.String(), server_default="multichoice", nullable=False),
    sa.Column("user_answer", sa.Text(), server_default="", nullable=False),
    sa.Column("is_correct", sa.Boolean(), server_default="false", nullable=False),
    sa.Column("modified", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["lesson_attempt_id"], ["lesson_attempts.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("lesson_attempt_id", "page_id", name="ux_question_page_attempts_attempt_page"),
  )
  guarded_create_index(op.f("ix_question_page_attempts_lesson_attempt_id"), "question_page_attempts", ["lesson_attempt_id"], unique=False)

  guarded_create_table(
    "question_pages",
    sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column("lesson_id", sa.BigInteger(), nullable=False),
    sa.Column("content_type", sa.String(), nullable=False),
    sa.Column("question_type", sa.String(), nullable=True),
    sa.Column("position", sa.Integer(), server_default="0", nullable=False),
    sa.Column("canonical_answer", sa.Text(), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index("ix_question_pages_lesson_position", "question_pages", ["lesson_id", "position"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  guarded_drop_index("ix_question_pages_lesson_position", table_name="question_pages")
  guarded_drop_table("question_pages")
  guarded_drop_index(op.f("ix_question_page_attempts_lesson_attempt_id"), table_name="question_page_attempts")
  guarded_drop_table("question_page_attempts")
  guarded_drop_index("ix_lesson_attempts_user_lesson", table_name="lesson_attempts")
  guarded_drop_index("ux_lesson_attempts_open_tuple", table_name="lesson_attempts")
  guarded_drop_table("lesson_attempts")
