"""Read-only question catalog contract consumed by the attempt coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

QUESTION_CONTENT_TYPE = "question"
SUPPORTED_QUESTION_TYPES = frozenset({"multichoice"})


@dataclass(frozen=True)
class QuestionPageRecord:
  """A gradable page of a lesson."""

  page_id: int
  content_type: str
  question_type: str


class QuestionCatalogProvider(Protocol):
  async def list_question_pages(self, lesson_id: int) -> list[QuestionPageRecord]:
    """Return the lesson's gradable pages in lesson order."""

  async def get_canonical_answer(self, page_id: int) -> str:
    """Return the correct answer for a page or raise AnswerNotFoundError."""
