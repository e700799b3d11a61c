"""Pure request validation for lesson attempt operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.core.errors import InvalidInputError

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
MAX_USER_ANSWER_LENGTH = 1024


@dataclass(frozen=True)
class ValidationResult:
  """Outcome of validating one request; empty violations means valid."""

  violations: tuple[str, ...] = field(default_factory=tuple)

  @property
  def is_valid(self) -> bool:
    return not self.violations

  def raise_for_violations(self) -> None:
    if self.violations:
      raise InvalidInputError(self.violations)


def _check_user_id(value: Any, violations: list[str]) -> None:
  if not isinstance(value, str) or not value.strip():
    violations.append("user_id is required")


def _check_positive_id(name: str, value: Any, violations: list[str]) -> None:
  # bool is an int subclass; True must not pass as id 1.
  if isinstance(value, bool) or not isinstance(value, int):
    violations.append(f"{name} must be an integer")
  elif value <= 0:
    violations.append(f"{name} must be positive")


def validate_try_lesson(user_id: Any, lesson_id: Any, plan_id: Any, channel_id: Any) -> ValidationResult:
  violations: list[str] = []
  _check_user_id(user_id, violations)
  _check_positive_id("lesson_id", lesson_id, violations)
  _check_positive_id("plan_id", plan_id, violations)
  _check_positive_id("channel_id", channel_id, violations)
  return ValidationResult(tuple(violations))


def validate_submit_answer(lesson_attempt_id: Any, page_id: Any, page_attempt_id: Any, user_answer: Any) -> ValidationResult:
  violations: list[str] = []
  _check_positive_id("lesson_attempt_id", lesson_attempt_id, violations)
  _check_positive_id("page_id", page_id, violations)
  _check_positive_id("question_page_attempt_id", page_attempt_id, violations)
  if not isinstance(user_answer, str) or user_answer == "":
    violations.append("user_answer is required")
  elif len(user_answer) > MAX_USER_ANSWER_LENGTH:
    violations.append(f"user_answer exceeds {MAX_USER_ANSWER_LENGTH} characters")
  return ValidationResult(tuple(violations))


def validate_complete_lesson(user_id: Any, lesson_attempt_id: Any) -> ValidationResult:
  violations: list[str] = []
  _check_user_id(user_id, violations)
  _check_positive_id("lesson_attempt_id", lesson_attempt_id, violations)
  return ValidationResult(tuple(violations))


def validate_list_attempts(user_id: Any, lesson_id: Any, limit: Any, offset: Any) -> ValidationResult:
  """Validate listing filters; lesson_id is optional."""
  violations: list[str] = []
  _check_user_id(user_id, violations)
  if lesson_id is not None:
    _check_positive_id("lesson_id", lesson_id, violations)
  if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_LIMIT:
    violations.append(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
  if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
    violations.append("offset must be zero or positive")
  return ValidationResult(tuple(violations))


def validate_permission_check(user_id: Any, lesson_attempt_id: Any) -> ValidationResult:
  violations: list[str] = []
  _check_user_id(user_id, violations)
  _check_positive_id("lesson_attempt_id", lesson_attempt_id, violations)
  return ValidationResult(tuple(violations))


def resolve_page_limit(limit: Any) -> Any:
  """Treat an unset (zero) limit as the default page size."""
  if isinstance(limit, int) and not isinstance(limit, bool) and limit == 0:
    return DEFAULT_PAGE_LIMIT
  return limit
