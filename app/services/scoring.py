"""Lesson attempt scoring."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

PASSING_SCORE = 75


@dataclass(frozen=True)
class AttemptScore:
  total: int
  correct: int
  percentage_score: int
  is_successful: bool


def score_attempt(correctness: Iterable[bool]) -> AttemptScore:
  """Score an attempt from per-page correctness flags.

  A lesson with no gradable pages passes with 100. Otherwise the percentage is
  floored and the attempt passes at PASSING_SCORE or above.
  """
  flags = list(correctness)
  total = len(flags)
  correct = sum(1 for flag in flags if flag)
  if total == 0:
    return AttemptScore(total=0, correct=0, percentage_score=100, is_successful=True)

  # Integer arithmetic avoids float rounding (e.g. 29/100*100 == 28.999...).
  percentage_score = correct * 100 // total
  return AttemptScore(total=total, correct=correct, percentage_score=percentage_score, is_successful=percentage_score >= PASSING_SCORE)
