"""Shared FastAPI dependencies for the attempt routes."""

from __future__ import annotations

from fastapi import Depends

from app.config import Settings, get_settings
from app.services.attempts import LessonAttemptCoordinator
from app.storage.factory import _get_answer_cache, _get_attempt_store, _get_question_catalog


def get_attempt_coordinator(settings: Settings = Depends(get_settings)) -> LessonAttemptCoordinator:  # noqa: B008
  """Build a coordinator over the configured store, cache, and catalog."""
  return LessonAttemptCoordinator(_get_attempt_store(settings), _get_answer_cache(settings), _get_question_catalog(settings))
