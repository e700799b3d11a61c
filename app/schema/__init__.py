"""Schema package exports."""

from .attempts import OPEN_ATTEMPT_INDEX, LessonAttempt, QuestionPage, QuestionPageAttempt

__all__ = ["OPEN_ATTEMPT_INDEX", "LessonAttempt", "QuestionPage", "QuestionPageAttempt"]
