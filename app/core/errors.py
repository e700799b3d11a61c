"""Domain errors raised by the lesson attempt engine and its stores."""

from __future__ import annotations

from collections.abc import Sequence


class LessonAttemptError(RuntimeError):
  """Base class for every error the attempt engine surfaces to callers."""


class InvalidInputError(LessonAttemptError):
  """Raised before any I/O when request fields are missing or malformed."""

  def __init__(self, violations: Sequence[str]) -> None:
    self.violations = tuple(violations)
    super().__init__("invalid input: " + "; ".join(self.violations))


class NotFoundError(LessonAttemptError):
  """Base class for missing attempts, page attempts, and canonical answers."""


class PageAttemptsNotFoundError(NotFoundError):
  """Raised when an open attempt has no durable page attempts."""


class PageAttemptNotFoundError(NotFoundError):
  """Raised when a page attempt id is not part of the open lesson attempt."""


class AnswerNotFoundError(NotFoundError):
  """Raised when a page has no canonical answer configured."""


class LessonAttemptNotFoundError(NotFoundError):
  """Raised when no matching open lesson attempt exists."""


class PermissionDeniedError(LessonAttemptError):
  """Raised when a user acts on a lesson attempt they do not own."""


class AttemptConflictError(LessonAttemptError):
  """Raised when a concurrent request is still materializing the same attempt."""


class AttemptAlreadyExistsError(LessonAttemptError):
  """Raised by the store when the open-attempt unique index rejects an insert."""


class TransientStoreError(LessonAttemptError):
  """Raised when the relational store or cache is unreachable."""


class CacheUnavailableError(TransientStoreError):
  """Raised when a Redis command fails."""


class CacheCorruptionError(LessonAttemptError):
  """Raised when a cached page answer cannot be decoded."""


class CacheSyncError(LessonAttemptError):
  """Raised when seeding the cache fails while an attempt is created or resumed."""


class StoreTransactionError(LessonAttemptError):
  """Raised when a write transaction fails and is rolled back."""
