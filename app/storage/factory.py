from app.config import Settings
from app.core.cache import get_redis_client
from app.storage.answer_cache import AnswerCache
from app.storage.attempts_repo import AttemptStore
from app.storage.postgres_attempts_repo import PostgresAttemptStore
from app.storage.postgres_question_catalog import PostgresQuestionCatalog
from app.storage.question_catalog import QuestionCatalogProvider
from app.storage.redis_answer_cache import RedisAnswerCache


def _get_attempt_store(settings: Settings) -> AttemptStore:
  """Return the active attempt store."""

  if not settings.pg_dsn:
    raise ValueError("LP_PG_DSN must be set to enable Postgres persistence.")

  return PostgresAttemptStore()


def _get_question_catalog(settings: Settings) -> QuestionCatalogProvider:
  """Return the question catalog backed by the question_pages mirror."""

  if not settings.pg_dsn:
    raise ValueError("LP_PG_DSN must be set to enable Postgres persistence.")

  return PostgresQuestionCatalog()


def _get_answer_cache(settings: Settings) -> AnswerCache:
  """Return the Redis answer cache sharing the process-wide client."""

  return RedisAnswerCache(get_redis_client(settings), ttl_seconds=settings.attempt_cache_ttl_seconds)
