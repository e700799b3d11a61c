"""Classify SQLAlchemy/driver failures and translate them into attempt-engine errors."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from app.core.errors import LessonAttemptError, StoreTransactionError, TransientStoreError

logger = logging.getLogger(__name__)

_CONNECTIVITY_PATTERNS = ("connection", "timeout", "reset", "network", "broken pipe", "lost connection", "closed")


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  transient: bool
  reason: str
  sqlstate: str | None
  category: str


def extract_sqlstate(exc: BaseException) -> str | None:
  """Extract the Postgres SQLSTATE from a SQLAlchemy exception when the driver exposes one."""
  if isinstance(exc, DBAPIError) and exc.orig is not None:
    # asyncpg exposes `sqlstate`, psycopg exposes `pgcode`.
    for attr in ("sqlstate", "pgcode"):
      code = getattr(exc.orig, attr, None)
      if code:
        return str(code)
  return None


def classify_db_failure(exc: BaseException) -> DBFailureClassification:
  """
  Classify a database failure as transient (store unreachable) or permanent.

  Primary signal: Postgres SQLSTATE
  Fallback: exception type and message patterns

  Transient:
    - 08xxx: connection exceptions
    - 40001 / 40P01: serialization failure, deadlock
    - 57P01..57P03: server shutdown / cannot connect now
    - OperationalError / InterfaceError mentioning connectivity

  Permanent:
    - 23xxx: integrity violations
    - 42xxx: schema/SQL errors
    - anything else
  """
  sqlstate = extract_sqlstate(exc)

  if sqlstate and sqlstate.startswith("08"):
    return DBFailureClassification(transient=True, reason="Connection exception", sqlstate=sqlstate, category="connectivity_error")

  if sqlstate in {"40001", "40P01"}:
    return DBFailureClassification(transient=True, reason="Transaction conflict (serialization failure or deadlock)", sqlstate=sqlstate, category="transaction_conflict")

  if sqlstate in {"57P01", "57P02", "57P03"}:
    return DBFailureClassification(transient=True, reason="Server unavailable", sqlstate=sqlstate, category="server_unavailable")

  if sqlstate == "23505":
    return DBFailureClassification(transient=False, reason="Integrity violation: unique violation", sqlstate=sqlstate, category="unique_violation")

  if (sqlstate and sqlstate.startswith("23")) or isinstance(exc, IntegrityError):
    return DBFailureClassification(transient=False, reason="Integrity constraint violation", sqlstate=sqlstate, category="integrity_error")

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(transient=False, reason="Schema/SQL error (undefined table/column, syntax error)", sqlstate=sqlstate, category="schema_error")

  if isinstance(exc, (OperationalError, InterfaceError, ConnectionError, TimeoutError, OSError)):
    error_msg = str(exc).lower()
    if isinstance(exc, (ConnectionError, TimeoutError)) or any(pattern in error_msg for pattern in _CONNECTIVITY_PATTERNS):
      return DBFailureClassification(transient=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(transient=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  return DBFailureClassification(transient=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")


def is_unique_violation(exc: BaseException, *, constraint_name: str | None = None) -> bool:
  """Return True when the failure is a unique violation, optionally of a named index."""
  classification = classify_db_failure(exc)
  if classification.category != "unique_violation" and not (classification.sqlstate is None and isinstance(exc, IntegrityError)):
    return False
  if constraint_name is None:
    return True
  orig = getattr(exc, "orig", None)
  reported = getattr(orig, "constraint_name", None)
  # Drivers that do not report the constraint fall back to message matching.
  if reported:
    return reported == constraint_name
  return constraint_name in str(exc)


def translate_db_error(exc: BaseException, *, operation: str, in_transaction: bool) -> LessonAttemptError:
  """Map a raw database failure onto the engine's error taxonomy and log it once."""
  classification = classify_db_failure(exc)
  logger.error("DB operation failed: operation=%s, category=%s, sqlstate=%s, transient=%s, reason=%s", operation, classification.category, classification.sqlstate or "none", classification.transient, classification.reason, exc_info=not classification.transient)

  if classification.transient:
    return TransientStoreError(f"{operation}: {classification.reason}")
  if in_transaction:
    return StoreTransactionError(f"{operation}: transaction rolled back ({classification.reason})")
  # Failed reads surface as store unavailability; no internal retry is attempted.
  return TransientStoreError(f"{operation}: {classification.reason}")
