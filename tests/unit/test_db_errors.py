from unittest.mock import MagicMock

import pytest
from app.core.errors import StoreTransactionError, TransientStoreError
from app.utils.db_errors import classify_db_failure, is_unique_violation, translate_db_error
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError


def _driver_error(sqlstate: str, constraint_name: str | None = None) -> MagicMock:
  orig = MagicMock()
  orig.sqlstate = sqlstate
  orig.constraint_name = constraint_name
  return orig


@pytest.mark.parametrize(
  "exc,transient,category",
  [
    (OperationalError("SELECT 1", {}, _driver_error("08006")), True, "connectivity_error"),
    (OperationalError("SELECT 1", {}, _driver_error("40P01")), True, "transaction_conflict"),
    (OperationalError("SELECT 1", {}, _driver_error("57P03")), True, "server_unavailable"),
    (IntegrityError("INSERT", {}, _driver_error("23505")), False, "unique_violation"),
    (IntegrityError("INSERT", {}, _driver_error("23503")), False, "integrity_error"),
    (ProgrammingError("SELECT", {}, _driver_error("42P01")), False, "schema_error"),
    (ConnectionRefusedError("connect call failed"), True, "connectivity_error"),
    (ValueError("boom"), False, "unknown_error"),
  ],
)
def test_classify_db_failure(exc, transient, category):
  classification = classify_db_failure(exc)
  assert classification.transient is transient
  assert classification.category == category


def test_is_unique_violation_matches_named_index():
  exc = IntegrityError("INSERT", {}, _driver_error("23505", constraint_name="ux_lesson_attempts_open_tuple"))
  assert is_unique_violation(exc, constraint_name="ux_lesson_attempts_open_tuple")
  assert not is_unique_violation(exc, constraint_name="ux_question_page_attempts_attempt_page")
  assert not is_unique_violation(IntegrityError("INSERT", {}, _driver_error("23503")))


def test_translate_transient_failure():
  exc = OperationalError("SELECT 1", {}, _driver_error("08001"))
  assert isinstance(translate_db_error(exc, operation="find_open_attempt", in_transaction=False), TransientStoreError)


def test_translate_failed_write_transaction():
  exc = IntegrityError("INSERT", {}, _driver_error("23503"))
  error = translate_db_error(exc, operation="create_page_attempts", in_transaction=True)
  assert isinstance(error, StoreTransactionError)
  assert "create_page_attempts" in str(error)
