from __future__ import annotations

import logging

import pytest
from app.core.env_contract import EnvContractError, check_env_contract, validate_env_values, validate_runtime_env_or_raise

_VALID_SERVICE_ENV = {
  "LP_ENV": "production",
  "LP_ALLOWED_ORIGINS": "https://app.example.com",
  "LP_PG_DSN": "postgresql://lp:secret@db:5432/lp",
  "LP_REDIS_URL": "redis://cache:6379/0",
}


def test_valid_service_env_has_no_errors() -> None:
  assert validate_env_values(target="service", env_map=dict(_VALID_SERVICE_ENV)) == []


def test_migrator_only_needs_the_database() -> None:
  assert validate_env_values(target="migrator", env_map={"LP_PG_DSN": "postgresql+asyncpg://lp@db/lp"}) == []


def test_invalid_values_are_reported() -> None:
  env_map = dict(_VALID_SERVICE_ENV, LP_ALLOWED_ORIGINS="*", LP_PG_DSN="mysql://db", LP_REDIS_URL="", LP_ATTEMPT_CACHE_TTL_SECONDS="-5")

  errors = validate_env_values(target="service", env_map=env_map)

  assert errors == [
    "LP_ALLOWED_ORIGINS: must not include wildcard origins.",
    "LP_PG_DSN: must be a postgresql:// DSN.",
    "LP_REDIS_URL: required variable is missing.",
    "LP_ATTEMPT_CACHE_TTL_SECONDS: must be a positive integer.",
  ]


def test_enforced_contract_raises(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("LP_ENV_CONTRACT_ENFORCE", "1")
  monkeypatch.delenv("LP_PG_DSN", raising=False)
  monkeypatch.delenv("DATABASE_URL", raising=False)

  with pytest.raises(EnvContractError, match="LP_PG_DSN"):
    validate_runtime_env_or_raise(logger=logging.getLogger("test.env_contract"), target="migrator")


def test_unenforced_contract_only_warns(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
  monkeypatch.delenv("LP_ENV_CONTRACT_ENFORCE", raising=False)
  monkeypatch.delenv("LP_PG_DSN", raising=False)
  monkeypatch.setenv("DATABASE_URL", "postgresql://lp:hunter2@db/lp")

  with caplog.at_level(logging.INFO, logger="test.env_contract"):
    validate_runtime_env_or_raise(logger=logging.getLogger("test.env_contract"), target="migrator")

  assert "ENV_CHECK status=ok target=migrator checked=1" in caplog.text
  assert "hunter2" not in caplog.text


def test_check_env_contract_reads_database_url_alias(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("LP_PG_DSN", raising=False)
  monkeypatch.setenv("DATABASE_URL", "postgres://lp@db/lp")

  report = check_env_contract("migrator")

  assert report.ok
  assert report.checked == ("LP_PG_DSN",)
