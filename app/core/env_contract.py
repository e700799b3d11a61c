"""Runtime environment contract checks for the service and migrator processes.

The registry below is the single list of LP_* keys a deployment must provide.
Secret values are never logged; everything else is echoed at startup so a bad
deploy is visible in the first lines of the log.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

ContractTarget = Literal["service", "migrator"]
EnvUseTarget = Literal["service", "migrator", "both"]
EnvValidator = Callable[[str, dict[str, str]], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how and where an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  used_by: EnvUseTarget
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  if raw is None:
    return default

  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate_environment_name(value: str, _: dict[str, str]) -> str | None:
  if value.strip().lower() in {"dev", "development", "stage", "staging", "prod", "production", "test", "testing"}:
    return None

  return "must be one of: development, stage, production, test (or aliases)."


def _validate_allowed_origins(value: str, _: dict[str, str]) -> str | None:
  origins = [origin.strip() for origin in value.split(",") if origin.strip()]
  if not origins:
    return "must include at least one origin."

  if "*" in origins:
    return "must not include wildcard origins."

  return None


def _validate_pg_dsn(value: str, _: dict[str, str]) -> str | None:
  scheme = urlparse(value.strip()).scheme
  if scheme.split("+", 1)[0] not in {"postgres", "postgresql"}:
    return "must be a postgresql:// DSN."

  return None


def _validate_redis_url(value: str, _: dict[str, str]) -> str | None:
  if urlparse(value.strip()).scheme not in {"redis", "rediss", "unix"}:
    return "must use the redis://, rediss:// or unix:// scheme."

  return None


def _validate_positive_int(value: str, _: dict[str, str]) -> str | None:
  try:
    parsed = int(value.strip())
  except ValueError:
    return "must be an integer."

  if parsed <= 0:
    return "must be a positive integer."

  return None


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="LP_ENV", required=True, secret=False, used_by="service", validator=_validate_environment_name),
  EnvVarDefinition(name="LP_ALLOWED_ORIGINS", required=True, secret=False, used_by="service", validator=_validate_allowed_origins),
  EnvVarDefinition(name="LP_PG_DSN", required=True, secret=True, used_by="both", validator=_validate_pg_dsn),
  EnvVarDefinition(name="LP_REDIS_URL", required=True, secret=True, used_by="service", validator=_validate_redis_url),
  EnvVarDefinition(name="LP_ATTEMPT_CACHE_TTL_SECONDS", required=False, secret=False, used_by="service", validator=_validate_positive_int),
)

# Hosted Postgres providers inject DATABASE_URL instead of LP_PG_DSN.
_FALLBACK_KEYS = {"LP_PG_DSN": "DATABASE_URL"}


@dataclass(frozen=True)
class EnvContractReport:
  target: ContractTarget
  checked: tuple[str, ...]
  violations: tuple[str, ...]

  @property
  def ok(self) -> bool:
    return not self.violations

  def render(self) -> str:
    return "ENV_CHECK status=failed target={target} violations:\n- {violations}".format(target=self.target, violations="\n- ".join(self.violations))


def definitions_for(target: ContractTarget) -> tuple[EnvVarDefinition, ...]:
  return tuple(definition for definition in REQUIRED_ENV_REGISTRY if definition.used_by in {"both", target})


def _check_one(definition: EnvVarDefinition, value: str, env_map: dict[str, str]) -> str | None:
  if value.strip() == "":
    return "required variable is missing." if definition.required else None
  if definition.validator is None:
    return None
  return definition.validator(value, env_map)


def validate_env_values(*, target: ContractTarget, env_map: dict[str, str]) -> list[str]:
  """Validate a provided env map against contract rules for a target process."""
  violations: list[str] = []
  for definition in definitions_for(target):
    problem = _check_one(definition, env_map.get(definition.name, ""), env_map)
    if problem:
      violations.append(f"{definition.name}: {problem}")
  return violations


def collect_env(target: ContractTarget) -> dict[str, str]:
  """Read every contract key for the target from the process environment."""
  collected: dict[str, str] = {}
  for definition in definitions_for(target):
    value = os.getenv(definition.name)
    if value is None and definition.name in _FALLBACK_KEYS:
      value = os.getenv(_FALLBACK_KEYS[definition.name])
    collected[definition.name] = value or ""
  return collected


def check_env_contract(target: ContractTarget, env_map: dict[str, str] | None = None) -> EnvContractReport:
  env_map = collect_env(target) if env_map is None else env_map
  return EnvContractReport(target=target, checked=tuple(definition.name for definition in definitions_for(target)), violations=tuple(validate_env_values(target=target, env_map=env_map)))


def _log_resolved(logger: logging.Logger, target: ContractTarget, env_map: dict[str, str]) -> None:
  for definition in definitions_for(target):
    value = env_map.get(definition.name, "")
    if definition.secret:
      shown = "<redacted>" if value else "<missing>"
    else:
      shown = value or "<missing>"
    logger.info("ENV_CHECK key=%s value=%s", definition.name, shown)


def validate_runtime_env_or_raise(*, logger: logging.Logger, target: ContractTarget) -> None:
  """Log the resolved contract for a process; raise only when LP_ENV_CONTRACT_ENFORCE is on."""
  env_map = collect_env(target)
  _log_resolved(logger, target, env_map)
  report = check_env_contract(target, env_map)
  if report.ok:
    logger.info("ENV_CHECK status=ok target=%s checked=%d", target, len(report.checked))
    return

  if _parse_bool(os.getenv("LP_ENV_CONTRACT_ENFORCE"), default=False):
    logger.error(report.render())
    raise EnvContractError(report.render())

  logger.warning("ENV_CHECK enforcement disabled by LP_ENV_CONTRACT_ENFORCE=0")
  logger.warning(report.render())
