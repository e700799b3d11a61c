"""Minimal .env loader so local runs pick up LP_* settings without exporting them."""

from __future__ import annotations

import os
from pathlib import Path

_ENV_FILE_OVERRIDE = "LP_ENV_FILE"


def default_env_path() -> Path:
  """Return the .env path, honouring LP_ENV_FILE before the repo-root default."""
  override = os.getenv(_ENV_FILE_OVERRIDE)
  if override and override.strip():
    return Path(override.strip()).expanduser()

  return Path(__file__).resolve().parents[2] / ".env"


def _parse_line(raw_line: str) -> tuple[str, str] | None:
  """Split one `KEY=value` line, ignoring comments, blanks and `export` prefixes."""
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None

  line = line.removeprefix("export ").lstrip()
  key, sep, value = line.partition("=")
  key = key.strip()
  if not sep or not key:
    return None

  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    value = value[1:-1]

  return key, value


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Load key=value pairs into os.environ and return the keys that were applied."""
  if not path.is_file():
    return []

  applied: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = _parse_line(raw_line)
    if parsed is None:
      continue

    key, value = parsed
    # Real environment wins unless the caller explicitly asks otherwise.
    if not override and key in os.environ:
      continue

    os.environ[key] = value
    applied.append(key)

  return applied
