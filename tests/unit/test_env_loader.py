from __future__ import annotations

import os
from pathlib import Path

import pytest
from app.utils.env import default_env_path, load_env_file


def test_load_env_file_applies_new_keys_only(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text('# local overrides\nexport LP_TEST_ALPHA="one"\nLP_TEST_BETA=two\nnot a pair\n\nLP_TEST_GAMMA=\'three\'\n', encoding="utf-8")
  monkeypatch.setenv("LP_TEST_BETA", "from-shell")
  monkeypatch.delenv("LP_TEST_ALPHA", raising=False)
  monkeypatch.delenv("LP_TEST_GAMMA", raising=False)

  applied = load_env_file(env_file)

  assert applied == ["LP_TEST_ALPHA", "LP_TEST_GAMMA"]
  assert os.environ["LP_TEST_ALPHA"] == "one"
  assert os.environ["LP_TEST_BETA"] == "from-shell"
  assert os.environ["LP_TEST_GAMMA"] == "three"
  monkeypatch.delenv("LP_TEST_ALPHA")
  monkeypatch.delenv("LP_TEST_GAMMA")


def test_load_env_file_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("LP_TEST_BETA=from-file\n", encoding="utf-8")
  monkeypatch.setenv("LP_TEST_BETA", "from-shell")

  assert load_env_file(env_file, override=True) == ["LP_TEST_BETA"]
  assert os.environ["LP_TEST_BETA"] == "from-file"


def test_missing_env_file_is_ignored(tmp_path: Path) -> None:
  assert load_env_file(tmp_path / "absent.env") == []


def test_default_env_path_honours_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("LP_ENV_FILE", str(tmp_path / "custom.env"))
  assert default_env_path() == tmp_path / "custom.env"
