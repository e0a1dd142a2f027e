from __future__ import annotations

from pathlib import Path

import pytest

from ecs_setup.config import DEFAULT_CATALOG_REPO, SetupConfig


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    config = SetupConfig.from_env({})

    assert config.home == Path.home() / "ECS-Studio"
    assert config.catalog_repo == DEFAULT_CATALOG_REPO
    assert config.update_interval == 24 * 60 * 60


def test_from_env_overrides(tmp_path: Path):
    config = SetupConfig.from_env(
        {
            "ECS_HOME": str(tmp_path / "studio"),
            "ECS_SETUP_CATALOG_REPO": "acme/templates",
            "ECS_SETUP_SCRIPT_URL": "https://example.com/setup.py",
        }
    )

    assert config.home == tmp_path / "studio"
    assert config.catalog_repo == "acme/templates"
    assert config.script_url == "https://example.com/setup.py"


def test_derived_locations(tmp_path: Path):
    config = SetupConfig(home=tmp_path)

    assert config.tools_dir == tmp_path / ".tools"
    assert config.update_stamp == tmp_path / ".cache" / "update_check"
    assert config.local_gh == tmp_path / ".tools" / "gh" / "bin" / "gh"
    assert config.setup_script == tmp_path / ".tools" / "setup.py"
