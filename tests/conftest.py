from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from ecs_setup.config import SetupConfig  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ``SetupConfig.from_env`` away from the developer's real settings."""

    for name in ("ECS_HOME", "ECS_SETUP_CATALOG_REPO", "ECS_SETUP_SCRIPT_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def config(tmp_path: Path) -> SetupConfig:
    home = tmp_path / "ECS-Studio"
    home.mkdir()
    return SetupConfig(home=home)
