"""Configuration shared by the wizard, the updater and the bootstrap installer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

__all__ = ["SetupConfig"]


DEFAULT_CATALOG_REPO = "ecs-systems/ecs-studio"
DEFAULT_SCRIPT_URL = "https://raw.githubusercontent.com/ecs-systems/ecs-setup/main/setup.py"
UPDATE_CHECK_INTERVAL = 24 * 60 * 60


@dataclass(slots=True)
class SetupConfig:
    """Locations and product constants used throughout a run.

    Attributes
    ----------
    home:
        Root directory holding every project plus the hidden ``.tools`` and
        ``.cache`` directories.
    catalog_repo:
        ``owner/name`` of the repository hosting the module catalog.
    script_url:
        URL of the latest published copy of the setup script.
    update_interval:
        Minimum number of seconds between two automatic update checks.
    module_file, language_file:
        Fixed descriptor file names looked up inside catalog directories.
    default_project_name:
        Name used when a requested project name sanitizes to nothing.
    custom_triggers:
        Words that select the custom module when typed into the module menu.
        Matching is a case-insensitive substring test.
    system_dirs:
        Template-owned directories replaced by update and copy actions.
    marker_dir:
        Directory whose presence identifies a sibling project.
    """

    home: Path
    catalog_repo: str = DEFAULT_CATALOG_REPO
    script_url: str = DEFAULT_SCRIPT_URL
    update_interval: int = UPDATE_CHECK_INTERVAL
    module_file: str = "module.yaml"
    language_file: str = "language.yaml"
    default_project_name: str = "MyProject"
    custom_triggers: tuple[str, ...] = ("custom", "own")
    system_dirs: tuple[str, ...] = ("_bmad/ecs", ".claude/commands", "docs")
    marker_dir: str = "_bmad/ecs"
    assistant_command: str = "claude"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SetupConfig":
        """Build a configuration honouring ``ECS_HOME`` and related overrides."""

        env = os.environ if environ is None else environ
        home = env.get("ECS_HOME") or str(Path.home() / "ECS-Studio")
        return cls(
            home=Path(home).expanduser(),
            catalog_repo=env.get("ECS_SETUP_CATALOG_REPO") or DEFAULT_CATALOG_REPO,
            script_url=env.get("ECS_SETUP_SCRIPT_URL") or DEFAULT_SCRIPT_URL,
        )

    @property
    def tools_dir(self) -> Path:
        return self.home / ".tools"

    @property
    def cache_dir(self) -> Path:
        return self.home / ".cache"

    @property
    def update_stamp(self) -> Path:
        return self.cache_dir / "update_check"

    @property
    def local_gh(self) -> Path:
        """Location of the ``gh`` binary installed by the bootstrap script."""

        return self.tools_dir / "gh" / "bin" / "gh"

    @property
    def setup_script(self) -> Path:
        """Standalone setup script installed by ``ecs-bootstrap``. Self-update only replaces this file."""

        return self.tools_dir / "setup.py"
