"""GitHub host backed by the ``gh`` command line client."""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional

from ..config import SetupConfig
from .base import CommandRunner, HostCommandError, RepoInfo, completed_output

__all__ = ["GhCliHost", "find_gh_binary"]


LOGGER = logging.getLogger(__name__)


def find_gh_binary(
    config: SetupConfig,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[str]:
    """Return the ``gh`` installed by the bootstrap script, else the one on ``PATH``."""

    local = config.local_gh
    if local.is_file() and os.access(local, os.X_OK):
        return str(local)
    return which("gh")


class GhCliHost:
    """Implement :class:`~ecs_setup.host.base.SourceHost` by shelling out to ``gh``."""

    def __init__(self, binary: str | Path, *, runner: CommandRunner = subprocess.run) -> None:
        self.binary = str(binary)
        self._runner = runner

    def _run(self, *args: str, cwd: Path | None = None) -> "subprocess.CompletedProcess[str]":
        command = [self.binary, *args]
        LOGGER.debug("running %s", command)
        try:
            return self._runner(command, cwd=cwd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise HostCommandError(f"could not run {self.binary}: {exc}") from exc

    def _checked(self, *args: str, cwd: Path | None = None) -> str:
        result = self._run(*args, cwd=cwd)
        if result.returncode != 0:
            raise HostCommandError(f"gh {args[0]} {args[1]} failed", completed_output(result))
        return result.stdout

    def is_authenticated(self) -> bool:
        try:
            return self._run("auth", "status").returncode == 0
        except HostCommandError:
            return False

    def login(self, *, web: bool = False) -> bool:
        command = [self.binary, "auth", "login", "--git-protocol", "https"]
        if web:
            command.insert(3, "--web")
        try:
            return self._runner(command, check=False).returncode == 0
        except OSError:
            return False

    def _user_field(self, query: str) -> Optional[str]:
        try:
            value = self._checked("api", "user", "--jq", query).strip()
        except HostCommandError:
            return None
        return value or None

    def current_user(self) -> Optional[str]:
        return self._user_field(".login")

    def current_user_email(self) -> Optional[str]:
        return self._user_field(".email // empty")

    def repo_exists(self, slug: str) -> bool:
        try:
            return self._run("repo", "view", slug).returncode == 0
        except HostCommandError:
            return False

    def clone(self, slug: str, destination: Path, *, shallow: bool = True) -> None:
        args = ["repo", "clone", slug, str(destination)]
        if shallow:
            args.extend(["--", "--depth", "1"])
        self._checked(*args)

    def create_repo(self, name: str, source: Path, *, private: bool = True) -> None:
        visibility = "--private" if private else "--public"
        self._checked(
            "repo", "create", name, visibility, "--source=.", "--remote=origin", "--push", cwd=source
        )

    def list_repos(self, limit: int = 100) -> list[RepoInfo]:
        try:
            raw = self._checked("repo", "list", "--limit", str(limit), "--json", "name,description")
            payload = json.loads(raw or "[]")
        except (HostCommandError, json.JSONDecodeError):
            LOGGER.debug("listing repositories failed", exc_info=True)
            return []
        return [
            RepoInfo(name=item["name"], description=item.get("description") or "")
            for item in payload
            if isinstance(item, dict) and item.get("name")
        ]
