"""Thin wrapper around the ``git`` executable."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .base import CommandRunner, HostCommandError, completed_output

__all__ = ["GitClient"]


LOGGER = logging.getLogger(__name__)


class GitClient:
    """Run the handful of git commands needed to publish a new project."""

    def __init__(self, binary: str = "git", *, runner: CommandRunner = subprocess.run) -> None:
        self.binary = binary
        self._runner = runner

    def _run(self, *args: str, cwd: Path | None = None) -> "subprocess.CompletedProcess[str]":
        command = [self.binary, *args]
        LOGGER.debug("running %s cwd=%s", command, cwd)
        try:
            return self._runner(command, cwd=cwd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise HostCommandError(f"could not run {self.binary}: {exc}") from exc

    def config_get(self, key: str) -> str:
        """Return the global value of ``key`` or an empty string."""

        result = self._run("config", "--global", key)
        return result.stdout.strip() if result.returncode == 0 else ""

    def config_set(self, key: str, value: str) -> None:
        result = self._run("config", "--global", key, value)
        if result.returncode != 0:
            raise HostCommandError(f"git config {key} failed", completed_output(result))

    def init(self, path: Path) -> None:
        result = self._run("init", "-q", cwd=path)
        if result.returncode != 0:
            raise HostCommandError("git init failed", completed_output(result))

    def add_all(self, path: Path) -> None:
        result = self._run("add", "-A", cwd=path)
        if result.returncode != 0:
            raise HostCommandError("git add failed", completed_output(result))

    def commit(self, path: Path, message: str) -> bool:
        """Commit staged changes. Returns ``False`` when nothing was committed."""

        result = self._run("commit", "-q", "-m", message, cwd=path)
        if result.returncode != 0:
            LOGGER.debug("git commit produced no commit: %s", completed_output(result))
            return False
        return True
