"""Interface of the source-control host consumed by the wizard."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

__all__ = ["CommandRunner", "HostCommandError", "RepoInfo", "SourceHost"]


CommandRunner = Callable[..., "subprocess.CompletedProcess[str]"]


class HostCommandError(RuntimeError):
    """Raised when a host or git command fails.

    ``output`` keeps the combined command output so callers can show the first
    few lines next to their own remediation text.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output

    def excerpt(self, lines: int = 5) -> list[str]:
        return [line for line in self.output.splitlines() if line.strip()][:lines]


@dataclass(frozen=True, slots=True)
class RepoInfo:
    """A repository owned by the authenticated user."""

    name: str
    description: str = ""


@runtime_checkable
class SourceHost(Protocol):
    """Operations the wizard needs from the repository host."""

    def is_authenticated(self) -> bool:
        """Whether a logged-in session exists."""

    def login(self, *, web: bool = False) -> bool:
        """Start an interactive login. Returns ``True`` on success."""

    def current_user(self) -> Optional[str]:
        """Login name of the authenticated account."""

    def current_user_email(self) -> Optional[str]:
        """Public email of the authenticated account, if any."""

    def repo_exists(self, slug: str) -> bool:
        """Whether ``owner/name`` exists and is visible to the account."""

    def clone(self, slug: str, destination: Path, *, shallow: bool = True) -> None:
        """Clone ``slug`` into ``destination``. Raises :class:`HostCommandError`."""

    def create_repo(self, name: str, source: Path, *, private: bool = True) -> None:
        """Create ``name`` from the local repository in ``source`` and push it."""

    def list_repos(self, limit: int = 100) -> Sequence[RepoInfo]:
        """Repositories of the authenticated account."""


def completed_output(result: Any) -> str:
    stdout = getattr(result, "stdout", "") or ""
    stderr = getattr(result, "stderr", "") or ""
    return "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)
