"""Project name and author resolution, including name collision handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .config import SetupConfig
from .console import Console
from .errors import NameCollision, UsageError
from .host.base import SourceHost
from .naming import repo_slug, sanitize_project_name
from .preferences import Preferences
from .selection import Provenance, Resolution, Selection

__all__ = [
    "IdentityRequest",
    "ProjectAction",
    "ProjectIdentity",
    "ensure_available",
    "find_sibling_projects",
    "resolve_author",
    "resolve_project",
]


LOGGER = logging.getLogger(__name__)


class ProjectAction(str, Enum):
    """What the executor does with the resolved project directory."""

    CREATE = "create"
    REUSE_LOCAL = "reuse-local"
    CLONE_REMOTE = "clone-remote"
    UPDATE_IN_PLACE = "update-in-place"
    COPY_SIBLING = "copy-sibling"


@dataclass(frozen=True, slots=True)
class ProjectIdentity:
    """Where a project lives locally and on the host.

    Attributes
    ----------
    name:
        Sanitized project name.
    directory:
        Local working copy, ``<home>/<name>``.
    repo:
        ``owner/name`` on the repository host.
    action:
        How the project is materialized.
    copy_source:
        Sibling project to copy the template system from, for
        :attr:`ProjectAction.COPY_SIBLING`.
    """

    name: str
    directory: Path
    repo: str
    action: ProjectAction = ProjectAction.CREATE
    copy_source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class IdentityRequest:
    explicit: Optional[str] = None
    interactive: bool = True


def find_sibling_projects(home: Path, current: str, marker: str) -> list[str]:
    """Return other projects in ``home`` that carry the ``marker`` directory."""

    if not home.is_dir():
        return []
    siblings = [
        entry.name
        for entry in home.iterdir()
        if entry.is_dir()
        and not entry.name.startswith(".")
        and entry.name != current
        and (entry / marker).is_dir()
    ]
    return sorted(siblings)


def ensure_available(name: str, directory: Path, repo: str, host: SourceHost) -> None:
    """Raise :class:`NameCollision` when ``name`` is taken locally or remotely."""

    if directory.exists():
        raise NameCollision(name, local=True)
    if host.repo_exists(repo):
        raise NameCollision(name, local=False)


def _local_collision(
    identity: ProjectIdentity,
    config: SetupConfig,
    console: Console,
) -> Optional[ProjectIdentity]:
    siblings = find_sibling_projects(config.home, identity.name, config.marker_dir)

    console.line()
    console.line("  1) Choose a different name")
    console.line("  2) Open existing project")
    console.line("  3) Update template system (from the catalog)")
    if siblings:
        console.line("  4) Copy template system from another project")
    console.line()

    choice = console.ask("What would you like to do?", "1")
    if choice == "2":
        return _with_action(identity, ProjectAction.REUSE_LOCAL)
    if choice == "3":
        return _with_action(identity, ProjectAction.UPDATE_IN_PLACE)
    if choice == "4" and siblings:
        console.line()
        console.line("  Available projects:")
        for index, sibling in enumerate(siblings, start=1):
            console.line(f"    {index}) {sibling}")
        console.line()
        picked = console.ask("Copy from which project?", "1")
        if picked.isdigit() and 1 <= int(picked) <= len(siblings):
            return _with_action(identity, ProjectAction.COPY_SIBLING, siblings[int(picked) - 1])
        console.warning("Invalid selection.")
    return None


def _remote_collision(identity: ProjectIdentity, console: Console) -> Optional[ProjectIdentity]:
    console.line()
    console.line("  1) Choose a different name")
    console.line("  2) Clone existing repo and continue")
    console.line()
    if console.ask("What would you like to do?", "1") == "2":
        return _with_action(identity, ProjectAction.CLONE_REMOTE)
    return None


def _with_action(
    identity: ProjectIdentity,
    action: ProjectAction,
    copy_source: Optional[str] = None,
) -> ProjectIdentity:
    return ProjectIdentity(identity.name, identity.directory, identity.repo, action, copy_source)


def resolve_project(
    request: IdentityRequest,
    config: SetupConfig,
    host: SourceHost,
    user: str,
    console: Console,
) -> ProjectIdentity:
    """Resolve the project name and decide how to handle an existing project.

    A local collision reuses the existing project in non-interactive mode. A
    name that is only taken on the host clones that repository instead.
    Interactive runs offer a menu for both cases. Choosing a different name
    starts over with a prompt.
    """

    fallback = config.default_project_name
    name = sanitize_project_name(request.explicit, fallback=fallback) if request.explicit else None

    while True:
        if name is None:
            if request.interactive:
                console.line()
                answer = console.ask("What should your project be called?", fallback)
                name = sanitize_project_name(answer, fallback=fallback)
            else:
                name = fallback

        identity = ProjectIdentity(name, config.home / name, repo_slug(user, name))
        try:
            ensure_available(identity.name, identity.directory, identity.repo, host)
        except NameCollision as collision:
            LOGGER.debug("%s", collision)
            if collision.local:
                console.warning(f"Project '{name}' already exists locally.")
                if not request.interactive:
                    return _with_action(identity, ProjectAction.REUSE_LOCAL)
                outcome = _local_collision(identity, config, console)
            else:
                console.warning(f"Repository '{identity.repo}' already exists on the host.")
                if not request.interactive:
                    return _with_action(identity, ProjectAction.CLONE_REMOTE)
                outcome = _remote_collision(identity, console)
            if outcome is not None:
                return outcome
            name = None
            continue
        return identity


def resolve_author(
    request: IdentityRequest,
    preferences: Preferences,
    console: Console,
    host_user: Optional[str] = None,
) -> Resolution:
    """Resolve the author name: explicit, then cached, then prompted.

    Interactive runs always ask. The cached name is the default, falling back
    to the host account login. Non-interactive runs without a cached name fail.
    """

    explicit = (request.explicit or "").strip()
    if explicit:
        return Resolution(
            Selection("author", explicit, Provenance.EXPLICIT),
            preferences.with_value("author", explicit),
        )

    cached = preferences.author
    if not request.interactive:
        if cached:
            return Resolution(Selection("author", cached, Provenance.CACHED), preferences)
        raise UsageError("Author name required. Use --author NAME or run interactively.")

    default = cached or host_user or ""
    console.line()
    author = console.ask("What is your name?", default)
    while not author:
        console.warning("Please enter your name.")
        author = console.ask("What is your name?", default)
    return Resolution(
        Selection("author", author, Provenance.INTERACTIVE),
        preferences.with_value("author", author),
    )
