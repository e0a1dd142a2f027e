"""Precedence-based resolution of the module and language to scaffold.

Each resolver is a function from ``(request, catalog, preferences)`` to a
:class:`Resolution`. Resolvers never touch the filesystem. The caller decides
when to persist the returned preferences. The precedence is:

1. a single available option is taken silently;
2. an explicit value must exist, otherwise :class:`UnknownSelection` is raised;
3. a cached value is ignored when it no longer exists;
4. non-interactive runs use the cached value;
5. non-interactive runs without a cache use the first option;
6. interactive runs show a numbered menu with forgiving input handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .catalog import CatalogSnapshot, ModuleDescriptor, resolve_alias
from .console import Console
from .errors import CatalogEmpty, UnknownSelection
from .host.base import RepoInfo
from .preferences import PreferenceField, Preferences

__all__ = [
    "CUSTOM_MODULE",
    "Option",
    "Provenance",
    "Resolution",
    "Selection",
    "SelectionRequest",
    "choose_repository",
    "describe",
    "resolve_language",
    "resolve_module",
]


LOGGER = logging.getLogger(__name__)

CUSTOM_MODULE = "custom"
REPOSITORY_PAGE = 20
DESCRIPTION_WIDTH = 50


class Provenance(str, Enum):
    """Why a selection was made."""

    EXPLICIT = "explicit"
    CACHED = "cached"
    DEFAULT = "default"
    INTERACTIVE = "interactive"
    ONLY = "only"


_SUFFIXES = {
    Provenance.CACHED: " (cached)",
    Provenance.DEFAULT: " (default)",
    Provenance.INTERACTIVE: "",
    Provenance.ONLY: " (only one available)",
}


@dataclass(frozen=True, slots=True)
class Selection:
    kind: str
    identifier: str
    provenance: Provenance
    custom: bool = False


@dataclass(frozen=True, slots=True)
class SelectionRequest:
    """Caller supplied inputs for one resolution.

    Attributes
    ----------
    explicit:
        Value passed on the command line, if any.
    interactive:
        ``False`` when running with ``--yes``.
    custom_triggers:
        Words that pick the custom module from the module menu.
    """

    explicit: Optional[str] = None
    interactive: bool = True
    custom_triggers: tuple[str, ...] = ("custom", "own")


@dataclass(frozen=True, slots=True)
class Resolution:
    selection: Selection
    preferences: Preferences


@dataclass(frozen=True, slots=True)
class Option:
    """A menu entry."""

    identifier: str
    name: str
    detail: str = ""


def describe(label: str, display_name: str, selection: Selection) -> str:
    """Return the status line announcing ``selection``."""

    if selection.provenance is Provenance.EXPLICIT:
        suffix = f" (--{selection.kind})"
    else:
        suffix = _SUFFIXES[selection.provenance]
    return f"{label}: {display_name}{suffix}"


def _print_menu(console: Console, title: str, options: Sequence[Option]) -> None:
    console.line()
    console.heading(title)
    console.line()
    for index, option in enumerate(options, start=1):
        console.line(f"  {index}) {option.name}")
        if option.detail:
            console.line(f"     {option.detail}")


def _as_index(choice: str, count: int) -> Optional[int]:
    if choice.isdigit() and 1 <= int(choice) <= count:
        return int(choice) - 1
    return None


def _resolve(
    kind: PreferenceField,
    options: Sequence[Option],
    request: SelectionRequest,
    preferences: Preferences,
    console: Console,
    *,
    match: Callable[[str], Optional[str]],
    custom_entry: Optional[Option] = None,
) -> Resolution:
    if not options:
        raise CatalogEmpty(f"No {kind}s available.")
    identifiers = [option.identifier for option in options]

    if len(options) == 1:
        return Resolution(Selection(kind, identifiers[0], Provenance.ONLY), preferences)

    if request.explicit:
        matched = match(request.explicit)
        if matched is None:
            raise UnknownSelection(kind, request.explicit, identifiers)
        return Resolution(
            Selection(kind, matched, Provenance.EXPLICIT),
            preferences.with_value(kind, matched),
        )

    cached = preferences.get(kind)
    if cached is not None and cached not in identifiers:
        LOGGER.debug("ignoring stale cached %s=%r", kind, cached)
        cached = None

    if not request.interactive:
        if cached is not None:
            return Resolution(Selection(kind, cached, Provenance.CACHED), preferences)
        first = identifiers[0]
        return Resolution(
            Selection(kind, first, Provenance.DEFAULT),
            preferences.with_value(kind, first),
        )

    menu = list(options)
    if custom_entry is not None:
        menu.append(custom_entry)
    _print_menu(console, f"Choose your {kind}:", menu)
    console.line()

    default = identifiers.index(cached) + 1 if cached is not None else 1
    choice = console.ask(kind.capitalize(), str(default))

    if custom_entry is not None and choice == str(len(menu)):
        return Resolution(Selection(kind, CUSTOM_MODULE, Provenance.INTERACTIVE, custom=True), preferences)

    index = _as_index(choice, len(options))
    chosen = identifiers[index] if index is not None else match(choice)

    if chosen is None and custom_entry is not None:
        lowered = choice.lower()
        if any(trigger.lower() in lowered for trigger in request.custom_triggers):
            return Resolution(
                Selection(kind, CUSTOM_MODULE, Provenance.INTERACTIVE, custom=True),
                preferences,
            )

    if chosen is None:
        LOGGER.debug("unmatched %s choice %r, using %s", kind, choice, identifiers[0])
        chosen = identifiers[0]
    return Resolution(
        Selection(kind, chosen, Provenance.INTERACTIVE),
        preferences.with_value(kind, chosen),
    )


def resolve_module(
    request: SelectionRequest,
    catalog: CatalogSnapshot,
    preferences: Preferences,
    console: Console,
    *,
    allow_custom: bool = True,
) -> Resolution:
    """Pick the module to scaffold.

    The interactive menu ends with an entry that switches to a custom module,
    a repository owned by the user. That selection has ``custom=True`` and
    is not remembered.
    """

    options = [Option(module.identifier, module.name, module.tagline) for module in catalog.modules]
    identifiers = set(catalog.identifiers())
    custom_entry = None
    if allow_custom:
        custom_entry = Option(CUSTOM_MODULE, "Custom module", "Use one of your own repositories as a template")
    return _resolve(
        "module",
        options,
        request,
        preferences,
        console,
        match=lambda text: text if text in identifiers else None,
        custom_entry=custom_entry,
    )


def resolve_language(
    request: SelectionRequest,
    module: ModuleDescriptor,
    preferences: Preferences,
    console: Console,
) -> Resolution:
    """Pick the language of ``module``. Explicit values go through alias matching."""

    options = [Option(language.identifier, language.name) for language in module.languages]
    return _resolve(
        "language",
        options,
        request,
        preferences,
        console,
        match=lambda text: resolve_alias(module.languages, text),
    )


def _shorten(text: str, width: int = DESCRIPTION_WIDTH) -> str:
    if len(text) > width:
        return f"{text[: width - 3]}..."
    return text


def choose_repository(repositories: Sequence[RepoInfo], console: Console) -> Optional[RepoInfo]:
    """Let the user pick one of their repositories as a template.

    Accepts a menu number or any part of a repository name. Returns ``None``
    when nothing matches.
    """

    if not repositories:
        return None

    console.line()
    console.heading("Choose a repository as template:")
    console.line()
    for index, repo in enumerate(repositories[:REPOSITORY_PAGE], start=1):
        description = _shorten(repo.description or "No description")
        console.line(f"  {index:2d}) {repo.name:<25} {description}")
    if len(repositories) > REPOSITORY_PAGE:
        console.line(f"  ... and {len(repositories) - REPOSITORY_PAGE} more (enter name to search)")
    console.line()

    choice = console.ask("Repository (number or name)", "1")
    index = _as_index(choice, len(repositories))
    if index is not None:
        return repositories[index]
    for repo in repositories:
        if choice and choice in repo.name:
            return repo
    return None
